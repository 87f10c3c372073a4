"""Logging configuration helpers."""

from __future__ import annotations

import logging
import os
import sys


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(level_name: str | None = None) -> None:
    """Configure root logging using LOG_LEVEL and a concise format.

    Logs go to stderr so stdout stays free for tool results.
    """
    level = _resolve_level(level_name or os.getenv("LOG_LEVEL", "INFO"))
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    root_logger = logging.getLogger()

    if root_logger.handlers:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
