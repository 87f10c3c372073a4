"""Append-only JSONL file sink."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from pathlib import Path

from breadcrumbs.records import PersistedRecord

from .errors import JsonlWriteError

logger = logging.getLogger(__name__)


class JsonlSink:
    """Appends one newline-terminated JSON envelope per record to a local file.

    File I/O runs in a worker thread so the event loop is never blocked; a lock
    keeps concurrent writers from interleaving partial lines.
    """

    name = "jsonl"

    def __init__(self, *, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def describe(self) -> str:
        return f"Sink=jsonl: persisted records are appended to {self.path}."

    async def write(self, record: PersistedRecord) -> None:
        line = json.dumps(record.envelope(), ensure_ascii=False, separators=(",", ":")) + "\n"
        try:
            await asyncio.to_thread(self._append_line, line)
        except OSError as exc:
            raise JsonlWriteError(str(self.path), exc.strerror or str(exc)) from exc
        logger.debug("jsonl sink appended log_id=%s", record.log_id)

    def _append_line(self, line: str) -> None:
        """Create parent directories and append `line` (runs in a worker thread)."""
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line)

    async def aclose(self) -> None:  # noqa: D401 - keep interface consistent
        """No-op."""
