"""Server identity and guardrail limits for the `log_work` tool."""

from __future__ import annotations

from pathlib import Path
from typing import Final

TOOL_NAME: Final[str] = "log_work"
SERVER_NAME: Final[str] = "agent-breadcrumbs"
SERVER_VERSION: Final[str] = "0.1.0"

DEFAULT_LOG_FILE_PATH: Final[Path] = Path.home() / ".agent-breadcrumbs" / "logs.jsonl"

MAX_REQUEST_BYTES: Final[int] = 32 * 1024
MAX_LOG_RECORD_BYTES: Final[int] = 16 * 1024
MAX_LOG_RECORD_DEPTH: Final[int] = 8
MAX_LOG_RECORD_KEYS: Final[int] = 256

# Key injected into persisted records when `user_name` is configured.
SERVER_METADATA_KEY: Final[str] = "_agent_breadcrumbs_server"
