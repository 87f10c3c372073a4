"""Persisted record envelope.

Every sink stores the same three-field envelope:

- `log_id`: fresh uuid4 string, assigned once per `log_work` call and reused
  verbatim by every retry (receivers dedupe on it).
- `server_timestamp`: UTC acceptance time, stamped once by the server.
- `log_record`: the caller's validated record, stored as-is.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .constants import SERVER_METADATA_KEY


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision and a `Z` suffix."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_log_id() -> str:
    return str(uuid.uuid4())


class PersistedRecord(BaseModel):
    """The unit handed to a sink."""

    model_config = ConfigDict(frozen=True)

    log_id: str = Field(default_factory=new_log_id)
    server_timestamp: str = Field(default_factory=lambda: format_timestamp(utc_now()))
    log_record: dict[str, Any]

    def envelope(self) -> dict[str, Any]:
        """Return the wire/storage envelope as a plain dict."""
        return {
            "log_id": self.log_id,
            "server_timestamp": self.server_timestamp,
            "log_record": self.log_record,
        }


def with_server_metadata(log_record: dict[str, Any], *, user_name: str | None) -> dict[str, Any]:
    """Return a copy of `log_record` carrying server-side metadata.

    The caller's dict is never mutated. Without a configured `user_name` the
    record is returned unchanged.
    """
    if not user_name:
        return log_record
    enriched = dict(log_record)
    enriched[SERVER_METADATA_KEY] = {"user_name": user_name, "source": "config.user_name"}
    return enriched
