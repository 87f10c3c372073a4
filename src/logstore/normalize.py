"""Turn stored envelopes into `NormalizedEvent`s."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from breadcrumbs.constants import SERVER_METADATA_KEY

from .models import Bucket, LogStoreKind, NormalizedEvent


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string, datetime or epoch-milliseconds value as aware UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _read_string(record: dict[str, Any], key: str) -> str | None:
    value = record.get(key)
    return value if isinstance(value, str) and value.strip() else None


def _read_server_user_name(record: dict[str, Any]) -> str | None:
    metadata = record.get(SERVER_METADATA_KEY)
    if not isinstance(metadata, dict):
        return None
    return _read_string(metadata, "user_name")


def normalize_envelope(row: dict[str, Any], source: LogStoreKind) -> NormalizedEvent | None:
    """Return the normalized event, or `None` for rows that are not usable envelopes."""
    server_timestamp = parse_timestamp(row.get("server_timestamp"))
    if server_timestamp is None:
        return None

    payload = row.get("log_record")
    if isinstance(payload, str):
        # Some drivers hand back json columns as text.
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            return None
    if not isinstance(payload, dict):
        return None

    log_id = row.get("log_id")
    return NormalizedEvent(
        id=log_id if isinstance(log_id, str) else f"{server_timestamp.isoformat()}:{uuid.uuid4().hex[:12]}",
        server_timestamp=server_timestamp,
        event_time=server_timestamp,
        actor=_read_string(payload, "agent_id") or _read_string(payload, "actor_id"),
        user_name=_read_server_user_name(payload) or _read_string(payload, "user_name"),
        summary=_read_string(payload, "work_summary") or _read_string(payload, "summary"),
        status=_read_string(payload, "status"),
        payload=payload,
        source=source,
    )


def event_search_text(event: NormalizedEvent) -> str:
    return f"{event.summary or ''} {json.dumps(event.payload, default=str)}".lower()


def bucket_start(ts: datetime, bucket: Bucket) -> datetime:
    """Truncate `ts` (UTC) to the start of its hour or day."""
    ts = ts.astimezone(timezone.utc)
    if bucket == "day":
        return ts.replace(hour=0, minute=0, second=0, microsecond=0)
    return ts.replace(minute=0, second=0, microsecond=0)
