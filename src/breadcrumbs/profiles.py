"""Built-in `log_record` schema profiles."""

from __future__ import annotations

from typing import Any

PropertySchema = dict[str, Any]
LogRecordProperties = dict[str, PropertySchema]

_STRING: PropertySchema = {"type": "string"}
_NUMBER: PropertySchema = {"type": "number"}
_OBJECT: PropertySchema = {"type": "object"}
_DATE_TIME: PropertySchema = {"type": "string", "format": "date-time"}


def _profile(*string_fields: str, **typed_fields: PropertySchema) -> LogRecordProperties:
    properties: LogRecordProperties = {"schema_profile": _STRING, "schema_version": _STRING}
    properties.update({name: _STRING for name in string_fields})
    properties.update(typed_fields)
    return properties


AGENT_INSIGHTS_V1 = _profile(
    "team_id",
    "project_id",
    "human_actor_id",
    "agent_id",
    "run_id",
    "event_type",
    "status",
    duration_ms=_NUMBER,
    output_count=_NUMBER,
    cost_usd=_NUMBER,
    work_summary=_STRING,
    additional=_OBJECT,
)

DELIVERY_TRACKING_V1 = _profile(
    "team_id",
    "project_id",
    "initiative_id",
    "milestone_id",
    "task_id",
    "delivery_id",
    "artifact_ref",
    "event_type",
    "status",
    delivered_at=_DATE_TIME,
    effort_hours=_NUMBER,
    work_summary=_STRING,
    additional=_OBJECT,
)

AUDIT_TRAIL_V1 = _profile(
    "team_id",
    "project_id",
    "actor_type",
    "actor_id",
    "action",
    "target_type",
    "target_id",
    "reason",
    "status",
    timestamp=_DATE_TIME,
    work_summary=_STRING,
    additional=_OBJECT,
)

KNOWLEDGE_CAPTURE_V1 = _profile(
    "team_id",
    "project_id",
    "knowledge_type",
    "title",
    "summary",
    "source_ref",
    tags={"type": "array", "items": {"type": "string"}},
    confidence=_NUMBER,
    event_type=_STRING,
    status=_STRING,
    captured_at=_DATE_TIME,
    additional=_OBJECT,
)

SCHEMA_PROFILES: dict[str, LogRecordProperties] = {
    "agent_insights_v1": AGENT_INSIGHTS_V1,
    "delivery_tracking_v1": DELIVERY_TRACKING_V1,
    "audit_trail_v1": AUDIT_TRAIL_V1,
    "knowledge_capture_v1": KNOWLEDGE_CAPTURE_V1,
}


def list_schema_profiles() -> list[str]:
    return list(SCHEMA_PROFILES)


def has_schema_profile(name: str) -> bool:
    return name in SCHEMA_PROFILES


def resolve_schema_profile(name: str) -> LogRecordProperties:
    """Return a copy of the named profile's properties (raises `KeyError` if unknown)."""
    return {key: dict(value) for key, value in SCHEMA_PROFILES[name].items()}
