"""Tool input schema and argument validation.

The `log_record` property map (default, profile or custom) is turned into two
things:

- the JSON schema advertised to clients (`build_input_schema`)
- a Pydantic model generated from the same map, used to validate incoming
  arguments (`ArgumentsValidator`)

Validation only checks; it never coerces. The caller persists the original
`log_record` dict, not the model instance. Properties not named in the map are
accepted so caller-defined fields stay forward compatible.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, create_model
from pydantic_core import PydanticCustomError

from .profiles import LogRecordProperties, PropertySchema, has_schema_profile, list_schema_profiles, resolve_schema_profile

LoggingMode = Literal["completion", "time"]
SchemaSource = Literal["default", "profile", "custom"]

DEFAULT_LOG_RECORD_PROPERTIES: LogRecordProperties = {
    "agent_id": {"type": "string"},
    "timestamp": {"type": "string", "format": "date-time"},
    "work_summary": {"type": "string"},
    "additional": {"type": "object"},
}


class ResolvedSchema(BaseModel):
    """The `log_record` properties in effect and where they came from."""

    model_config = ConfigDict(frozen=True)

    source: SchemaSource
    properties: LogRecordProperties
    profile_name: str | None = None


def resolve_log_record_properties(raw_schema: Any = None, raw_profile: Any = None) -> ResolvedSchema:
    """Pick the property map from config `schema` / `schema_profile` (at most one)."""
    if raw_schema is not None and raw_profile is not None:
        raise ValueError("Cannot set both config.schema and config.schema_profile")

    if raw_profile is not None:
        if not isinstance(raw_profile, str) or not raw_profile.strip():
            raise ValueError("config.schema_profile must be a non-empty string")
        if not has_schema_profile(raw_profile):
            supported = ", ".join(list_schema_profiles())
            raise ValueError(
                f"Unknown config.schema_profile: {raw_profile}. Supported profiles: {supported}. "
                "Use config.schema for a custom schema."
            )
        return ResolvedSchema(source="profile", properties=resolve_schema_profile(raw_profile), profile_name=raw_profile)

    if raw_schema is None:
        return ResolvedSchema(source="default", properties=DEFAULT_LOG_RECORD_PROPERTIES)

    if not isinstance(raw_schema, dict):
        raise ValueError("config.schema must be a JSON object")
    normalized: LogRecordProperties = {}
    for key, value in raw_schema.items():
        if not isinstance(value, dict):
            raise ValueError(f"config.schema.{key} must be a JSON object")
        normalized[key] = value
    return ResolvedSchema(source="custom", properties=normalized)


def build_input_schema(properties: LogRecordProperties) -> dict[str, Any]:
    """Return the JSON schema advertised for the tool's arguments."""
    return {
        "type": "object",
        "properties": {
            "log_record": {"type": "object", "properties": properties},
            "logging_mode": {"type": "string", "enum": ["completion", "time"]},
        },
        "required": ["log_record"],
    }


# --- JSON-type checks -------------------------------------------------------

_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "integer": lambda v: (isinstance(v, int) and not isinstance(v, bool))
    or (isinstance(v, float) and v.is_integer()),
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
    "null": lambda v: v is None,
}


def _is_date_time(value: str) -> bool:
    candidate = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    if "T" not in candidate.upper():
        return False
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return False
    return parsed.tzinfo is not None


def _property_checker(schema: PropertySchema):
    """Build an after-validator enforcing `type`, `format` and `enum` of one property."""
    raw_type = schema.get("type")
    types = [raw_type] if isinstance(raw_type, str) else list(raw_type or [])
    known_types = [t for t in types if t in _TYPE_CHECKS]
    fmt = schema.get("format")
    allowed = schema.get("enum")

    def _check(value: Any) -> Any:
        if known_types and not any(_TYPE_CHECKS[t](value) for t in known_types):
            raise PydanticCustomError("json_type", "must be {expected}", {"expected": ",".join(known_types)})
        if fmt == "date-time" and isinstance(value, str) and not _is_date_time(value):
            raise PydanticCustomError("json_format", 'must match format "date-time"')
        if isinstance(allowed, list) and value not in allowed:
            raise PydanticCustomError("json_enum", "must be equal to one of the allowed values")
        return value

    return _check


def _annotation_for(schema: PropertySchema, name: str) -> Any:
    """Translate one property schema into a Pydantic annotation."""
    checked = Annotated[Any, AfterValidator(_property_checker(schema))]

    if schema.get("type") == "object" and isinstance(schema.get("properties"), dict):
        return _object_model(f"{name}_object", schema["properties"], schema.get("required"))
    if schema.get("type") == "array" and isinstance(schema.get("items"), dict):
        return list[_annotation_for(schema["items"], f"{name}_item")]
    return checked


def _object_model(
    model_name: str,
    properties: LogRecordProperties,
    required: Any = None,
) -> type[BaseModel]:
    required_names = set(required) if isinstance(required, list) else set()
    fields: dict[str, Any] = {}
    # Properties map to positional field names with the property as alias, so any
    # JSON key (hyphens, leading underscores, BaseModel attribute names) is usable.
    for index, (prop_name, prop_schema) in enumerate(properties.items()):
        annotation = _annotation_for(prop_schema, prop_name)
        if prop_name in required_names:
            fields[f"p{index}"] = (annotation, Field(..., alias=prop_name))
        else:
            # Absent is fine; an explicit value (null included) is still checked.
            fields[f"p{index}"] = (annotation, Field(default=None, alias=prop_name))
    return create_model(
        model_name,
        __config__=ConfigDict(extra="allow"),
        **fields,
    )


_ERROR_MESSAGES = {
    "model_type": "must be object",
    "model_attributes_type": "must be object",
    "dict_type": "must be object",
    "list_type": "must be array",
    "literal_error": "must be equal to one of the allowed values",
}


def format_validation_errors(exc: ValidationError) -> str:
    """Render errors as `/<path> <message>` entries joined with `; `."""
    parts: list[str] = []
    for error in exc.errors():
        loc = tuple(error.get("loc", ()))
        if error["type"] == "missing" and loc:
            path, message = loc[:-1], f"must have required property '{loc[-1]}'"
        else:
            path, message = loc, _ERROR_MESSAGES.get(error["type"], error["msg"])
        prefix = "/" + "/".join(str(p) for p in path) if path else ""
        parts.append(f"{prefix} {message}".strip())
    return "; ".join(parts) if parts else "Invalid arguments."


class ArgumentsValidator:
    """Validates raw `log_work` arguments against the configured property map."""

    def __init__(self, properties: LogRecordProperties) -> None:
        log_record_model = _object_model("LogRecord", properties)
        self._model = create_model(
            "LogWorkArguments",
            __config__=ConfigDict(extra="allow"),
            log_record=(log_record_model, Field(...)),
            logging_mode=(LoggingMode, Field(default=None)),
        )

    def validate(self, raw_arguments: Any) -> str | None:
        """Return a formatted error string, or `None` when the arguments are valid."""
        if not isinstance(raw_arguments, dict):
            return "must be object"
        try:
            self._model.model_validate(raw_arguments)
        except ValidationError as exc:
            return format_validation_errors(exc)
        return None
