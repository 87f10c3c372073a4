"""Work-logging core: guardrails, record envelope, schema catalog and the `log_work` tool."""

from .guardrails import GuardrailLimits, validate_log_record, validate_request_size
from .records import PersistedRecord
from .schema import ArgumentsValidator, ResolvedSchema, build_input_schema, resolve_log_record_properties
from .tool import LogWorkTool, UnknownToolError

__all__ = [
    "ArgumentsValidator",
    "GuardrailLimits",
    "LogWorkTool",
    "PersistedRecord",
    "ResolvedSchema",
    "UnknownToolError",
    "build_input_schema",
    "resolve_log_record_properties",
    "validate_log_record",
    "validate_request_size",
]
