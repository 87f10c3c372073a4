"""The `log_work` tool: validate, guard, stamp, persist, acknowledge.

`LogWorkTool` is transport-agnostic. A server transport hands it the raw call
arguments and relays the returned result dict; the result shapes follow the
MCP tool-result convention (`content` + `structuredContent`, `isError` on
failure).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sinks.errors import SinkError

from .constants import TOOL_NAME
from .guardrails import DEFAULT_LIMITS, GuardrailLimits, validate_log_record, validate_request_size
from .records import PersistedRecord, with_server_metadata
from .schema import ArgumentsValidator, LoggingMode, ResolvedSchema, build_input_schema

if TYPE_CHECKING:
    from sinks.base import LogSink

logger = logging.getLogger(__name__)


class UnknownToolError(LookupError):
    """Raised when a call names a tool this server does not expose."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


def build_tool_description(logging_mode: LoggingMode, schema: ResolvedSchema) -> str:
    if logging_mode == "completion":
        mode_guidance = "Default mode=completion: call on meaningful progress/completion."
    else:
        mode_guidance = "Default mode=time: call periodically when possible (best-effort on unmanaged clients)."

    if schema.source == "custom":
        schema_guidance = "Schema source=custom: persisted fields are defined by inputSchema.properties.log_record.properties."
    elif schema.source == "profile":
        schema_guidance = f"Schema source=profile ({schema.profile_name}): persisted fields follow the built-in profile."
    else:
        schema_guidance = "Schema source=default: persisted fields use the default log_record schema."

    return f"Log agent work. {mode_guidance} Per-call logging_mode may override default. {schema_guidance}"


def build_error_result(message: str) -> dict[str, Any]:
    return {"isError": True, "content": [{"type": "text", "text": message}]}


def build_success_result(log_id: str) -> dict[str, Any]:
    ack = {"ok": True, "log_id": log_id}
    return {"content": [{"type": "text", "text": json.dumps(ack)}], "structuredContent": ack}


class LogWorkTool:
    """Handles `log_work` calls against a single, process-lifetime sink.

    Members:
    - Sink: `sink` (shared across concurrent calls)
    - Schema: `schema` (resolved property map + source)
    - Default logging mode: `logging_mode`
    - Server user name: `user_name` (injected into persisted records when set)
    - Limits: `limits` (guardrail ceilings)
    """

    def __init__(
        self,
        *,
        sink: LogSink,
        schema: ResolvedSchema,
        logging_mode: LoggingMode = "completion",
        user_name: str | None = None,
        limits: GuardrailLimits = DEFAULT_LIMITS,
    ) -> None:
        self.sink = sink
        self.schema = schema
        self.logging_mode = logging_mode
        self.user_name = user_name
        self.limits = limits
        self.input_schema = build_input_schema(schema.properties)
        self._validator = ArgumentsValidator(schema.properties)
        self._closed = False

    def list_tools(self) -> list[dict[str, Any]]:
        """Describe the single tool this server exposes."""
        description = f"{build_tool_description(self.logging_mode, self.schema)} {self.sink.describe()}"
        return [{"name": TOOL_NAME, "description": description, "inputSchema": self.input_schema}]

    async def call_tool(self, name: str, arguments: Any | None) -> dict[str, Any]:
        """Dispatch a tool call by name (raises `UnknownToolError` for other names)."""
        if name != TOOL_NAME:
            raise UnknownToolError(name)
        return await self.log_work(arguments if arguments is not None else {})

    async def log_work(self, raw_arguments: Any) -> dict[str, Any]:
        """Run one call through the pipeline and return the tool result.

        The log_record limits (bytes, keys, depth) are checked against the
        enriched record: when `user_name` is configured, the
        `_agent_breadcrumbs_server` metadata is added first and counts toward
        every ceiling, so what is stored never exceeds them.

        Validation failures and sink failures are returned as error results;
        they never raise, so the server stays available for the next call.
        """
        size_error = validate_request_size(raw_arguments, self.limits)
        if size_error:
            return build_error_result(size_error)

        schema_error = self._validator.validate(raw_arguments)
        if schema_error:
            return build_error_result(f"Invalid log_work arguments: {schema_error}")

        log_record = with_server_metadata(raw_arguments["log_record"], user_name=self.user_name)

        guardrail_error = validate_log_record(log_record, self.limits)
        if guardrail_error:
            return build_error_result(guardrail_error)

        # Identity and timestamp are fixed here, before the first sink attempt.
        record = PersistedRecord(log_record=log_record)

        try:
            await self.sink.write(record)
        except SinkError as exc:
            logger.error("log_work failed: log_id=%s sink=%s kind=%s", record.log_id, exc.sink, exc.kind.value)
            return build_error_result(f"Failed to persist log record: {exc}")

        logger.debug("log_work persisted log_id=%s", record.log_id)
        return build_success_result(record.log_id)

    async def aclose(self) -> None:
        """Close the sink (once)."""
        if self._closed:
            return
        self._closed = True
        await self.sink.aclose()
