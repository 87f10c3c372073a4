from __future__ import annotations

import json
import uuid

import pytest

from breadcrumbs.constants import SERVER_METADATA_KEY
from breadcrumbs.guardrails import GuardrailLimits
from breadcrumbs.records import PersistedRecord
from breadcrumbs.schema import resolve_log_record_properties
from breadcrumbs.tool import LogWorkTool, UnknownToolError
from sinks.errors import WebhookHttpError
from sinks.memory import InMemorySink


class _FailingSink:
    name = "failing"

    def __init__(self) -> None:
        self.attempted: list[PersistedRecord] = []

    async def write(self, record: PersistedRecord) -> None:
        self.attempted.append(record)
        raise WebhookHttpError(500, retryable=True)

    async def aclose(self) -> None:
        return None

    def describe(self) -> str:
        return "Sink=failing."


def _make_tool(sink=None, **kwargs) -> LogWorkTool:
    return LogWorkTool(
        sink=sink or InMemorySink(),
        schema=resolve_log_record_properties(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_log_work_persists_and_acknowledges() -> None:
    sink = InMemorySink()
    tool = _make_tool(sink)
    log_record = {"agent_id": "codex", "work_summary": "Added retries"}

    result = await tool.call_tool("log_work", {"log_record": log_record})

    assert "isError" not in result
    ack = result["structuredContent"]
    assert ack["ok"] is True
    assert str(uuid.UUID(ack["log_id"])) == ack["log_id"]
    assert json.loads(result["content"][0]["text"]) == ack

    (record,) = sink.snapshot()
    assert record.log_id == ack["log_id"]
    assert record.log_record == log_record
    assert record.server_timestamp.endswith("Z")


@pytest.mark.asyncio
async def test_user_name_is_injected_into_a_copy() -> None:
    sink = InMemorySink()
    tool = _make_tool(sink, user_name="alice")
    log_record = {"work_summary": "done"}

    await tool.call_tool("log_work", {"log_record": log_record})

    (record,) = sink.snapshot()
    assert record.log_record[SERVER_METADATA_KEY] == {"user_name": "alice", "source": "config.user_name"}
    assert SERVER_METADATA_KEY not in log_record


@pytest.mark.asyncio
async def test_injected_metadata_counts_toward_key_limit() -> None:
    limits = GuardrailLimits(max_log_record_keys=3)
    log_record = {"agent_id": "codex", "work_summary": "done"}

    plain_sink = InMemorySink()
    plain = await _make_tool(plain_sink, limits=limits).log_work({"log_record": log_record})
    assert plain["structuredContent"]["ok"] is True

    enriched_sink = InMemorySink()
    enriched = await _make_tool(enriched_sink, user_name="alice", limits=limits).log_work({"log_record": log_record})
    assert enriched["isError"] is True
    assert enriched["content"][0]["text"] == "log_record exceeds 3 total keys limit."
    assert enriched_sink.snapshot() == []


@pytest.mark.asyncio
async def test_rejected_calls_do_not_poison_the_server() -> None:
    sink = InMemorySink()
    tool = _make_tool(sink)

    for _ in range(20):
        result = await tool.call_tool("log_work", {"log_record": {"agent_id": 42}})
        assert result["isError"] is True
        assert result["content"][0]["text"] == "Invalid log_work arguments: /log_record/agent_id must be string"

    result = await tool.call_tool("log_work", {"log_record": {"agent_id": "codex"}})
    assert result["structuredContent"]["ok"] is True
    assert len(sink.snapshot()) == 1


@pytest.mark.asyncio
async def test_guardrail_rejection_never_reaches_sink() -> None:
    sink = InMemorySink()
    tool = _make_tool(sink)

    result = await tool.log_work({"log_record": {"work_summary": "x" * 16_384}})

    assert result == {
        "isError": True,
        "content": [{"type": "text", "text": "log_record exceeds 16384 bytes limit."}],
    }
    assert sink.snapshot() == []


@pytest.mark.asyncio
async def test_missing_arguments_are_a_schema_error() -> None:
    tool = _make_tool()
    result = await tool.call_tool("log_work", None)
    assert result["content"][0]["text"] == "Invalid log_work arguments: must have required property 'log_record'"


@pytest.mark.asyncio
async def test_sink_failure_becomes_error_result() -> None:
    sink = _FailingSink()
    tool = _make_tool(sink)

    result = await tool.call_tool("log_work", {"log_record": {"work_summary": "x"}})

    assert result["isError"] is True
    assert result["content"][0]["text"] == (
        "Failed to persist log record: Webhook endpoint responded with status 500."
    )
    assert len(sink.attempted) == 1


@pytest.mark.asyncio
async def test_unknown_tool_raises() -> None:
    tool = _make_tool()
    with pytest.raises(UnknownToolError, match="Unknown tool: delete_everything"):
        await tool.call_tool("delete_everything", {})


def test_list_tools_describes_mode_schema_and_sink() -> None:
    tool = LogWorkTool(
        sink=InMemorySink(),
        schema=resolve_log_record_properties(raw_profile="audit_trail_v1"),
        logging_mode="time",
    )

    (spec,) = tool.list_tools()

    assert spec["name"] == "log_work"
    assert "Default mode=time" in spec["description"]
    assert "Schema source=profile (audit_trail_v1)" in spec["description"]
    assert spec["description"].endswith("Sink=memory: persisted records are kept in process memory.")
    assert "actor_id" in spec["inputSchema"]["properties"]["log_record"]["properties"]


@pytest.mark.asyncio
async def test_aclose_closes_sink_once() -> None:
    sink = InMemorySink()
    tool = _make_tool(sink)

    await tool.aclose()
    sink.closed = False
    await tool.aclose()

    assert sink.closed is False
