from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from breadcrumbs.records import PersistedRecord
from sinks.errors import SinkErrorKind, WebhookTimeoutError
from sinks.retry import RetryPolicy
from sinks.webhook import WebhookSink


class _EndpointState:
    """Scripted behaviour and connection accounting shared with the handler threads."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.header_delay_s = 0.0
        self.slow_header_lines = 0
        self.statuses: list[int] = []
        self.log_ids: list[str] = []
        self.active = 0
        self.max_active = 0


def _make_handler(state: _EndpointState) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def do_POST(self) -> None:  # noqa: N802
            body = self.rfile.read(int(self.headers.get("content-length", "0")))
            with state.lock:
                state.active += 1
                state.max_active = max(state.max_active, state.active)
                state.log_ids.append(body.decode("utf-8").split('"log_id":"', 1)[1].split('"', 1)[0])
                status = state.statuses.pop(0) if state.statuses else 204

            self.wfile.write(f"HTTP/1.1 {status} Scripted\r\n".encode("ascii"))
            self.wfile.write(b"content-length: 0\r\n")
            self.wfile.flush()
            for index in range(state.slow_header_lines):
                time.sleep(state.header_delay_s)
                self.wfile.write(f"x-slow-{index}: 1\r\n".encode("ascii"))
                self.wfile.flush()

            # The client cannot finish the request before the blank line ending the headers.
            with state.lock:
                state.active -= 1
            self.wfile.write(b"\r\n")
            self.wfile.flush()

        def log_message(self, format: str, *args: object) -> None:  # noqa: A002
            return None

    return Handler


@pytest.fixture
def endpoint() -> Iterator[tuple[str, _EndpointState]]:
    state = _EndpointState()
    server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(state))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/ingest", state
    finally:
        server.shutdown()
        server.server_close()


def _record() -> PersistedRecord:
    return PersistedRecord(log_record={"agent_id": "codex", "work_summary": "slow endpoint"})


@pytest.mark.asyncio
async def test_timed_out_attempts_never_overlap(endpoint: tuple[str, _EndpointState]) -> None:
    url, state = endpoint
    state.header_delay_s = 0.2
    state.slow_header_lines = 3
    sink = WebhookSink(url=url, timeout_ms=300, retry=RetryPolicy(max_attempts=2, backoff_ms=0))
    record = _record()

    with pytest.raises(WebhookTimeoutError, match="Webhook request timed out after 300ms.") as excinfo:
        await sink.write(record)

    assert excinfo.value.kind is SinkErrorKind.TIMEOUT
    assert state.log_ids == [record.log_id] * 3
    assert state.max_active == 1
    assert state.active == 0


@pytest.mark.asyncio
async def test_transient_status_then_success(endpoint: tuple[str, _EndpointState]) -> None:
    url, state = endpoint
    state.statuses = [503, 200]
    sink = WebhookSink(url=url, timeout_ms=2000, retry=RetryPolicy(max_attempts=1, backoff_ms=0))
    record = _record()

    await sink.write(record)

    assert state.log_ids == [record.log_id, record.log_id]
    assert state.max_active == 1
