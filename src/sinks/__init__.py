"""Sinks: delivery targets for persisted `log_work` records.

- `JsonlSink`: append-only local file
- `WebhookSink`: HTTP POST with timeout + bounded retry
- `PostgresSink`: parameterized insert through a small connection pool
- `InMemorySink`: tests and local debugging

`create_sink` builds exactly one of them from a resolved `SinkConfig`.
"""

from .base import LogSink
from .errors import (
    JsonlWriteError,
    PostgresAuthError,
    PostgresQueryError,
    PostgresTimeoutError,
    PostgresTransportError,
    SinkError,
    SinkErrorKind,
    WebhookHttpError,
    WebhookTimeoutError,
    WebhookTransportError,
)
from .factory import create_sink
from .jsonl import JsonlSink
from .memory import InMemorySink
from .postgres import PostgresSink
from .retry import RetryPolicy, deliver_with_retries
from .settings import JsonlSinkConfig, PostgresSinkConfig, SinkConfig, WebhookSinkConfig
from .webhook import WebhookSink

__all__ = [
    "InMemorySink",
    "JsonlSink",
    "JsonlSinkConfig",
    "JsonlWriteError",
    "LogSink",
    "PostgresAuthError",
    "PostgresQueryError",
    "PostgresSink",
    "PostgresSinkConfig",
    "PostgresTimeoutError",
    "PostgresTransportError",
    "RetryPolicy",
    "SinkConfig",
    "SinkError",
    "SinkErrorKind",
    "WebhookHttpError",
    "WebhookSink",
    "WebhookSinkConfig",
    "WebhookTimeoutError",
    "WebhookTransportError",
    "create_sink",
    "deliver_with_retries",
]
