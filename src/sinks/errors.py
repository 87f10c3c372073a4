"""Classified sink errors.

Each failure observed by a sink is classified exactly once, at the point the
underlying I/O error is caught, into one of the `SinkErrorKind` variants. The
resulting exception carries everything the retry loop needs (`kind`,
`retryable`) plus kind-specific detail (`status_code`, `code`), so nothing
downstream has to re-inspect the original exception.
"""

from __future__ import annotations

from enum import Enum


class SinkErrorKind(str, Enum):
    HTTP = "http"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    AUTH = "auth"
    QUERY = "query"
    IO = "io"


class SinkError(RuntimeError):
    """Base class for delivery failures surfaced by a sink."""

    sink: str = "sink"
    kind: SinkErrorKind = SinkErrorKind.TRANSPORT

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(message)


class JsonlWriteError(SinkError):
    """The JSONL file could not be created or appended to."""

    sink = "jsonl"
    kind = SinkErrorKind.IO

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"JSONL sink failed to append to {path}: {reason}")


class WebhookHttpError(SinkError):
    """The endpoint answered with a non-2xx status."""

    sink = "webhook"
    kind = SinkErrorKind.HTTP

    def __init__(self, status_code: int, *, retryable: bool = False) -> None:
        self.status_code = status_code
        super().__init__(f"Webhook endpoint responded with status {status_code}.", retryable=retryable)


class WebhookTimeoutError(SinkError):
    sink = "webhook"
    kind = SinkErrorKind.TIMEOUT

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Webhook request timed out after {timeout_ms}ms.", retryable=True)


class WebhookTransportError(SinkError):
    sink = "webhook"
    kind = SinkErrorKind.TRANSPORT

    def __init__(self, reason: str) -> None:
        super().__init__(f"Webhook transport error: {reason}", retryable=True)


class PostgresAuthError(SinkError):
    sink = "postgres"
    kind = SinkErrorKind.AUTH

    def __init__(self, code: str | None = None) -> None:
        self.code = code
        super().__init__("Postgres authentication failed.", retryable=False)


class PostgresTimeoutError(SinkError):
    sink = "postgres"
    kind = SinkErrorKind.TIMEOUT

    def __init__(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms
        super().__init__(f"Postgres timeout after {timeout_ms}ms.", retryable=True)


class PostgresTransportError(SinkError):
    sink = "postgres"
    kind = SinkErrorKind.TRANSPORT

    def __init__(self, reason: str) -> None:
        super().__init__(f"Postgres transport error: {reason}", retryable=True)


class PostgresQueryError(SinkError):
    """Any other database-reported failure, with its SQLSTATE when known."""

    sink = "postgres"
    kind = SinkErrorKind.QUERY

    def __init__(self, reason: str, code: str | None = None, *, retryable: bool = False) -> None:
        self.code = code
        prefix = f"Postgres query error ({code})" if code else "Postgres query error"
        super().__init__(f"{prefix}: {reason}", retryable=retryable)
