"""HTTP webhook sink.

Each record is POSTed as the JSON envelope to the configured URL:

- headers: `content-type: application/json`, overridden/extended by configured headers
- per-attempt timeout covering connection establishment and the response headers
- bounded retries (see `sinks.retry`) on timeouts, transport failures and the
  transient statuses in `RETRYABLE_STATUS_CODES`

The HTTP call uses `requests` executed in a thread, one session (and thus one
connection) per attempt, so concurrent writes never share client state.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Final

import requests  # type: ignore

from breadcrumbs.records import PersistedRecord

from .errors import SinkError, WebhookHttpError, WebhookTimeoutError, WebhookTransportError
from .retry import RetryPolicy, SleepFn, deliver_with_retries

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({408, 425, 429, 500, 502, 503, 504})

DEFAULT_HEADERS: Final[dict[str, str]] = {"content-type": "application/json"}


class WebhookSink:
    """Delivers records to an HTTP endpoint with timeout + bounded retry."""

    name = "webhook"

    def __init__(
        self,
        *,
        url: str,
        headers: dict[str, str] | None = None,
        timeout_ms: int = 3000,
        retry: RetryPolicy | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        """Create a sink for `url`.

        Args:
            url: Endpoint receiving the POSTed envelopes.
            headers: Extra headers merged over the JSON content-type default.
            timeout_ms: Per-attempt budget, including connection establishment.
            retry: Retry policy; defaults to a single attempt.
            sleep: Backoff sleep override (tests).
        """
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0. Got: {timeout_ms}")
        self.url = url
        self.headers: dict[str, str] = {**DEFAULT_HEADERS, **(headers or {})}
        self.timeout_ms = timeout_ms
        self.retry = retry or RetryPolicy()
        self._sleep = sleep

    def describe(self) -> str:
        return f"Sink=webhook: persisted records are POSTed to {self.url}."

    async def write(self, record: PersistedRecord) -> None:
        """POST the envelope, retrying transient failures within the policy."""
        # Serialized once so every attempt transmits the identical body (same log_id).
        body = json.dumps(record.envelope(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")

        await deliver_with_retries(
            lambda: self._post_once(body),
            classify=self._classify,
            policy=self.retry,
            sleep=self._sleep,
            label=f"webhook log_id={record.log_id}",
        )

    async def _post_once(self, body: bytes) -> None:
        """Send a single attempt, bounded by the per-attempt timeout.

        When the budget expires the worker thread is still awaited before the
        timeout propagates, so the next attempt never overlaps this one. Every
        blocking socket operation in the worker is itself bounded by the budget.
        """
        timeout_s = self.timeout_ms / 1000.0
        worker = asyncio.ensure_future(asyncio.to_thread(self._request_once, body, timeout_s))
        try:
            status_code = await asyncio.wait_for(asyncio.shield(worker), timeout=timeout_s)
        except asyncio.TimeoutError:
            await asyncio.gather(worker, return_exceptions=True)
            raise
        if not 200 <= status_code < 300:
            raise WebhookHttpError(status_code, retryable=status_code in RETRYABLE_STATUS_CODES)

    def _request_once(self, body: bytes, timeout_s: float) -> int:
        """POST once and return the status code (runs in a worker thread).

        Only the status line and headers are read; the response body is never
        consumed and the connection is closed with the session.
        """
        with requests.Session() as session:
            resp = session.post(self.url, data=body, headers=dict(self.headers), timeout=timeout_s, stream=True)
            resp.close()
            return resp.status_code

    def _classify(self, exc: BaseException) -> SinkError:
        return classify_webhook_error(exc, timeout_ms=self.timeout_ms)

    async def aclose(self) -> None:  # noqa: D401 - keep interface consistent
        """No-op: the sink holds no pooled connections."""


def classify_webhook_error(exc: BaseException, *, timeout_ms: int) -> SinkError:
    """Map a failure raised by one attempt onto the webhook error taxonomy."""
    if isinstance(exc, SinkError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, requests.Timeout)):
        return WebhookTimeoutError(timeout_ms)
    return WebhookTransportError(_describe(exc))


def _describe(exc: BaseException) -> str:
    message = str(exc)
    return message or type(exc).__name__
