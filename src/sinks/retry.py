"""Bounded retry loop shared by the networked sinks.

Attempts run strictly one after another for `attempt in 1..max_attempts + 1`.
The only state carried between them is the last classified error. A retry
happens only when the attempt was not the last one AND the error is retryable.
Backoff is linear: `backoff_ms * attempt` after failed attempt number `attempt`.

`sleep` is injectable so tests can assert on backoff without waiting.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .errors import SinkError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

SleepFn = Callable[[float], Awaitable[None]]


class RetryPolicy(BaseModel):
    """`max_attempts` retries after the first attempt; `0` means a single attempt."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=0, ge=0, description="Retries after the first attempt")
    backoff_ms: int = Field(default=250, ge=0, description="Linear backoff step (milliseconds)")

    @property
    def total_attempts(self) -> int:
        return self.max_attempts + 1

    def delay_seconds(self, attempt: int) -> float:
        """Backoff after failed attempt number `attempt` (1-indexed)."""
        return self.backoff_ms * attempt / 1000.0


async def _default_sleep(seconds: float) -> None:
    if seconds <= 0:
        return
    await asyncio.sleep(seconds)


async def deliver_with_retries(
    attempt_fn: Callable[[], Awaitable[_T]],
    *,
    classify: Callable[[BaseException], SinkError],
    policy: RetryPolicy,
    sleep: SleepFn | None = None,
    label: str = "sink",
) -> _T:
    """Run `attempt_fn` until it succeeds or the retry budget is spent.

    Every exception raised by an attempt is passed through `classify` once; the
    classified `SinkError` decides whether to retry and is what finally
    propagates (chained to the original exception).
    """
    sleep_fn = sleep or _default_sleep
    total = policy.total_attempts
    last_error: SinkError | None = None

    for attempt in range(1, total + 1):
        try:
            return await attempt_fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - classify and retry/raise
            last_error = classify(exc)
            if last_error is not exc:
                last_error.__cause__ = exc

        if attempt >= total or not last_error.retryable:
            logger.error(
                "%s delivery failed after %d/%d attempt(s): %s", label, attempt, total, last_error
            )
            raise last_error

        delay = policy.delay_seconds(attempt)
        logger.warning(
            "%s attempt %d/%d failed (%s); retrying in %.3fs",
            label,
            attempt,
            total,
            last_error.kind.value,
            delay,
        )
        await sleep_fn(delay)

    # Unreachable: the loop either returns or raises on the final attempt.
    raise RuntimeError("retry loop exited without a result")
