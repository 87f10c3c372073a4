"""Sink contract."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from breadcrumbs.records import PersistedRecord


class LogSink(Protocol):
    """An async delivery target for persisted records.

    - `write` returning normally means the sink accepted the record; raising a
      `SinkError` means the record was not confirmed persisted.
    - `write` may be called concurrently by overlapping calls.
    - `aclose` releases pooled resources; it is called at most once, at shutdown.
    """

    name: str

    async def write(self, record: PersistedRecord) -> None:
        """Persist or deliver a single record."""

    async def aclose(self) -> None:
        """Close any underlying resources."""

    def describe(self) -> str:
        """Return a one-line, human-readable description of the destination."""
