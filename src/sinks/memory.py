"""Process-local sink holding persisted records in a list."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from breadcrumbs.records import PersistedRecord


class InMemorySink:
    """Keeps every written record in a list."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[PersistedRecord] = []
        self.closed = False

    async def write(self, record: PersistedRecord) -> None:
        """Keep the record; concurrent writers are serialized by the lock."""
        with self._lock:
            self._records.append(record)

    async def aclose(self) -> None:
        self.closed = True

    def describe(self) -> str:
        return "Sink=memory: persisted records are kept in process memory."

    def snapshot(self) -> Sequence[PersistedRecord]:
        """Return the records written so far, oldest first."""
        with self._lock:
            return list(self._records)
