"""Log store over the JSONL file written by `sinks.jsonl.JsonlSink`."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from .helpers import apply_event_query, build_facets, build_timeseries, matches_query, newest_first
from .models import EventQuery, FacetQuery, Facets, NormalizedEvent, TimeseriesPoint, TimeseriesQuery
from .normalize import normalize_envelope

logger = logging.getLogger(__name__)


class JsonlLogStore:
    name = "jsonl"

    def __init__(self, *, path: str | Path) -> None:
        self.path = Path(path)

    async def list_events(self, query: EventQuery) -> list[NormalizedEvent]:
        return apply_event_query(await self._load(), query)

    async def list_facets(self, query: FacetQuery) -> Facets:
        return build_facets(await self._load(query))

    async def timeseries(self, query: TimeseriesQuery) -> list[TimeseriesPoint]:
        return build_timeseries(await self._load(query), query)

    async def aclose(self) -> None:
        """No-op."""

    async def _load(self, query: FacetQuery | None = None) -> list[NormalizedEvent]:
        lines = await asyncio.to_thread(self._read_lines)
        events: list[NormalizedEvent] = []
        skipped = 0
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                skipped += 1
                continue
            event = normalize_envelope(row, "jsonl") if isinstance(row, dict) else None
            if event is None:
                skipped += 1
                continue
            if query is not None and not matches_query(event, query):
                continue
            events.append(event)

        if skipped:
            logger.debug("jsonl log store skipped %d unusable lines in %s", skipped, self.path)
        return newest_first(events)

    def _read_lines(self) -> list[str]:
        """Read the whole file; a missing file reads as empty (runs in a worker thread)."""
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                return fh.readlines()
        except FileNotFoundError:
            return []
