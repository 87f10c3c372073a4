from __future__ import annotations

from typing import Protocol

from .models import EventQuery, FacetQuery, Facets, NormalizedEvent, TimeseriesPoint, TimeseriesQuery


class LogStore(Protocol):
    """Read side of a sink: list, facet and bucket persisted records."""

    async def list_events(self, query: EventQuery) -> list[NormalizedEvent]: ...

    async def list_facets(self, query: FacetQuery) -> Facets: ...

    async def timeseries(self, query: TimeseriesQuery) -> list[TimeseriesPoint]: ...

    async def aclose(self) -> None: ...
