"""In-memory filter/sort/limit, facet and timeseries helpers shared by the stores."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable

from .models import EventQuery, FacetCount, FacetQuery, Facets, NormalizedEvent, TimeseriesPoint, TimeseriesQuery
from .normalize import bucket_start, event_search_text

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def sanitize_limit(raw_limit: int | None) -> int:
    """Clamp a requested page size into `[1, MAX_LIMIT]`; missing/zero means the default."""
    if not raw_limit:
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, int(raw_limit)))


def matches_query(event: NormalizedEvent, query: FacetQuery) -> bool:
    if query.from_ and event.event_time < query.from_:
        return False
    if query.to and event.event_time > query.to:
        return False
    if query.actor and event.actor != query.actor:
        return False
    if query.user and event.user_name != query.user:
        return False
    status = getattr(query, "status", None)
    if status and event.status != status:
        return False
    if query.search and query.search.lower() not in event_search_text(event):
        return False
    return True


def newest_first(events: Iterable[NormalizedEvent]) -> list[NormalizedEvent]:
    return sorted(events, key=lambda e: e.event_time, reverse=True)


def apply_event_query(events: Iterable[NormalizedEvent], query: EventQuery) -> list[NormalizedEvent]:
    limit = sanitize_limit(query.limit)
    return newest_first(e for e in events if matches_query(e, query))[:limit]


def _sorted_counts(counter: Counter[str]) -> list[FacetCount]:
    ordered = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [FacetCount(value=value, count=count) for value, count in ordered]


def build_facets(events: Iterable[NormalizedEvent]) -> Facets:
    actors: Counter[str] = Counter()
    statuses: Counter[str] = Counter()
    for event in events:
        if event.actor:
            actors[event.actor] += 1
        if event.status:
            statuses[event.status] += 1
    return Facets(actors=_sorted_counts(actors), statuses=_sorted_counts(statuses))


def build_timeseries(events: Iterable[NormalizedEvent], query: TimeseriesQuery) -> list[TimeseriesPoint]:
    buckets: Counter = Counter(bucket_start(e.event_time, query.bucket) for e in events if matches_query(e, query))
    return [TimeseriesPoint(bucket_start=start, count=count) for start, count in sorted(buckets.items())]
