"""Query and result models for the log store read path."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

LogStoreKind = Literal["jsonl", "postgres"]
Bucket = Literal["hour", "day"]


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True)


class NormalizedEvent(_Model):
    """A persisted envelope flattened into the fields the dashboard filters on."""

    id: str
    server_timestamp: datetime
    event_time: datetime
    actor: str | None = None
    user_name: str | None = None
    summary: str | None = None
    status: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    source: LogStoreKind


class FacetQuery(_Model):
    from_: datetime | None = None
    to: datetime | None = None
    actor: str | None = None
    user: str | None = None
    search: str | None = None


class EventQuery(FacetQuery):
    status: str | None = None
    limit: int | None = None


class TimeseriesQuery(FacetQuery):
    status: str | None = None
    bucket: Bucket = "hour"


class FacetCount(_Model):
    value: str
    count: int


class Facets(_Model):
    actors: list[FacetCount] = Field(default_factory=list)
    statuses: list[FacetCount] = Field(default_factory=list)


class TimeseriesPoint(_Model):
    bucket_start: datetime
    count: int
