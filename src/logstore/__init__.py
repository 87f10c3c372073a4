"""Read path over persisted records (the dashboard's data layer).

`create_log_store()` picks a store from a `LogStoreConfig`:
- jsonl: reads the file a `JsonlSink` appends to
- postgres: scans the table a `PostgresSink` inserts into
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from breadcrumbs.constants import DEFAULT_LOG_FILE_PATH
from sinks.postgres import validate_table_identifier

from .base import LogStore
from .helpers import DEFAULT_LIMIT, MAX_LIMIT, apply_event_query, build_facets, build_timeseries, sanitize_limit
from .jsonl import JsonlLogStore
from .models import (
    EventQuery,
    FacetCount,
    FacetQuery,
    Facets,
    NormalizedEvent,
    TimeseriesPoint,
    TimeseriesQuery,
)
from .normalize import normalize_envelope
from .postgres import DEFAULT_SCAN_LIMIT, PostgresLogStore


class JsonlLogStoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["jsonl"] = "jsonl"
    path: Path = Field(default=DEFAULT_LOG_FILE_PATH)


class PostgresLogStoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["postgres"] = "postgres"
    connection_string: str
    table: str
    scan_limit: int = Field(default=DEFAULT_SCAN_LIMIT, gt=0)

    @field_validator("table")
    def validate_table(cls, v: str) -> str:
        return validate_table_identifier(v, context="Dashboard Postgres table")


LogStoreConfig = Union[JsonlLogStoreConfig, PostgresLogStoreConfig]


def create_log_store(config: LogStoreConfig) -> LogStore:
    if isinstance(config, PostgresLogStoreConfig):
        return PostgresLogStore(
            connection_string=config.connection_string,
            table=config.table,
            scan_limit=config.scan_limit,
        )
    return JsonlLogStore(path=config.path)


__all__ = [
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "EventQuery",
    "FacetCount",
    "FacetQuery",
    "Facets",
    "JsonlLogStore",
    "JsonlLogStoreConfig",
    "LogStore",
    "LogStoreConfig",
    "NormalizedEvent",
    "PostgresLogStore",
    "PostgresLogStoreConfig",
    "TimeseriesPoint",
    "TimeseriesQuery",
    "apply_event_query",
    "build_facets",
    "build_timeseries",
    "create_log_store",
    "normalize_envelope",
    "sanitize_limit",
]
