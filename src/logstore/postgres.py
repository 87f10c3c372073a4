"""Log store over the table written by `sinks.postgres.PostgresSink`.

Filters that map onto columns or `log_record` keys are pushed into a
parameterized `WHERE` clause; the newest `scan_limit` matching rows are then
normalized and filtered/bucketed in memory like the JSONL store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from breadcrumbs.constants import SERVER_METADATA_KEY
from sinks.postgres import qualified_table, validate_table_identifier

from .helpers import apply_event_query, build_facets, build_timeseries
from .models import EventQuery, FacetQuery, Facets, NormalizedEvent, TimeseriesPoint, TimeseriesQuery
from .normalize import normalize_envelope

logger = logging.getLogger(__name__)

DEFAULT_SCAN_LIMIT = 5000
DEFAULT_POOL_MAX_SIZE = 5
CONNECT_TIMEOUT_S = 5.0


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_select(table: str, query: FacetQuery, scan_limit: int) -> tuple[sql.Composed, list[Any]]:
    """Compose the scan statement and its parameters for `query`."""
    clauses: list[sql.Composable] = []
    params: list[Any] = []

    if query.from_:
        clauses.append(sql.SQL("server_timestamp >= %s"))
        params.append(query.from_)
    if query.to:
        clauses.append(sql.SQL("server_timestamp <= %s"))
        params.append(query.to)
    if query.actor:
        clauses.append(sql.SQL("COALESCE(log_record->>'agent_id', log_record->>'actor_id') = %s"))
        params.append(query.actor)
    if query.user:
        clauses.append(
            sql.SQL("COALESCE(log_record->{}->>'user_name', log_record->>'user_name') = %s").format(
                sql.Literal(SERVER_METADATA_KEY)
            )
        )
        params.append(query.user)
    status = getattr(query, "status", None)
    if status:
        clauses.append(sql.SQL("log_record->>'status' = %s"))
        params.append(status)
    if query.search:
        clauses.append(sql.SQL("log_record::text ILIKE %s"))
        params.append(f"%{_escape_like(query.search)}%")

    parts: list[sql.Composable] = [
        sql.SQL("SELECT log_id, server_timestamp, log_record FROM {}").format(qualified_table(table))
    ]
    if clauses:
        parts.append(sql.SQL("WHERE ") + sql.SQL(" AND ").join(clauses))
    parts.append(sql.SQL("ORDER BY server_timestamp DESC LIMIT %s"))
    params.append(scan_limit)
    return sql.SQL(" ").join(parts), params


class PostgresLogStore:
    name = "postgres"

    def __init__(
        self,
        *,
        connection_string: str,
        table: str,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
        pool_max_size: int = DEFAULT_POOL_MAX_SIZE,
    ) -> None:
        if not connection_string or not connection_string.strip():
            raise ValueError("Dashboard Postgres connection_string must be a non-empty string")
        if scan_limit <= 0:
            raise ValueError(f"scan_limit must be > 0. Got: {scan_limit}")
        self.table = validate_table_identifier(table, context="Dashboard Postgres table")
        self.scan_limit = scan_limit
        self._connection_string = connection_string
        self._pool_max_size = pool_max_size
        self._pool: AsyncConnectionPool | None = None
        self._pool_lock: asyncio.Lock | None = None

    async def list_events(self, query: EventQuery) -> list[NormalizedEvent]:
        return apply_event_query(await self._fetch(query), query)

    async def list_facets(self, query: FacetQuery) -> Facets:
        return build_facets(await self._fetch(query))

    async def timeseries(self, query: TimeseriesQuery) -> list[TimeseriesPoint]:
        return build_timeseries(await self._fetch(query), query)

    async def aclose(self) -> None:
        if self._pool is not None and not self._pool.closed:
            await self._pool.close()

    async def _fetch(self, query: FacetQuery) -> list[NormalizedEvent]:
        statement, params = build_select(self.table, query, self.scan_limit)
        pool = await self._open_pool()
        async with pool.connection() as conn:
            cur = await conn.execute(statement, params)
            rows = await cur.fetchall()

        events = [event for event in (normalize_envelope(row, "postgres") for row in rows) if event is not None]
        logger.debug("postgres log store scanned %d rows from %s", len(rows), self.table)
        return events

    async def _open_pool(self) -> AsyncConnectionPool:
        if self._pool_lock is None:
            self._pool_lock = asyncio.Lock()
        async with self._pool_lock:
            if self._pool is None:
                # Built here so the pool binds to the running loop.
                self._pool = AsyncConnectionPool(
                    conninfo=self._connection_string,
                    min_size=1,
                    max_size=self._pool_max_size,
                    timeout=CONNECT_TIMEOUT_S,
                    max_idle=10.0,
                    open=False,
                    kwargs={"autocommit": True, "row_factory": dict_row},
                )
            if self._pool.closed:
                await self._pool.open(wait=False)
        return self._pool
