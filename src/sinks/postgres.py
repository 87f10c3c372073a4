"""Postgres sink: one parameterized INSERT per record.

Target table shape:

    log_id            text primary key
    server_timestamp  timestamptz not null
    log_record        jsonb not null

Failures are classified into auth / timeout / transport / query errors. The
transient set is fixed: timeouts, transport failures, the SQLSTATEs in
`RETRYABLE_QUERY_CODES` and anything in the connection-exception class (`08`).
"""

from __future__ import annotations

import asyncio
import errno
import logging
import re
import socket
from collections.abc import Awaitable, Callable
from typing import Final

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from breadcrumbs.records import PersistedRecord

from .errors import (
    PostgresAuthError,
    PostgresQueryError,
    PostgresTimeoutError,
    PostgresTransportError,
    SinkError,
)
from .retry import RetryPolicy, SleepFn, deliver_with_retries

logger = logging.getLogger(__name__)

TABLE_IDENTIFIER_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$"
)

STATEMENT_TIMEOUT_CODE: Final[str] = "57014"
AUTH_ERROR_CODES: Final[frozenset[str]] = frozenset({"28P01", "28000", "42501"})
RETRYABLE_QUERY_CODES: Final[frozenset[str]] = frozenset(
    {"40001", "40P01", "53300", "57P01", "57P02", "57P03"}
)
CONNECTION_EXCEPTION_CLASS: Final[str] = "08"
TRANSPORT_ERRNO_NAMES: Final[frozenset[str]] = frozenset(
    {
        "ECONNREFUSED",
        "ECONNRESET",
        "EPIPE",
        "ETIMEDOUT",
        "ENOTFOUND",
        "EHOSTUNREACH",
        "ENETUNREACH",
        "ECONNABORTED",
    }
)
_TRANSPORT_MESSAGE = re.compile(
    r"connect|connection|socket|network|dns|econn|broken pipe|unreachable|host name", re.IGNORECASE
)
# Login failures arrive during connect, before any SQLSTATE is available.
_AUTH_MESSAGE = re.compile(
    r"password authentication failed|authentication failed|no pg_hba\.conf entry|no password supplied"
    r"|permission denied for database",
    re.IGNORECASE,
)

DEFAULT_POOL_MAX_SIZE: Final[int] = 2
CHECKOUT_POLL_INTERVAL_S: Final[float] = 0.05

InsertFn = Callable[[PersistedRecord], Awaitable[None]]
ConnectOutcomeFn = Callable[[BaseException | None], None]


def validate_table_identifier(table: str, *, context: str = "table") -> str:
    """Return `table` if it is `name` or `schema.name`; raise `ValueError` otherwise."""
    if not isinstance(table, str) or not table.strip():
        raise ValueError(f"{context} must be a non-empty string")
    if not TABLE_IDENTIFIER_PATTERN.match(table):
        raise ValueError(
            f"{context} must match schema.table or table format using letters, numbers, "
            f"and underscores. Received: {table}"
        )
    return table


def qualified_table(table: str) -> sql.Identifier:
    """Quote a validated `[schema.]table` as a (possibly qualified) identifier."""
    return sql.Identifier(*table.split("."))


def reporting_connection_class(report: ConnectOutcomeFn) -> type[psycopg.AsyncConnection]:
    """Return an `AsyncConnection` subclass that reports every connect outcome.

    The pool opens connections in background workers, so a refused or rejected
    connect is otherwise only visible in the pool's own log.
    """

    class ReportingConnection(psycopg.AsyncConnection):
        @classmethod
        async def connect(cls, *args, **kwargs):  # type: ignore[override]
            try:
                conn = await super().connect(*args, **kwargs)
            except psycopg.OperationalError as exc:
                report(exc)
                raise
            report(None)
            return conn

    return ReportingConnection


class PostgresSink:
    """Inserts records through a small shared connection pool."""

    name = "postgres"

    def __init__(
        self,
        *,
        connection_string: str,
        table: str,
        timeout_ms: int = 5000,
        retry: RetryPolicy | None = None,
        pool_max_size: int = DEFAULT_POOL_MAX_SIZE,
        insert_record: InsertFn | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        """Validate settings and prepare (but do not open) the pool.

        Args:
            connection_string: libpq connection string / URL.
            table: Destination `table` or `schema.table`.
            timeout_ms: Per-attempt budget for acquisition, execution and the whole query.
            retry: Retry policy; defaults to a single attempt.
            pool_max_size: Upper bound on pooled connections.
            insert_record: Replaces the pooled insert (tests).
            sleep: Backoff sleep override (tests).
        """
        if not connection_string or not connection_string.strip():
            raise ValueError("connection_string must be a non-empty string")
        if timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be > 0. Got: {timeout_ms}")

        self.table = validate_table_identifier(table)
        self.timeout_ms = timeout_ms
        self.retry = retry or RetryPolicy()
        self._sleep = sleep
        self._insert_statement = sql.SQL(
            "INSERT INTO {} (log_id, server_timestamp, log_record) VALUES (%s, %s::timestamptz, %s)"
        ).format(qualified_table(self.table))

        self._pool: AsyncConnectionPool | None = None
        self._closed = False
        self._pool_lock: asyncio.Lock | None = None
        self._connect_error: BaseException | None = None
        self._insert: InsertFn
        if insert_record is not None:
            self._insert = insert_record
        else:
            timeout_s = timeout_ms / 1000.0
            self._pool = AsyncConnectionPool(
                conninfo=connection_string,
                min_size=1,
                max_size=pool_max_size,
                timeout=timeout_s,
                open=False,
                check=AsyncConnectionPool.check_connection,
                connection_class=reporting_connection_class(self._record_connect_outcome),
                kwargs={
                    "connect_timeout": max(1, int(timeout_s + 0.999)),
                    "options": f"-c statement_timeout={timeout_ms}",
                    "autocommit": True,
                },
            )
            self._insert = self._insert_pooled

    def describe(self) -> str:
        return f"Sink=postgres: persisted records are inserted into {self.table}."

    async def write(self, record: PersistedRecord) -> None:
        """Insert the record, retrying transient failures within the policy."""
        await deliver_with_retries(
            lambda: self._attempt(record),
            classify=self._classify,
            policy=self.retry,
            sleep=self._sleep,
            label=f"postgres log_id={record.log_id}",
        )

    async def _attempt(self, record: PersistedRecord) -> None:
        await asyncio.wait_for(self._insert(record), timeout=self.timeout_ms / 1000.0)

    async def _insert_pooled(self, record: PersistedRecord) -> None:
        pool = await self._open_pool()
        conn = await self._checkout(pool)
        try:
            await conn.execute(
                self._insert_statement,
                (record.log_id, record.server_timestamp, Jsonb(record.log_record)),
            )
        finally:
            await pool.putconn(conn)

    async def _checkout(self, pool: AsyncConnectionPool) -> psycopg.AsyncConnection:
        """Take a pooled connection, or raise the connect error keeping the pool empty.

        The wait is split into short slices; between slices the outcome of the
        pool's latest background connect is checked.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_ms / 1000.0
        while True:
            remaining = deadline - loop.time()
            try:
                return await pool.getconn(timeout=max(min(CHECKOUT_POLL_INTERVAL_S, remaining), 0.001))
            except PoolTimeout:
                if self._connect_error is not None:
                    raise self._connect_error
                if loop.time() >= deadline:
                    raise

    def _record_connect_outcome(self, exc: BaseException | None) -> None:
        self._connect_error = exc

    async def _open_pool(self) -> AsyncConnectionPool:
        """Open the pool on first use (it must be opened inside the running loop)."""
        pool = self._pool
        if pool is None:
            raise PostgresQueryError("sink has no connection pool")
        if self._closed:
            raise PostgresQueryError("sink is closed")
        if self._pool_lock is None:
            self._pool_lock = asyncio.Lock()
        async with self._pool_lock:
            if pool.closed:
                await pool.open(wait=False)
                logger.info("postgres sink pool opened for table %s", self.table)
        return pool

    def _classify(self, exc: BaseException) -> SinkError:
        return classify_postgres_error(exc, timeout_ms=self.timeout_ms)

    async def aclose(self) -> None:
        """Close pooled connections; in-flight writes fail with a classified error."""
        self._closed = True
        if self._pool is not None and not self._pool.closed:
            await self._pool.close()
            logger.info("postgres sink pool closed")


def classify_postgres_error(exc: BaseException, *, timeout_ms: int) -> SinkError:
    """Map a failure raised by one attempt onto the Postgres error taxonomy."""
    if isinstance(exc, SinkError):
        return exc

    code = _sqlstate(exc)
    message = str(exc).strip() or type(exc).__name__

    if _is_timeout(exc, code, message, timeout_ms):
        return PostgresTimeoutError(timeout_ms)
    if code in AUTH_ERROR_CODES or (code is None and _AUTH_MESSAGE.search(message)):
        return PostgresAuthError(code)
    if _is_transport(exc, code, message):
        return PostgresTransportError(message)
    return PostgresQueryError(message, code, retryable=is_retryable_query_code(code))


def is_retryable_query_code(code: str | None) -> bool:
    if not code:
        return False
    return code in RETRYABLE_QUERY_CODES or code.startswith(CONNECTION_EXCEPTION_CLASS)


def _sqlstate(exc: BaseException) -> str | None:
    code = getattr(exc, "sqlstate", None)
    return code if isinstance(code, str) and code else None


def _is_timeout(exc: BaseException, code: str | None, message: str, timeout_ms: int) -> bool:
    if code == STATEMENT_TIMEOUT_CODE:
        return True
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, PoolTimeout)):
        return True
    lowered = message.lower()
    return "timeout" in lowered or f"{timeout_ms}ms" in lowered


def _is_transport(exc: BaseException, code: str | None, message: str) -> bool:
    if code and code.startswith(CONNECTION_EXCEPTION_CLASS):
        return True
    if isinstance(exc, socket.gaierror):
        return True
    if isinstance(exc, OSError) and exc.errno is not None:
        if errno.errorcode.get(exc.errno) in TRANSPORT_ERRNO_NAMES:
            return True
    if isinstance(exc, psycopg.OperationalError) and code is None:
        return True
    return bool(_TRANSPORT_MESSAGE.search(message))
