"""Connection pools over SQLAlchemy's async engine.

Invariants:
    - One ``ConnectionPool`` (one ``AsyncEngine``) per pool key.
    - Statements go to the driver as text with positional parameters
      (``exec_driver_sql``); crudql compiles its own SQL.
    - A reserved ``PooledConnection`` is returned to the pool by ``release()``
      and by nothing else.

Design Decisions:
    - ``max_overflow=0``: ``connection_limit`` is a hard cap, excess callers
      wait up to ``pool_timeout`` in the pool queue.
    - pool_pre_ping plus pool_recycle=3600 drop stale server connections.
    - In-memory SQLite shares one DBAPI connection (``StaticPool``), so an
      ``asyncio.Lock`` admits one holder at a time; others wait up to
      ``pool_timeout`` like they would in the queue pool.
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, StaticPool

from crudql.config import DbConfig, PoolKey
from crudql.errors import PoolClosedError, TransactionStateError
from crudql.log import LogSink, get_logger

_EXECUTION_OPTIONS = {"preserve_rowcount": True}


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one statement.

    Attributes:
        rows: Result rows as dicts (empty for statements returning none).
        rowcount: Rows matched/affected as reported by the driver.
        lastrowid: Generated key of an INSERT, when the driver reports one.
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    rowcount: int = -1
    lastrowid: Any = None

    @classmethod
    def from_cursor(cls, result: CursorResult) -> ExecutionResult:
        if result.returns_rows:
            return cls(rows=[dict(row) for row in result.mappings()], rowcount=result.rowcount)
        return cls(rowcount=result.rowcount, lastrowid=result.lastrowid)


def _driver_params(params: Sequence[Any]) -> tuple[Any, ...] | None:
    # A list would be read as executemany; no params skips %-interpolation.
    return tuple(params) if params else None


# ---------------------------------------------------------------------------
# Reserved connection
# ---------------------------------------------------------------------------


class PooledConnection:
    """One connection checked out of a :class:`ConnectionPool`."""

    def __init__(self, conn: AsyncConnection, pool: ConnectionPool) -> None:
        self._conn = conn
        self._pool = pool
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def begin(self) -> None:
        await self._conn.begin()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecutionResult:
        if self._released:
            raise TransactionStateError("Connection was already released")
        result = await self._conn.exec_driver_sql(
            sql, _driver_params(params), execution_options=_EXECUTION_OPTIONS
        )
        return ExecutionResult.from_cursor(result)

    async def commit(self) -> None:
        await self._conn.commit()

    async def rollback(self) -> None:
        await self._conn.rollback()

    async def release(self) -> None:
        """Return the connection to its pool.  Safe to call twice."""
        if self._released:
            return
        self._released = True
        try:
            await self._conn.close()
        finally:
            self._pool._checkin()


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class ConnectionPool:
    """A bounded set of connections to one database."""

    def __init__(self, config: DbConfig, engine: AsyncEngine | None = None) -> None:
        self._config = config
        self._engine = engine if engine is not None else create_engine(config)
        self._reserved = 0
        self._closed = False
        self._holder = asyncio.Lock() if config.is_memory else None

    @property
    def config(self) -> DbConfig:
        return self._config

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_use(self) -> int:
        """Connections currently checked out of the pool."""
        checkedout = getattr(self._engine.pool, "checkedout", None)
        return checkedout() if callable(checkedout) else self._reserved

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecutionResult:
        """Run one statement in its own auto-committed transaction."""
        self._check_open()
        async with self._exclusive(), self._engine.begin() as conn:
            result = await conn.exec_driver_sql(
                sql, _driver_params(params), execution_options=_EXECUTION_OPTIONS
            )
            return ExecutionResult.from_cursor(result)

    async def reserve_connection(self) -> PooledConnection:
        """Check out a connection; waits up to ``pool_timeout`` when all are busy."""
        self._check_open()
        await self._acquire_holder()
        try:
            conn = await self._engine.connect()
        except BaseException:
            self._release_holder()
            raise
        self._reserved += 1
        return PooledConnection(conn, self)

    async def close(self) -> None:
        self._closed = True
        await self._engine.dispose()

    def _check_open(self) -> None:
        if self._closed:
            raise PoolClosedError("Connection pool was closed")

    async def _acquire_holder(self) -> None:
        if self._holder is None:
            return
        try:
            await asyncio.wait_for(self._holder.acquire(), self._config.pool_timeout)
        except asyncio.TimeoutError:
            raise PoolTimeoutError(
                f"In-memory connection still held after {self._config.pool_timeout}s"
            ) from None

    def _release_holder(self) -> None:
        if self._holder is not None:
            self._holder.release()

    def _checkin(self) -> None:
        self._reserved -= 1
        self._release_holder()

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        await self._acquire_holder()
        try:
            yield
        finally:
            self._release_holder()


def create_engine(config: DbConfig) -> AsyncEngine:
    kwargs: dict[str, Any] = {
        "pool_pre_ping": True,
        "connect_args": dict(config.connect_args),
    }
    if config.is_memory:
        # One shared connection, or each checkout would see an empty database.
        kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(
            poolclass=AsyncAdaptedQueuePool,
            pool_size=config.connection_limit,
            max_overflow=0,
            pool_timeout=config.pool_timeout,
            pool_recycle=3600,
        )
    return create_async_engine(config.url(), **kwargs)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class PoolRegistry:
    """Pool key → :class:`ConnectionPool`, created lazily on first use."""

    def __init__(self, logger: LogSink | None = None) -> None:
        self.logger: LogSink = logger or get_logger()
        self._pools: dict[PoolKey, ConnectionPool] = {}

    def __contains__(self, config: DbConfig) -> bool:
        return config.pool_key in self._pools

    def __len__(self) -> int:
        return len(self._pools)

    def resolve(self, config: DbConfig) -> ConnectionPool:
        """Return the pool for ``config``, creating it on first use."""
        key = config.pool_key
        pool = self._pools.get(key)
        if pool is None:
            self.logger.info(f"Creating new connection pool for {_describe(key)}")
            pool = ConnectionPool(config)
            self._pools[key] = pool
        return pool

    async def close_pool(self, config: DbConfig) -> None:
        key = config.pool_key
        pool = self._pools.pop(key, None)
        if pool is None:
            return
        await pool.close()
        self.logger.info(f"Closed connection pool for {_describe(key)}")

    async def close_all(self) -> None:
        """Close every pool; a failure on one is logged and the rest still close."""
        pools, self._pools = self._pools, {}
        for key, pool in pools.items():
            try:
                await pool.close()
                self.logger.info(f"Closed connection pool for {_describe(key)}")
            except Exception as exc:
                self.logger.error(
                    f"Error closing pool {_describe(key)}: {exc}",
                    extra={"pool_key": _describe(key), "error": str(exc)},
                )


def _describe(key: PoolKey) -> str:
    host = key.host or ""
    port = f":{key.port}" if key.port else ""
    user = f"{key.user}@" if key.user else ""
    return f"{user}{host}{port}/{key.database}"
