"""Multi-statement transactions on one reserved connection.

State machine::

    CREATED ──init()──▶ ACTIVE ──commit() / rollback()──▶ TERMINATED
       │                                                      ▲
       └──────────────── init() fails ────────────────────────┘

Invariants:
    - A session reserves at most one connection, and returns it to the pool
      exactly once, whether it ends by commit, rollback, or a failed init.
    - Statements, commit and the builder methods require ACTIVE.
    - A terminated session cannot be restarted; create a new one.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from types import TracebackType
from typing import Any

from crudql.compile.base import CompiledStatement
from crudql.compile.builder import QueryBuilder
from crudql.compile.registry import CompilerFactory
from crudql.config import DbConfig
from crudql.errors import ConfigurationError, NoActiveTransactionError, TransactionStateError
from crudql.execution.executor import StatementExecutor
from crudql.execution.pool import ExecutionResult, PooledConnection, PoolRegistry
from crudql.log import LogSink, get_logger
from crudql.schema.descriptors import DeleteQuery, SelectQuery, UpdateQuery


class TransactionState(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    TERMINATED = "terminated"


class TransactionSession:
    """A transaction pinned to one pooled connection.

    Usually obtained from :meth:`crudql.Database.transaction`::

        async with db.transaction() as tx:
            order_id = await tx.insert("orders", {"user_id": 7})
            await tx.update_where({"table": "stock", "data": {...}, "where": {...}})

    The ``async with`` form commits on a clean exit and rolls back when the
    block raises.  Without it, call :meth:`init`, then :meth:`commit` or
    :meth:`rollback`.

    Args:
        pools: Registry supplying the connection pool.
        config: Connection config used by :meth:`init` when it gets none.
        executor: Statement executor shared with the owning database.
        logger: Sink for lifecycle records.
    """

    def __init__(
        self,
        pools: PoolRegistry,
        config: DbConfig | None = None,
        executor: StatementExecutor | None = None,
        logger: LogSink | None = None,
    ) -> None:
        self._pools = pools
        self._config = config
        self._logger: LogSink = logger or get_logger()
        self._executor = executor or StatementExecutor(self._logger)
        self._connection: PooledConnection | None = None
        self._builder: QueryBuilder | None = None
        self._state = TransactionState.CREATED

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self, config: DbConfig | Mapping[str, Any] | None = None) -> TransactionSession:
        """Reserve a connection and begin the transaction.

        Args:
            config: Overrides the session's connection config.

        Raises:
            TransactionStateError: If the session was already started.
            ConfigurationError: If no connection config is available.
            Exception: Whatever the pool or driver raised; the session is
                then terminated and any reserved connection released.
        """
        if self._state is not TransactionState.CREATED:
            raise TransactionStateError(
                "Transaction was already started; create a new session",
                state=self._state.value,
            )
        resolved = DbConfig.coerce(config) if config is not None else self._config
        if resolved is None:
            raise ConfigurationError(
                "Database configuration missing. Call crudql.init() first or provide a config"
            )

        try:
            pool = self._pools.resolve(resolved)
            self._connection = await pool.reserve_connection()
            await self._connection.begin()
        except Exception as exc:
            self._logger.error(
                f"Failed to initialize transaction: {exc}",
                extra={"operation": "TRANS_INIT", "error": str(exc)},
            )
            await self._release()
            raise

        self._builder = QueryBuilder(CompilerFactory.create(resolved.dialect))
        self._state = TransactionState.ACTIVE
        self._logger.info("Transaction initialized successfully")
        return self

    async def commit(self) -> None:
        """Commit and release the connection.

        On a failed commit the transaction is rolled back (best effort) and
        the commit failure re-raised.  The connection is released either way.

        Raises:
            NoActiveTransactionError: If the session is not active.
        """
        if self._state is not TransactionState.ACTIVE or self._connection is None:
            raise NoActiveTransactionError(
                "No active transaction to commit", state=self._state.value
            )
        connection = self._connection
        try:
            await connection.commit()
            self._logger.info("Transaction committed")
        except Exception as exc:
            self._logger.error(
                f"Commit failed, rolling back: {exc}",
                extra={"operation": "TRANS_COMMIT", "error": str(exc)},
            )
            await self._rollback_quietly(connection)
            raise
        finally:
            await self._release()

    async def rollback(self) -> None:
        """Roll back and release the connection.

        A no-op when nothing is reserved (never started, or already ended).
        A failing rollback is logged, not raised.
        """
        connection = self._connection
        if connection is None:
            return
        try:
            await self._rollback_quietly(connection)
        finally:
            await self._release()

    async def _rollback_quietly(self, connection: PooledConnection) -> None:
        try:
            await connection.rollback()
            self._logger.info("Transaction rolled back")
        except Exception as exc:
            self._logger.error(
                f"Rollback failed: {exc}",
                extra={"operation": "TRANS_ROLLBACK", "error": str(exc)},
            )

    async def _release(self) -> None:
        connection, self._connection = self._connection, None
        self._state = TransactionState.TERMINATED
        if connection is not None:
            await connection.release()

    async def __aenter__(self) -> TransactionSession:
        if self._state is TransactionState.CREATED:
            await self.init()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()
        elif self._state is TransactionState.ACTIVE:
            await self.commit()

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def _active(self, operation: str) -> tuple[PooledConnection, QueryBuilder]:
        connection, builder = self._connection, self._builder
        if (
            self._state is not TransactionState.ACTIVE
            or connection is None
            or builder is None
        ):
            raise NoActiveTransactionError(
                f"No active transaction for {operation}. Call init() first.",
                state=self._state.value,
            )
        return connection, builder

    def _require_active(self, operation: str) -> QueryBuilder:
        return self._active(operation)[1]

    async def _run(self, statement: CompiledStatement, operation: str) -> ExecutionResult:
        connection, _ = self._active(operation)
        return await self._executor.run(connection, statement, operation)

    async def execute(
        self, sql: str, params: Sequence[Any] = (), operation: str = "TRANS_QUERY"
    ) -> ExecutionResult:
        """Run caller-written SQL on the reserved connection.

        Raises:
            NoActiveTransactionError: If the session is not active.
        """
        builder = self._require_active(operation)
        statement = CompiledStatement.raw(sql, params, builder.compiler.dialect_name)
        return await self._run(statement, operation)

    async def find(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        return (await self.execute(sql, params, "TRANS_FIND")).rows

    async def insert(self, table: str, data: Mapping[str, Any], ignore: bool = False) -> Any:
        """Insert one row; returns the generated key, if any."""
        builder = self._require_active("TRANS_INSERT")
        result = await self._run(builder.build_insert(table, data, ignore=ignore), "TRANS_INSERT")
        return result.lastrowid

    async def update(
        self,
        table: str,
        data: Mapping[str, Any],
        where_clause: str,
        params: Sequence[Any] = (),
    ) -> int:
        """``UPDATE table SET … <where_clause>``; returns the affected row count."""
        builder = self._require_active("TRANS_UPDATE")
        statement = builder.build_raw_update(table, data, where_clause, params)
        return (await self._run(statement, "TRANS_UPDATE")).rowcount

    async def delete(
        self, where_clause: str, table: str | None = None, params: Sequence[Any] = ()
    ) -> int:
        builder = self._require_active("TRANS_DELETE")
        statement = builder.build_raw_delete(where_clause, table, params)
        return (await self._run(statement, "TRANS_DELETE")).rowcount

    async def select(self, options: SelectQuery | Mapping[str, Any]) -> list[dict[str, Any]]:
        """Build and run a SELECT; returns the rows."""
        builder = self._require_active("TRANS_BUILD_SELECT")
        return (await self._run(builder.build_select(options), "TRANS_BUILD_SELECT")).rows

    async def find_for_update(
        self, options: SelectQuery | Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        """:meth:`select` with the row-lock clause appended."""
        if isinstance(options, SelectQuery):
            options = options.model_copy(update={"for_update": True})
        else:
            options = {**options, "for_update": True}
        return await self.select(options)

    async def update_where(self, options: UpdateQuery | Mapping[str, Any]) -> int:
        builder = self._require_active("TRANS_BUILD_UPDATE")
        return (await self._run(builder.build_update(options), "TRANS_BUILD_UPDATE")).rowcount

    async def delete_where(self, options: DeleteQuery | Mapping[str, Any]) -> int:
        builder = self._require_active("TRANS_BUILD_DELETE")
        return (await self._run(builder.build_delete(options), "TRANS_BUILD_DELETE")).rowcount

    find_where = select
    query = select
    build_and_execute_select_query = select
    update_query = update_where
    build_and_execute_update_query = update_where
    remove = delete_where
    build_and_execute_delete_query = delete_where
