"""Database context: pools, statement execution and transactions in one place.

``Database`` owns everything that used to be process-global: the pool
registry, the default connection config, the log sink and the transaction
registry.  Construct one explicitly, or use the module-level default
created by :func:`init` and torn down by :func:`close_all_pools`.

Every operation accepts an optional ``config`` that overrides the default
connection for that call only; statements against the same (host, port,
user, database) share a pool.
"""
from __future__ import annotations

import functools
from collections.abc import Callable, Mapping, Sequence
from types import TracebackType
from typing import Any

from crudql.compile.base import CompiledStatement
from crudql.compile.builder import QueryBuilder
from crudql.compile.registry import CompilerFactory
from crudql.config import DbConfig, get_settings
from crudql.errors import ConfigurationError
from crudql.execution.executor import StatementExecutor
from crudql.execution.pool import ConnectionPool, ExecutionResult, PoolRegistry
from crudql.execution.registry import TransactionRegistry
from crudql.execution.transaction import TransactionSession
from crudql.log import LogSink, get_logger, setup_logging
from crudql.schema.descriptors import DeleteQuery, SelectQuery, UpdateQuery

ConfigLike = DbConfig | Mapping[str, Any]


class Database:
    """Entry point for non-transactional statements and transactions.

    Args:
        config: Default connection config; may be set later via
            :meth:`configure` or given per call.
        logger: Log sink; defaults to the ``crudql`` logger.
        translate_errors: Re-raise well-known connection failures as
            :class:`~crudql.errors.DatabaseConnectionError`.

    Example::

        db = Database({"dialect": "mysql", "host": "db", "user": "app",
                       "password": "secret", "database": "shop"})
        users = await db.select({"table": "users", "where": {"active": True}})
        await db.close()
    """

    def __init__(
        self,
        config: ConfigLike | None = None,
        logger: LogSink | None = None,
        translate_errors: bool = False,
    ) -> None:
        self._logger: LogSink = logger or get_logger()
        self._config = DbConfig.coerce(config) if config is not None else None
        self.pools = PoolRegistry(self._logger)
        self.executor = StatementExecutor(self._logger, translate_errors=translate_errors)
        self.transactions = TransactionRegistry()

    @classmethod
    def from_env(cls, logger: LogSink | None = None, translate_errors: bool = False) -> Database:
        """Build a database from ``CRUDQL_*`` environment variables.

        Also configures the ``crudql`` logger from ``CRUDQL_LOG_LEVEL`` and
        ``CRUDQL_LOG_FORMAT``; an injected ``logger`` is still used as the sink.
        """
        settings = get_settings()
        config = settings.to_config()
        configured = setup_logging(settings.log_level, settings.log_format)
        return cls(config, logger=logger or configured, translate_errors=translate_errors)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> DbConfig | None:
        return self._config

    @property
    def logger(self) -> LogSink:
        return self._logger

    def configure(self, config: ConfigLike, logger: LogSink | None = None) -> None:
        """Replace the default connection config (and optionally the logger)."""
        self._config = DbConfig.coerce(config)
        if logger is not None:
            self.set_logger(logger)
        self._logger.info("Connection manager initialized")

    def set_logger(self, logger: LogSink) -> None:
        self._logger = logger
        self.pools.logger = logger
        self.executor.logger = logger

    def resolve_config(self, config: ConfigLike | None = None) -> DbConfig:
        """Return the per-call override, else the default config.

        Raises:
            ConfigurationError: If neither is available.
        """
        if config is not None:
            return DbConfig.coerce(config)
        if self._config is None:
            raise ConfigurationError(
                "Database configuration missing. Call crudql.init() first or provide a config"
            )
        return self._config

    def pool(self, config: ConfigLike | None = None) -> ConnectionPool:
        return self.pools.resolve(self.resolve_config(config))

    # ------------------------------------------------------------------
    # Raw statements
    # ------------------------------------------------------------------

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        config: ConfigLike | None = None,
        operation: str = "execute",
    ) -> ExecutionResult:
        """Run caller-written SQL in its own auto-committed transaction."""
        resolved = self.resolve_config(config)
        statement = CompiledStatement.raw(sql, params, resolved.dialect)
        return await self._run(resolved, statement, operation)

    async def find(
        self, sql: str, params: Sequence[Any] = (), config: ConfigLike | None = None
    ) -> list[dict[str, Any]]:
        """Run a query and return its rows; ``[]`` for empty SQL."""
        if not sql:
            return []
        return (await self.execute(sql, params, config, operation="find")).rows

    async def find_count(
        self, sql: str, params: Sequence[Any] = (), config: ConfigLike | None = None
    ) -> int:
        """Return the ``count`` column (or first column) of the first row.

        ``0`` for empty SQL or an empty result.
        """
        if not sql:
            return 0
        rows = (await self.execute(sql, params, config, operation="findCount")).rows
        if not rows:
            return 0
        first = rows[0]
        if "count" in first:
            return first["count"] or 0
        return next(iter(first.values()), 0) or 0

    async def insert(
        self,
        table: str,
        data: Mapping[str, Any],
        config: ConfigLike | None = None,
        debug: bool = False,
        ignore: bool = False,
    ) -> Any:
        """Insert one row; returns the generated key, if the driver reports one."""
        resolved = self.resolve_config(config)
        statement = self._builder(resolved).build_insert(table, data, ignore=ignore)
        result = await self._run(resolved, statement, "insert")
        if debug:
            self._logger.info(
                f"INSERT into {table}: id={result.lastrowid}",
                extra={"operation": "INSERT", "table": table},
            )
        return result.lastrowid

    async def update(
        self,
        table: str,
        data: Mapping[str, Any],
        where_clause: str,
        params: Sequence[Any] = (),
        config: ConfigLike | None = None,
        debug: bool = False,
    ) -> int:
        """``UPDATE table SET … <where_clause>``; returns the affected row count.

        ``where_clause`` is SQL text that must contain ``WHERE``; ``params``
        binds its placeholders.
        """
        resolved = self.resolve_config(config)
        statement = self._builder(resolved).build_raw_update(table, data, where_clause, params)
        result = await self._run(resolved, statement, "update")
        if debug:
            self._logger.info(
                f"UPDATE {table}: {result.rowcount} rows affected",
                extra={"operation": "UPDATE", "table": table, "rowcount": result.rowcount},
            )
        return result.rowcount

    async def delete(
        self,
        where_clause: str,
        table: str | None = None,
        params: Sequence[Any] = (),
        config: ConfigLike | None = None,
    ) -> int:
        """``DELETE FROM table <where_clause>``, or ``where_clause`` as a whole
        statement when ``table`` is omitted.  Returns the deleted row count.
        """
        resolved = self.resolve_config(config)
        statement = self._builder(resolved).build_raw_delete(where_clause, table, params)
        result = await self._run(resolved, statement, "delete")
        self._logger.info(
            f"Deleted {result.rowcount} records from {table or 'custom query'}",
            extra={"operation": "DELETE", "table": table, "rowcount": result.rowcount},
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Descriptor statements
    # ------------------------------------------------------------------

    async def select(
        self, options: SelectQuery | Mapping[str, Any], config: ConfigLike | None = None
    ) -> list[dict[str, Any]]:
        """Build and run a SELECT; returns the rows."""
        resolved = self.resolve_config(config)
        statement = self._builder(resolved).build_select(options)
        return (await self._run(resolved, statement, "buildAndExecuteSelectQuery")).rows

    async def update_where(
        self, options: UpdateQuery | Mapping[str, Any], config: ConfigLike | None = None
    ) -> int:
        """Build and run an UPDATE; returns the affected row count."""
        resolved = self.resolve_config(config)
        statement = self._builder(resolved).build_update(options)
        return (await self._run(resolved, statement, "buildAndExecuteUpdateQuery")).rowcount

    async def delete_where(
        self, options: DeleteQuery | Mapping[str, Any], config: ConfigLike | None = None
    ) -> int:
        """Build and run a DELETE; returns the deleted row count."""
        resolved = self.resolve_config(config)
        statement = self._builder(resolved).build_delete(options)
        return (await self._run(resolved, statement, "buildAndExecuteDeleteQuery")).rowcount

    find_where = select
    query = select
    build_and_execute_select_query = select
    update_query = update_where
    build_and_execute_update_query = update_where
    remove = delete_where
    build_and_execute_delete_query = delete_where

    # ------------------------------------------------------------------
    # Transactions and teardown
    # ------------------------------------------------------------------

    def transaction(self, config: ConfigLike | None = None) -> TransactionSession:
        """Return a new, not yet started, transaction session.

        The config is resolved now; the connection is reserved by
        :meth:`TransactionSession.init` (or on ``async with`` entry).
        """
        resolved = DbConfig.coerce(config) if config is not None else self._config
        return TransactionSession(self.pools, resolved, self.executor, self._logger)

    async def close_pool(self, config: ConfigLike | None = None) -> None:
        await self.pools.close_pool(self.resolve_config(config))

    async def close(self) -> None:
        """Close every pool this database opened."""
        await self.pools.close_all()

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------

    @staticmethod
    def _builder(config: DbConfig) -> QueryBuilder:
        return _builder_for(config.dialect)

    async def _run(
        self, config: DbConfig, statement: CompiledStatement, operation: str
    ) -> ExecutionResult:
        return await self.executor.run(self.pools.resolve(config), statement, operation)


@functools.lru_cache(maxsize=None)
def _builder_for(dialect: str) -> QueryBuilder:
    return QueryBuilder(CompilerFactory.create(dialect))


# ---------------------------------------------------------------------------
# Module-level default database
# ---------------------------------------------------------------------------

_default: Database | None = None


def init(
    config: ConfigLike,
    logger: LogSink | None = None,
    translate_errors: bool = False,
) -> Database:
    """Create (or reconfigure) the module-level default database.

    Raises:
        ConfigurationError: If ``config`` is not a valid connection config.
    """
    global _default
    if _default is None:
        _default = Database(config, logger=logger, translate_errors=translate_errors)
        _default.logger.info("Connection manager initialized")
    else:
        _default.configure(config, logger)
        _default.executor.translate_errors = translate_errors
    return _default


def get_database() -> Database:
    """Return the default database.

    Raises:
        ConfigurationError: If :func:`init` has not been called.
    """
    if _default is None:
        raise ConfigurationError(
            "Database configuration missing. Call crudql.init() first or provide a config"
        )
    return _default


async def close_all_pools() -> None:
    """Close the default database's pools and forget it.  Idempotent."""
    global _default
    database, _default = _default, None
    if database is not None:
        await database.close()


def create_transaction(config: ConfigLike | None = None) -> TransactionSession:
    return get_database().transaction(config)


def _forward(name: str) -> Callable[..., Any]:
    method = getattr(Database, name)

    @functools.wraps(method)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        return await getattr(get_database(), name)(*args, **kwargs)

    return wrapper


execute = _forward("execute")
find = _forward("find")
find_count = _forward("find_count")
insert = _forward("insert")
update = _forward("update")
delete = _forward("delete")
select = _forward("select")
find_where = _forward("find_where")
query = _forward("query")
build_and_execute_select_query = _forward("build_and_execute_select_query")
update_where = _forward("update_where")
update_query = _forward("update_query")
build_and_execute_update_query = _forward("build_and_execute_update_query")
delete_where = _forward("delete_where")
remove = _forward("remove")
build_and_execute_delete_query = _forward("build_and_execute_delete_query")
