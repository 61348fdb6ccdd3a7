"""Statement execution with timing and failure logging.

Every statement crudql runs, pooled or inside a transaction, goes through
:meth:`StatementExecutor.run`.

Invariants:
    - Failures are logged (operation, error, SQL, parameters) and re-raised
      unchanged, unless error translation was asked for.
    - A statement slower than SLOW_STATEMENT_THRESHOLD_MS produces exactly
      one warning record carrying the structured fields.
"""
from __future__ import annotations

import time
from collections.abc import Sequence
from typing import Any, Protocol

from sqlalchemy.exc import DBAPIError

from crudql.compile.base import CompiledStatement
from crudql.errors import DatabaseConnectionError, PoolClosedError
from crudql.execution.pool import ExecutionResult
from crudql.log import LogSink, get_logger

SLOW_STATEMENT_THRESHOLD_MS = 1000

# MySQL client/server error codes
_CR_SERVER_GONE = 2006
_CR_SERVER_LOST = 2013
_ER_CON_COUNT = 1040
_CR_CONN_HOST_ERROR = 2003

CONNECTION_LOST = "Database connection was closed."
TOO_MANY_CONNECTIONS = "Database has too many connections."
CONNECTION_REFUSED = "Database connection was refused."
POOL_CLOSED = "Connection pool was closed"


class StatementTarget(Protocol):
    """A pool or reserved connection that can run one statement."""

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecutionResult: ...


def _vendor_code(exc: BaseException) -> int | None:
    orig = exc.orig if isinstance(exc, DBAPIError) else exc
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], int):
        return args[0]
    return None


def _caused_by_refusal(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, ConnectionRefusedError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def translate_connection_error(exc: BaseException) -> DatabaseConnectionError | None:
    """Map a well-known connection failure to :class:`DatabaseConnectionError`.

    Returns:
        The translated error, or ``None`` if ``exc`` is not a recognized
        connection failure.
    """
    if isinstance(exc, PoolClosedError):
        return DatabaseConnectionError(POOL_CLOSED)
    code = _vendor_code(exc)
    if code in (_CR_SERVER_GONE, _CR_SERVER_LOST):
        return DatabaseConnectionError(CONNECTION_LOST, code=code)
    if code == _ER_CON_COUNT:
        return DatabaseConnectionError(TOO_MANY_CONNECTIONS, code=code)
    if code == _CR_CONN_HOST_ERROR or _caused_by_refusal(exc):
        return DatabaseConnectionError(CONNECTION_REFUSED, code=code)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return DatabaseConnectionError(CONNECTION_LOST, code=code)
    return None


class StatementExecutor:
    """Runs compiled statements against a pool or a reserved connection.

    Args:
        logger: Sink for failure and slow-statement records.
        translate_errors: Re-raise recognized connection failures as
            :class:`DatabaseConnectionError` (chained to the original).
    """

    def __init__(self, logger: LogSink | None = None, translate_errors: bool = False) -> None:
        self.logger: LogSink = logger or get_logger()
        self.translate_errors = translate_errors

    async def run(
        self,
        target: StatementTarget,
        statement: CompiledStatement,
        operation: str = "query",
    ) -> ExecutionResult:
        """Execute ``statement`` on ``target``.

        Args:
            target: Pool or reserved connection.
            statement: SQL text plus positional parameters.
            operation: Label used in log records.

        Returns:
            The statement's :class:`ExecutionResult`.

        Raises:
            Exception: Whatever the driver raised, unchanged; or a
                :class:`DatabaseConnectionError` when translation is on and
                the failure is recognized.
        """
        start = time.perf_counter()
        try:
            result = await target.execute(statement.sql, statement.params)
        except Exception as exc:
            self.logger.error(
                f"{operation} failed: {exc}",
                extra={
                    "operation": operation,
                    "error": str(exc),
                    "sql": statement.sql,
                    "params": list(statement.params),
                },
            )
            if self.translate_errors:
                translated = translate_connection_error(exc)
                if translated is not None:
                    raise translated from exc
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        if duration_ms > SLOW_STATEMENT_THRESHOLD_MS:
            self.logger.warning(
                f"Slow statement ({duration_ms:.0f}ms) in {operation}: {statement.sql}",
                extra={
                    "operation": operation,
                    "sql": statement.sql,
                    "params": list(statement.params),
                    "duration_ms": round(duration_ms, 1),
                    "threshold_ms": SLOW_STATEMENT_THRESHOLD_MS,
                },
            )
        return result
