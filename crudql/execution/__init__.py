"""crudql execution layer: pools, statement execution, transactions."""
from crudql.execution.executor import (
    SLOW_STATEMENT_THRESHOLD_MS,
    StatementExecutor,
    translate_connection_error,
)
from crudql.execution.pool import ConnectionPool, ExecutionResult, PooledConnection, PoolRegistry
from crudql.execution.registry import TransactionRegistry
from crudql.execution.transaction import TransactionSession, TransactionState

__all__ = [
    "SLOW_STATEMENT_THRESHOLD_MS",
    "StatementExecutor",
    "translate_connection_error",
    "ConnectionPool",
    "ExecutionResult",
    "PooledConnection",
    "PoolRegistry",
    "TransactionRegistry",
    "TransactionSession",
    "TransactionState",
]
