"""crudql – parameterized CRUD statements and transactions over async SQLAlchemy.

Describe the statement, don't concatenate it.

Public API
----------
``init`` / ``close_all_pools``
    Create and tear down the module-level default :class:`Database`.

``find``, ``find_count``, ``insert``, ``update``, ``delete``
    Raw-SQL operations on the default database.

``select`` / ``update_where`` / ``delete_where`` (and their aliases)
    Build a statement from a descriptor and run it on the default database.

``create_transaction``
    A new :class:`TransactionSession` on the default database.

``build_select_query``, ``build_update_query``, ``build_delete_query``,
``build_where_clause``
    Compile without executing.

Re-exported types
-----------------
``Database``, ``DbConfig``, ``TransactionSession``, ``TransactionRegistry``,
the descriptor and condition models, ``CompiledStatement``,
``ExecutionResult``, ``RawExpression`` / ``raw`` / ``UNSET``, and all error
classes.

Extensibility
-------------
New dialect compilers can be registered via::

    from crudql.compile.registry import CompilerFactory

    @CompilerFactory.register("cockroachdb", "crdb")
    class CockroachCompiler(PostgresCompiler):
        ...

The ``build_*`` helpers then accept that dialect name; lookups ignore case
and also resolve aliases such as ``postgres`` and ``mariadb``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from crudql.compile.base import CompiledStatement, SQLCompiler
from crudql.compile.builder import QueryBuilder
from crudql.compile.condition_builder import compile_condition
from crudql.compile.mysql import MySQLCompiler
from crudql.compile.postgres import PostgresCompiler
from crudql.compile.registry import CompilerFactory
from crudql.compile.sqlite import SQLiteCompiler
from crudql.config import DatabaseSettings, DbConfig, get_settings
from crudql.database import (
    Database,
    build_and_execute_delete_query,
    build_and_execute_select_query,
    build_and_execute_update_query,
    close_all_pools,
    create_transaction,
    delete,
    delete_where,
    execute,
    find,
    find_count,
    find_where,
    get_database,
    init,
    insert,
    query,
    remove,
    select,
    update,
    update_query,
    update_where,
)
from crudql.errors import (
    ConditionError,
    ConfigurationError,
    CrudQLError,
    DatabaseConnectionError,
    DescriptorError,
    EmptyUpdateError,
    InvalidTableError,
    MissingWhereError,
    NoActiveTransactionError,
    PoolClosedError,
    TransactionStateError,
    UnsupportedOperatorError,
    UsageError,
)
from crudql.execution.executor import SLOW_STATEMENT_THRESHOLD_MS, StatementExecutor
from crudql.execution.pool import ExecutionResult
from crudql.execution.registry import TransactionRegistry
from crudql.execution.transaction import TransactionSession, TransactionState
from crudql.log import setup_logging
from crudql.schema.conditions import (
    And,
    Between,
    Comparison,
    ComparisonOp,
    Condition,
    InList,
    IsNull,
    Not,
    Or,
)
from crudql.schema.descriptors import (
    UNSET,
    DeleteQuery,
    JoinClause,
    RawExpression,
    SelectQuery,
    UpdateQuery,
    raw,
)
from crudql.schema.where import parse_where

__all__ = [
    # Default database
    "init",
    "get_database",
    "close_all_pools",
    "create_transaction",
    "execute",
    "find",
    "find_count",
    "insert",
    "update",
    "delete",
    "select",
    "find_where",
    "query",
    "build_and_execute_select_query",
    "update_where",
    "update_query",
    "build_and_execute_update_query",
    "delete_where",
    "remove",
    "build_and_execute_delete_query",
    # Compile only
    "build_select_query",
    "build_update_query",
    "build_delete_query",
    "build_where_clause",
    # Context and config
    "Database",
    "DbConfig",
    "DatabaseSettings",
    "get_settings",
    "setup_logging",
    # Execution
    "ExecutionResult",
    "StatementExecutor",
    "SLOW_STATEMENT_THRESHOLD_MS",
    "TransactionSession",
    "TransactionState",
    "TransactionRegistry",
    # Descriptors and conditions
    "SelectQuery",
    "UpdateQuery",
    "DeleteQuery",
    "JoinClause",
    "RawExpression",
    "raw",
    "UNSET",
    "Condition",
    "Comparison",
    "ComparisonOp",
    "IsNull",
    "InList",
    "Between",
    "And",
    "Or",
    "Not",
    "parse_where",
    # Compilation
    "CompiledStatement",
    "SQLCompiler",
    "CompilerFactory",
    "QueryBuilder",
    "MySQLCompiler",
    "PostgresCompiler",
    "SQLiteCompiler",
    # Errors
    "CrudQLError",
    "UsageError",
    "DescriptorError",
    "InvalidTableError",
    "ConditionError",
    "UnsupportedOperatorError",
    "MissingWhereError",
    "EmptyUpdateError",
    "ConfigurationError",
    "TransactionStateError",
    "NoActiveTransactionError",
    "PoolClosedError",
    "DatabaseConnectionError",
]


def _query_builder(dialect: str) -> QueryBuilder:
    return QueryBuilder(CompilerFactory.create(dialect))


def build_select_query(
    options: SelectQuery | Mapping[str, Any], dialect: str = "mysql"
) -> CompiledStatement:
    """Compile a SELECT descriptor without running it::

        stmt = crudql.build_select_query(
            {"table": "users", "where": {"age": {"$gte": 18}}, "limit": 10}
        )
        # stmt.sql    == "SELECT * FROM users WHERE age >= %s LIMIT 10"
        # stmt.params == (18,)

    Raises:
        UsageError: (or subclass) if the descriptor is malformed.
        ConfigurationError: If ``dialect`` has no registered compiler.
    """
    return _query_builder(dialect).build_select(options)


def build_update_query(
    options: UpdateQuery | Mapping[str, Any], dialect: str = "mysql"
) -> CompiledStatement:
    """Compile an UPDATE descriptor without running it."""
    return _query_builder(dialect).build_update(options)


def build_delete_query(
    options: DeleteQuery | Mapping[str, Any], dialect: str = "mysql"
) -> CompiledStatement:
    """Compile a DELETE descriptor without running it."""
    return _query_builder(dialect).build_delete(options)


def build_where_clause(where: Any, dialect: str = "mysql") -> tuple[str, list[Any]]:
    """Compile a WHERE tree to ``(clause_text, params)``.

    ``where`` may be the dict/list mini-language or a typed condition.  An
    absent or empty tree gives ``("", [])``.
    """
    return compile_condition(parse_where(where), CompilerFactory.create(dialect))
