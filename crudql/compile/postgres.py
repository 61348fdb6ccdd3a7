"""PostgreSQL dialect compiler."""

from __future__ import annotations

from crudql.compile.base import SQLCompiler


class PostgresCompiler(SQLCompiler):
    """Compiles descriptors to PostgreSQL-flavoured parameterized SQL.

    Parameter style: ``%s`` – positional ``format`` execution as accepted by
    ``psycopg`` (the ``postgresql+psycopg`` async driver).
    """

    @property
    def dialect_name(self) -> str:
        return "postgresql"

    def param_placeholder(self, position: int) -> str:
        return "%s"

    @property
    def false_literal(self) -> str:
        return "FALSE"

    @property
    def true_literal(self) -> str:
        return "TRUE"

    def insert_ignore_suffix(self) -> str | None:
        return "ON CONFLICT DO NOTHING"
