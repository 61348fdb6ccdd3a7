"""MySQL dialect compiler."""

from __future__ import annotations

from crudql.compile.base import SQLCompiler


class MySQLCompiler(SQLCompiler):
    """Compiles descriptors to MySQL-flavoured parameterized SQL.

    Parameter style: ``%s`` – the ``format`` paramstyle of ``aiomysql``,
    ``asyncmy`` and ``PyMySQL``.

    Note: a literal ``%`` written into verbatim SQL text (a raw expression,
    ``having``) must be doubled as ``%%`` once parameters are bound.
    """

    @property
    def dialect_name(self) -> str:
        return "mysql"

    def param_placeholder(self, position: int) -> str:
        return "%s"

    @property
    def false_literal(self) -> str:
        return "FALSE"

    @property
    def true_literal(self) -> str:
        return "TRUE"

    def insert_ignore_verb(self) -> str:
        return "INSERT IGNORE"
