"""SQLite dialect compiler."""
from __future__ import annotations

from crudql.compile.base import SQLCompiler


class SQLiteCompiler(SQLCompiler):
    """Compiles descriptors to SQLite-flavoured parameterized SQL.

    Parameter style: ``?`` – the ``qmark`` paramstyle of ``sqlite3`` and
    ``aiosqlite``.

    Note: SQLite has no row-level locks, so ``for_update`` is dropped.
    """

    @property
    def dialect_name(self) -> str:
        return "sqlite"

    def param_placeholder(self, position: int) -> str:
        return "?"

    def for_update_clause(self) -> str | None:
        return None

    def insert_ignore_verb(self) -> str:
        return "INSERT OR IGNORE"
