"""Compiler abstractions: CompiledStatement and the SQLCompiler ABC.

The Template Method pattern is used:
- ``QueryBuilder`` and ``ConditionBuilder`` own the statement skeleton.
- ``SQLCompiler`` subclasses override the dialect-specific steps
  (placeholder style, boolean literals, row locking, insert-ignore syntax).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CompiledStatement:
    """The output of a successful compilation.

    Attributes:
        sql: The compiled SQL string with positional placeholders.
        params: Bound values, in placeholder order.
        dialect: The target dialect name (``'mysql'``, ``'postgresql'``,
            ``'sqlite'``).
    """

    sql: str
    params: tuple[Any, ...] = ()
    dialect: str = ""

    @classmethod
    def raw(cls, sql: str, params: Sequence[Any] = (), dialect: str = "") -> CompiledStatement:
        """Wrap caller-written SQL so it can go through the executor."""
        return cls(sql=sql, params=tuple(params), dialect=dialect)


class SQLCompiler(ABC):
    """Abstract base for dialect-specific SQL compilers.

    Subclasses implement the dialect-specific methods; the builders use this
    interface via the Strategy / Template Method patterns.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the canonical dialect name."""

    @abstractmethod
    def param_placeholder(self, position: int) -> str:
        """Return the SQL placeholder for the ``position``-th parameter.

        Args:
            position: 1-based index of the parameter in the statement.

        Returns:
            Dialect-specific placeholder string.
        """

    @property
    def false_literal(self) -> str:
        """An always-false predicate (used for ``IN`` over an empty list)."""
        return "1 = 0"

    @property
    def true_literal(self) -> str:
        """An always-true predicate (used for ``NOT IN`` over an empty list)."""
        return "1 = 1"

    def for_update_clause(self) -> str | None:
        """Return the row-lock suffix, or ``None`` if the dialect has none."""
        return "FOR UPDATE"

    def insert_statement(self, table: str, columns: list[str], ignore: bool = False) -> str:
        """Return a single-row ``INSERT`` statement for ``columns``.

        Args:
            table: Target table.
            columns: Column names, in parameter order.
            ignore: Skip rows that would violate a unique constraint.
        """
        placeholders = ", ".join(
            self.param_placeholder(i) for i in range(1, len(columns) + 1)
        )
        verb = self.insert_ignore_verb() if ignore else "INSERT"
        sql = f"{verb} INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        suffix = self.insert_ignore_suffix() if ignore else None
        return f"{sql} {suffix}" if suffix else sql

    def insert_ignore_verb(self) -> str:
        return "INSERT"

    def insert_ignore_suffix(self) -> str | None:
        return None
