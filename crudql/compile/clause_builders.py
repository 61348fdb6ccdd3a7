"""Clause-level SQL builders.

Each class handles exactly one SQL clause.  Builders that bind values
(``SetClauseBuilder``) receive the statement's shared
:class:`~crudql.compile.condition_builder.ParameterCollector`, so SET
values are numbered before the WHERE values that follow them.

Classes
-------
SelectClauseBuilder   — ``SELECT <fields>``
FromClauseBuilder     — ``FROM <table> [<alias>]``
JoinClauseBuilder     — ``<TYPE> JOIN <table> [<alias>] ON …``
SetClauseBuilder      — ``SET col = ?, col = NULL, col = <raw>``
PagingClauseBuilder   — ``LIMIT n [OFFSET m]``
"""
from __future__ import annotations

from typing import Any

from crudql.compile.condition_builder import ParameterCollector
from crudql.errors import EmptyUpdateError
from crudql.schema.descriptors import UNSET, JoinClause, RawExpression


class SelectClauseBuilder:
    """Builds the ``SELECT …`` clause."""

    def build(self, fields: str | list[str] | None) -> str:
        if isinstance(fields, list):
            kept = [f for f in fields if f and f.strip()]
            fields = ", ".join(kept)
        if not fields or not fields.strip():
            return "SELECT *"
        return f"SELECT {fields}"


class FromClauseBuilder:
    """Builds the ``FROM <table> [<alias>]`` fragment."""

    def build(self, table: str, alias: str | None = None) -> str:
        return f"FROM {table} {alias}" if alias else f"FROM {table}"


class JoinClauseBuilder:
    """Builds a single ``JOIN … ON …`` fragment."""

    def build(self, join: JoinClause) -> str:
        target = f"{join.table} {join.alias}" if join.alias else join.table
        if join.type == "CROSS" or not join.on:
            return f"{join.type} JOIN {target}"
        on = " AND ".join(join.on) if isinstance(join.on, list) else join.on
        return f"{join.type} JOIN {target} ON {on}"


class SetClauseBuilder:
    """Builds the ``SET`` list of an UPDATE.

    ``UNSET`` entries are dropped, ``None`` becomes ``col = NULL`` and a
    :class:`RawExpression` is inlined verbatim; everything else is bound.
    """

    def __init__(self, collector: ParameterCollector) -> None:
        self._collector = collector

    def build(self, data: dict[str, Any]) -> str:
        assignments: list[str] = []
        for column, value in data.items():
            if value is UNSET:
                continue
            if isinstance(value, RawExpression):
                assignments.append(f"{column} = {value.sql}")
            elif value is None:
                assignments.append(f"{column} = NULL")
            else:
                assignments.append(f"{column} = {self._collector.add(value)}")
        if not assignments:
            raise EmptyUpdateError()
        return f"SET {', '.join(assignments)}"


class PagingClauseBuilder:
    """Builds ``LIMIT`` / ``OFFSET``.

    LIMIT is emitted only for a positive integer; OFFSET only alongside it.
    """

    def build(self, limit: int | None, offset: int | None) -> str:
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            return ""
        if offset is None:
            return f"LIMIT {limit}"
        return f"LIMIT {limit} OFFSET {offset}"
