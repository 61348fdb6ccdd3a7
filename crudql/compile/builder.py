"""Descriptor → SQL statement compilation.

``QueryBuilder`` is the top-level orchestrator.  It wires together the
clause-level sub-builders and the condition compiler, then assembles the
statement.  All dialect-specific behaviour is delegated to the injected
``SQLCompiler``.

Sub-builder hierarchy
---------------------
QueryBuilder
  ├── ConditionBuilder     (condition_builder.py)
  ├── SelectClauseBuilder  (clause_builders.py)
  ├── FromClauseBuilder    (clause_builders.py)
  ├── JoinClauseBuilder    (clause_builders.py)
  ├── SetClauseBuilder     (clause_builders.py)
  └── PagingClauseBuilder  (clause_builders.py)

Parameter sharing
-----------------
A single :class:`~crudql.compile.condition_builder.ParameterCollector` is
created per ``build_*`` call and threaded through every sub-builder, so the
returned parameter tuple lines up with the placeholders in the final text.
Every call returns a fresh :class:`CompiledStatement`; nothing is cached.

Raw-WHERE entry points
----------------------
``build_raw_update`` and ``build_raw_delete`` back the non-builder
``update()`` / ``delete()`` calls, which take caller-written WHERE text.
They insist the text contains ``WHERE`` as a guard against accidental
full-table mutation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from crudql.compile.base import CompiledStatement, SQLCompiler
from crudql.compile.clause_builders import (
    FromClauseBuilder,
    JoinClauseBuilder,
    PagingClauseBuilder,
    SelectClauseBuilder,
    SetClauseBuilder,
)
from crudql.compile.condition_builder import ConditionBuilder, ParameterCollector
from crudql.errors import MissingWhereError, UsageError
from crudql.schema.descriptors import (
    DeleteQuery,
    SelectQuery,
    UpdateQuery,
    coerce_descriptor,
    normalize_update_data,
    validate_table_name,
)


def has_where_keyword(clause: str | None) -> bool:
    """Return True if ``clause`` mentions ``WHERE`` (case-insensitive)."""
    return bool(clause) and isinstance(clause, str) and "where" in clause.lower()


class QueryBuilder:
    """Compiles query descriptors to parameterized SQL.

    Args:
        compiler: Dialect-specific compiler instance.
    """

    def __init__(self, compiler: SQLCompiler) -> None:
        self._compiler = compiler
        self._select = SelectClauseBuilder()
        self._from = FromClauseBuilder()
        self._join = JoinClauseBuilder()
        self._paging = PagingClauseBuilder()

    @property
    def compiler(self) -> SQLCompiler:
        return self._compiler

    # ------------------------------------------------------------------
    # Descriptor builders
    # ------------------------------------------------------------------

    def build_select(self, query: SelectQuery | Mapping[str, Any]) -> CompiledStatement:
        """Compile a SELECT descriptor.

        Args:
            query: A :class:`SelectQuery` or a mapping of its fields.

        Returns:
            The compiled statement.

        Raises:
            UsageError: (or subclass) if the descriptor is malformed.
        """
        query = coerce_descriptor(SelectQuery, query)
        collector = ParameterCollector(self._compiler)

        parts = [self._select.build(query.fields), self._from.build(query.table, query.alias)]
        parts.extend(self._join.build(join) for join in query.joins)

        where_sql = ConditionBuilder(self._compiler, collector).build(query.where)
        if where_sql:
            parts.append(f"WHERE {where_sql}")
        if query.group_by:
            parts.append(f"GROUP BY {query.group_by}")
        if query.having:
            parts.append(f"HAVING {query.having}")
        if query.order_by:
            order_by = (
                ", ".join(query.order_by) if isinstance(query.order_by, list) else query.order_by
            )
            parts.append(f"ORDER BY {order_by}")

        paging = self._paging.build(query.limit, query.offset)
        if paging:
            parts.append(paging)
        if query.for_update:
            lock = self._compiler.for_update_clause()
            if lock:
                parts.append(lock)

        return self._finish(" ".join(parts), collector)

    def build_update(self, query: UpdateQuery | Mapping[str, Any]) -> CompiledStatement:
        """Compile an UPDATE descriptor.

        SET parameters come first, WHERE parameters after them.

        Raises:
            EmptyUpdateError: If no settable field remains.
            UsageError: (or subclass) if the descriptor is malformed.
        """
        query = coerce_descriptor(UpdateQuery, query)
        collector = ParameterCollector(self._compiler)

        set_sql = SetClauseBuilder(collector).build(query.data)
        sql = f"UPDATE {query.table} {set_sql}"

        where_sql = ConditionBuilder(self._compiler, collector).build(query.where)
        if where_sql:
            sql += f" WHERE {where_sql}"
        return self._finish(sql, collector)

    def build_delete(self, query: DeleteQuery | Mapping[str, Any]) -> CompiledStatement:
        """Compile a DELETE descriptor.

        Raises:
            MissingWhereError: If ``where`` is absent or compiles to nothing.
            UsageError: (or subclass) if the descriptor is malformed.
        """
        query = coerce_descriptor(DeleteQuery, query)
        if query.where is None:
            raise MissingWhereError("DELETE requires a WHERE clause for safety")

        collector = ParameterCollector(self._compiler)
        where_sql = ConditionBuilder(self._compiler, collector).build(query.where)
        if not where_sql:
            raise MissingWhereError("DELETE requires a valid WHERE clause for safety")
        return self._finish(f"DELETE FROM {query.table} WHERE {where_sql}", collector)

    def build_insert(
        self, table: str, data: Mapping[str, Any], ignore: bool = False
    ) -> CompiledStatement:
        """Compile a single-row INSERT.

        Args:
            table: Target table.
            data: Column → value; every value is bound.
            ignore: Use the dialect's duplicate-ignoring insert form.

        Raises:
            InvalidTableError: If ``table`` is unusable.
            UsageError: If ``data`` is empty or not a mapping.
        """
        validate_table_name(table)
        if not isinstance(data, Mapping) or not data:
            raise UsageError("Insert data must be a non-empty mapping", details={"table": table})
        columns = list(data)
        sql = self._compiler.insert_statement(table, columns, ignore=ignore)
        return CompiledStatement(
            sql=sql, params=tuple(data.values()), dialect=self._compiler.dialect_name
        )

    # ------------------------------------------------------------------
    # Raw-WHERE entry points
    # ------------------------------------------------------------------

    def build_raw_update(
        self,
        table: str,
        data: Mapping[str, Any],
        where_clause: str,
        params: Sequence[Any] = (),
    ) -> CompiledStatement:
        """Compile ``UPDATE <table> SET … <where_clause>``.

        Args:
            table: Target table.
            data: Column → value, with the same NULL / UNSET / raw rules as
                :meth:`build_update`.
            where_clause: Caller-written text that must contain ``WHERE``.
            params: Values for placeholders inside ``where_clause``; bound
                after the SET values.

        Raises:
            UsageError: Listing every problem found with the arguments.
            EmptyUpdateError: If no settable field remains.
        """
        errors: list[str] = []
        try:
            validate_table_name(table)
        except UsageError as exc:
            errors.append(str(exc))
        if not isinstance(data, Mapping):
            errors.append("Data must be a mapping")
        elif not data:
            errors.append("Data cannot be empty")
        if not isinstance(where_clause, str) or not where_clause.strip():
            errors.append("Invalid WHERE clause")
        elif not has_where_keyword(where_clause):
            errors.append("WHERE clause is required for security")
        if errors:
            raise UsageError(
                f"Validation failed: {', '.join(errors)}", details={"errors": errors}
            )

        collector = ParameterCollector(self._compiler)
        set_sql = SetClauseBuilder(collector).build(normalize_update_data(data))
        collector.params.extend(params)
        return self._finish(f"UPDATE {table} {set_sql} {where_clause.strip()}", collector)

    def build_raw_delete(
        self,
        where_clause: str,
        table: str | None = None,
        params: Sequence[Any] = (),
    ) -> CompiledStatement:
        """Compile ``DELETE FROM <table> <where_clause>``.

        Without ``table``, ``where_clause`` is taken to be the whole DELETE
        statement.

        Raises:
            MissingWhereError: If the text does not contain ``WHERE``.
            InvalidTableError: If ``table`` is given but unusable.
        """
        if not has_where_keyword(where_clause):
            raise MissingWhereError("Invalid query or missing WHERE clause")
        if table is None:
            sql = where_clause.strip()
        else:
            sql = f"DELETE FROM {validate_table_name(table)} {where_clause.strip()}"
        return CompiledStatement(
            sql=sql, params=tuple(params), dialect=self._compiler.dialect_name
        )

    # ------------------------------------------------------------------

    def _finish(self, sql: str, collector: ParameterCollector) -> CompiledStatement:
        return CompiledStatement(
            sql=sql,
            params=tuple(collector.params),
            dialect=self._compiler.dialect_name,
        )
