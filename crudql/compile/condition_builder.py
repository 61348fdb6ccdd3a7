"""Condition tree → SQL fragment compiler.

``ConditionBuilder`` walks a typed :data:`~crudql.schema.conditions.Condition`
depth-first, left to right, writing each fragment and appending its bound
values to a shared :class:`ParameterCollector` in the same order.  Because
placeholders are positional, that single ordering is what keeps values
aligned with their placeholders.
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from crudql.compile.base import SQLCompiler
from crudql.errors import ConditionError
from crudql.schema.conditions import (
    COMPARISON_SQL,
    And,
    Between,
    Comparison,
    Condition,
    InList,
    IsNull,
    Not,
    Or,
)

# ---------------------------------------------------------------------------
# Positional parameter accumulator (shared by every clause of one statement)
# ---------------------------------------------------------------------------


@dataclass
class ParameterCollector:
    """Accumulates positional parameters during a single compilation run.

    One instance is shared by every clause builder of a statement (SET
    values first, then WHERE values) so placeholder positions are global
    to the statement.
    """

    compiler: SQLCompiler
    params: list[Any] = field(default_factory=list)

    def add(self, value: Any) -> str:
        """Store a value and return the placeholder that binds it."""
        self.params.append(value)
        return self.compiler.param_placeholder(len(self.params))

    def add_all(self, values: Iterable[Any]) -> list[str]:
        return [self.add(v) for v in values]


# ---------------------------------------------------------------------------
# Condition builder
# ---------------------------------------------------------------------------


class ConditionBuilder:
    """Compiles typed condition trees to SQL fragments.

    Args:
        compiler: Dialect-specific compiler (placeholders, boolean literals).
        collector: Shared parameter accumulator for the current statement.
    """

    def __init__(self, compiler: SQLCompiler, collector: ParameterCollector) -> None:
        self._compiler = compiler
        self._collector = collector

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def build(self, condition: Condition | None) -> str:
        """Compile ``condition`` to a SQL fragment.

        Returns:
            The fragment, or ``""`` when the tree contributes nothing (in
            which case the caller emits no WHERE clause).
        """
        if condition is None:
            return ""
        if isinstance(condition, Comparison):
            placeholder = self._collector.add(condition.value)
            return f"{condition.column} {COMPARISON_SQL[condition.op]} {placeholder}"
        if isinstance(condition, IsNull):
            return f"{condition.column} IS NULL"
        if isinstance(condition, InList):
            return self._build_in(condition)
        if isinstance(condition, Between):
            low = self._collector.add(condition.low)
            high = self._collector.add(condition.high)
            return f"{condition.column} BETWEEN {low} AND {high}"
        if isinstance(condition, And):
            return self._join(condition.conditions, " AND ", condition.grouped)
        if isinstance(condition, Or):
            return self._join(condition.conditions, " OR ", True)
        if isinstance(condition, Not):
            inner = self.build(condition.condition)
            return f"NOT ({inner})" if inner else ""
        raise ConditionError(f"Unknown condition type: {type(condition).__name__}")

    # ------------------------------------------------------------------
    # Node compilers
    # ------------------------------------------------------------------

    def _build_in(self, node: InList) -> str:
        if not node.values:
            return self._compiler.true_literal if node.negated else self._compiler.false_literal
        placeholders = ", ".join(self._collector.add_all(node.values))
        keyword = "NOT IN" if node.negated else "IN"
        return f"{node.column} {keyword} ({placeholders})"

    def _join(self, children: Iterable[Condition], separator: str, grouped: bool) -> str:
        parts = [sql for sql in (self.build(c) for c in children) if sql]
        if not parts:
            return ""
        joined = separator.join(parts)
        return f"({joined})" if grouped else joined


def compile_condition(
    condition: Condition | None, compiler: SQLCompiler
) -> tuple[str, list[Any]]:
    """Compile a standalone condition.

    Returns:
        ``(clause_text, params)``; ``("", [])`` for an absent tree.
    """
    collector = ParameterCollector(compiler)
    clause = ConditionBuilder(compiler, collector).build(condition)
    return clause, collector.params
