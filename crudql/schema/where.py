"""Parser for the WHERE mini-language.

The mini-language is the plain ``dict`` / ``list`` form callers write::

    {"status": "active", "age": {"$gte": 18, "$lt": 65}}
    {"$or": [{"role": "admin"}, {"owner_id": 7}]}
    {"deleted_at": None, "$not": {"email": {"$like": "%@test.%"}}}
    [{"a": 1}, {"b": {"$in": [1, 2, 3]}}]

Rules
-----
* ``None`` value → ``IS NULL``; any other plain scalar → equality.
* An operator map on one column ANDs its operators in insertion order.
* ``$and`` / ``$or`` take a list (or a single sub-tree); ``$not`` takes one
  sub-tree.
* A bare list at any level is an implicit AND.
* Column keys and combinator keys may be mixed in one dict; the parts are
  ANDed in insertion order.

Everything is checked here, before compilation: unknown operators,
malformed ``$between`` bounds, non-list ``$in`` operands, empty operator
maps, and lists given as plain column values all raise a
:class:`~crudql.errors.ConditionError`.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from crudql.errors import ConditionError, UnsupportedOperatorError
from crudql.schema.conditions import (
    CONDITION_TYPES,
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

# ---------------------------------------------------------------------------
# Operator tokens
# ---------------------------------------------------------------------------

#: Single-parameter operator tokens.
COMPARISON_TOKENS: dict[str, ComparisonOp] = {
    "$eq": ComparisonOp.EQ,
    "$ne": ComparisonOp.NE,
    "$gt": ComparisonOp.GT,
    "$gte": ComparisonOp.GTE,
    "$lt": ComparisonOp.LT,
    "$lte": ComparisonOp.LTE,
    "$like": ComparisonOp.LIKE,
}

IN_TOKENS: frozenset[str] = frozenset({"$in"})
NOT_IN_TOKENS: frozenset[str] = frozenset({"$nin", "$notIn", "$nIn"})
BETWEEN_TOKEN = "$between"

AND_TOKEN = "$and"
OR_TOKEN = "$or"
NOT_TOKEN = "$not"
COMBINATOR_TOKENS: frozenset[str] = frozenset({AND_TOKEN, OR_TOKEN, NOT_TOKEN})

#: Every operator token accepted inside a column's operator map.
OPERATOR_TOKENS: frozenset[str] = (
    frozenset(COMPARISON_TOKENS) | IN_TOKENS | NOT_IN_TOKENS | {BETWEEN_TOKEN}
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_where(tree: Any) -> Condition | None:
    """Parse a WHERE tree into a typed :data:`Condition`.

    Already-typed conditions are returned unchanged.

    Args:
        tree: A mini-language ``dict`` / ``list``, a typed condition, or
            ``None``.

    Returns:
        The typed condition, or ``None`` when the tree is absent or empty
        (``{}`` / ``[]``).

    Raises:
        ConditionError: If the tree is malformed.
        UnsupportedOperatorError: If an operator token is not recognised.
    """
    if tree is None:
        return None
    if isinstance(tree, CONDITION_TYPES):
        return tree  # type: ignore[return-value]
    if isinstance(tree, (list, tuple)):
        return _conjunction([parse_where(item) for item in tree], grouped=False)
    if isinstance(tree, Mapping):
        return _parse_mapping(tree)
    raise ConditionError(f"Invalid condition node: {tree!r}")


# ---------------------------------------------------------------------------
# Tree walkers
# ---------------------------------------------------------------------------


def _parse_mapping(tree: Mapping[str, Any]) -> Condition | None:
    parts: list[Condition | None] = []
    for key, value in tree.items():
        if key == AND_TOKEN:
            parts.append(_conjunction(_children(key, value), grouped=True))
        elif key == OR_TOKEN:
            children = [c for c in _children(key, value) if c is not None]
            parts.append(Or(conditions=tuple(children)) if children else None)
        elif key == NOT_TOKEN:
            inner = parse_where(value)
            parts.append(Not(condition=inner) if inner is not None else None)
        elif isinstance(key, str) and key.startswith("$"):
            raise UnsupportedOperatorError(key)
        else:
            parts.append(_parse_column(key, value))
    return _conjunction(parts, grouped=False)


def _children(token: str, value: Any) -> list[Condition | None]:
    if isinstance(value, (list, tuple)):
        return [parse_where(item) for item in value]
    if isinstance(value, Mapping) or isinstance(value, CONDITION_TYPES):
        return [parse_where(value)]
    raise ConditionError(f"{token} requires a list of conditions", operator=token)


def _conjunction(parts: list[Condition | None], grouped: bool) -> Condition | None:
    kept = [p for p in parts if p is not None]
    if not kept:
        return None
    if len(kept) == 1 and not grouped:
        return kept[0]
    return And(conditions=tuple(kept), grouped=grouped)


def _parse_column(column: str, value: Any) -> Condition:
    if value is None:
        return _leaf(IsNull, column=column)
    if isinstance(value, Mapping):
        return _parse_operator_map(column, value)
    if isinstance(value, (list, tuple, set)):
        raise ConditionError(
            f"Column '{column}' was given a list; use {{'$in': [...]}} for membership",
            column=column,
        )
    return _leaf(Comparison, column=column, op=ComparisonOp.EQ, value=value)


def _parse_operator_map(column: str, ops: Mapping[str, Any]) -> Condition:
    if not ops:
        raise ConditionError(f"Empty operator map for column '{column}'", column=column)
    leaves = [_parse_operator(column, op, operand) for op, operand in ops.items()]
    if len(leaves) == 1:
        return leaves[0]
    return And(conditions=tuple(leaves), grouped=False)


def _parse_operator(column: str, op: str, operand: Any) -> Condition:
    if op in COMPARISON_TOKENS:
        return _leaf(Comparison, column=column, op=COMPARISON_TOKENS[op], value=operand)
    if op in IN_TOKENS or op in NOT_IN_TOKENS:
        if not isinstance(operand, (list, tuple, set, frozenset)):
            raise ConditionError(f"{op} requires a list of values", column=column, operator=op)
        return _leaf(InList, column=column, values=tuple(operand), negated=op in NOT_IN_TOKENS)
    if op == BETWEEN_TOKEN:
        if not isinstance(operand, (list, tuple)) or len(operand) != 2:
            raise ConditionError("$between requires [min, max]", column=column, operator=op)
        return _leaf(Between, column=column, low=operand[0], high=operand[1])
    raise UnsupportedOperatorError(op, column=column)


def _leaf(model: type, **fields: Any) -> Condition:
    try:
        return model(**fields)
    except ValidationError as exc:
        raise ConditionError(
            f"Invalid condition for column {fields.get('column')!r}: {exc}",
            column=fields.get("column"),
        ) from exc
