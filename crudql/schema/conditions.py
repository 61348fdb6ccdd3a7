"""Typed condition tree for WHERE clauses.

A condition tree is a tagged variant of frozen pydantic models::

    Comparison(column, op, value)   col = ? / col > ? / col LIKE ? ...
    IsNull(column)                  col IS NULL
    InList(column, values, negated) col IN (?, ?) / col NOT IN (?, ?)
    Between(column, low, high)      col BETWEEN ? AND ?
    And(conditions)                 (a AND b)
    Or(conditions)                  (a OR b)
    Not(condition)                  NOT (a)

Each model carries a literal ``kind`` tag so the :data:`Condition` union is
discriminated and a dumped tree (``model_dump()``) validates back into the
same variant.  Trees are validated on construction, so a malformed tree never
reaches the compiler.

The dict/list WHERE mini-language (``{"age": {"$gt": 18}}``) is parsed into
this tree by :func:`crudql.schema.where.parse_where`.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

_FROZEN = ConfigDict(extra="forbid", frozen=True)


# ---------------------------------------------------------------------------
# Operator enum
# ---------------------------------------------------------------------------


class ComparisonOp(str, Enum):
    """Single-parameter comparison operators."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"


#: SQL keyword for each comparison operator.
COMPARISON_SQL: dict[ComparisonOp, str] = {
    ComparisonOp.EQ: "=",
    ComparisonOp.NE: "!=",
    ComparisonOp.GT: ">",
    ComparisonOp.GTE: ">=",
    ComparisonOp.LT: "<",
    ComparisonOp.LTE: "<=",
    ComparisonOp.LIKE: "LIKE",
}


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------


class Comparison(BaseModel):
    """``column <op> ?`` with exactly one bound parameter."""

    model_config = _FROZEN

    kind: Literal["comparison"] = "comparison"
    column: str = Field(min_length=1)
    op: ComparisonOp = ComparisonOp.EQ
    value: Any


class IsNull(BaseModel):
    """``column IS NULL``; binds nothing."""

    model_config = _FROZEN

    kind: Literal["is_null"] = "is_null"
    column: str = Field(min_length=1)


class InList(BaseModel):
    """List membership.

    An empty ``values`` tuple compiles to an always-false fragment (or
    always-true when ``negated``) instead of the invalid ``IN ()``.
    """

    model_config = _FROZEN

    kind: Literal["in_list"] = "in_list"
    column: str = Field(min_length=1)
    values: tuple[Any, ...] = ()
    negated: bool = False


class Between(BaseModel):
    """``column BETWEEN ? AND ?``.

    Bounds are bound as given; their order is not checked, so reversed
    bounds simply match no rows.
    """

    model_config = _FROZEN

    kind: Literal["between"] = "between"
    column: str = Field(min_length=1)
    low: Any
    high: Any


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


class And(BaseModel):
    """Conjunction.

    Attributes:
        conditions: Child conditions, compiled left to right.
        grouped: Wrap the compiled conjunction in parentheses.  Explicit
            ``$and`` nodes are grouped; the implicit AND of a bare list or a
            multi-key dict is not.
    """

    model_config = _FROZEN

    kind: Literal["and"] = "and"
    conditions: tuple[Condition, ...] = ()
    grouped: bool = True


class Or(BaseModel):
    """Disjunction, always compiled inside parentheses."""

    model_config = _FROZEN

    kind: Literal["or"] = "or"
    conditions: tuple[Condition, ...] = ()


class Not(BaseModel):
    """Negation of a single sub-tree: ``NOT (...)``."""

    model_config = _FROZEN

    kind: Literal["not"] = "not"
    condition: Condition


# ---------------------------------------------------------------------------
# Discriminated union
# ---------------------------------------------------------------------------

Condition = Annotated[
    Union[Comparison, IsNull, InList, Between, And, Or, Not],
    Field(discriminator="kind"),
]

#: Concrete condition classes, for ``isinstance`` checks.
CONDITION_TYPES: tuple[type[BaseModel], ...] = (
    Comparison,
    IsNull,
    InList,
    Between,
    And,
    Or,
    Not,
)

# Resolve forward references in the recursive combinators.
And.model_rebuild()
Or.model_rebuild()
Not.model_rebuild()
