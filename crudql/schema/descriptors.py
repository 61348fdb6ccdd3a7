"""Pydantic models for query descriptors.

A descriptor says *what* statement to build; :class:`~crudql.compile.builder.QueryBuilder`
turns it into SQL.  Callers may pass either a model instance or a plain
mapping with the same keys::

    SelectQuery(table="users", fields=["id", "name"], where={"active": True}, limit=10)
    {"table": "users", "data": {"name": "Ann"}, "where": {"id": 5}}   # UpdateQuery

``where`` accepts the dict/list mini-language or a typed condition; it is
parsed once, when the descriptor is built.

Fields such as ``fields``, ``order_by``, ``group_by``, ``having`` and a join's
``on`` are SQL text inserted verbatim.  They must come from the application,
never from end-user input; only condition values and update data are bound
as parameters.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from crudql.errors import DescriptorError, InvalidTableError
from crudql.schema.conditions import Condition
from crudql.schema.where import parse_where

_TABLE_NAME = re.compile(r"^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)?$")

#: Key marking a raw-expression dict inside update ``data``.
RAW_TAG = "__raw"


def validate_table_name(table: Any) -> str:
    """Return ``table`` if it is a usable table name.

    Args:
        table: Candidate table name, optionally ``schema.table`` qualified.

    Raises:
        InvalidTableError: If the name is empty, not a string, or contains
            characters outside ``[A-Za-z0-9_]``.
    """
    if not table or not isinstance(table, str) or not _TABLE_NAME.match(table):
        raise InvalidTableError(table)
    return table


# ---------------------------------------------------------------------------
# Update values
# ---------------------------------------------------------------------------


class _Unset:
    """Type of :data:`UNSET`."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


#: Marks an update field to be dropped from the SET clause.
UNSET: Any = _Unset()


class RawExpression(BaseModel):
    """SQL text placed in a SET clause verbatim, unescaped and unbound.

    This is an explicit trust boundary, meant for expressions such as
    ``stock = stock - 1``::

        UpdateQuery(table="items", data={"stock": raw("stock - 1")}, where={"id": 3})

    Attributes:
        sql: The SQL expression.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    sql: str = Field(min_length=1)


def raw(sql: str) -> RawExpression:
    """Shorthand for ``RawExpression(sql=sql)``."""
    return RawExpression(sql=sql)


def normalize_update_data(data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert ``{"__raw": True, "value": ...}`` tags into :class:`RawExpression`.

    Only a mapping whose ``__raw`` key is literally ``True`` is converted;
    every other value is left for the builder to bind as a parameter.
    """
    normalized: dict[str, Any] = {}
    for column, value in data.items():
        if isinstance(value, Mapping) and value.get(RAW_TAG) is True:
            try:
                normalized[column] = RawExpression(sql=value.get("value", ""))
            except ValidationError as exc:
                raise DescriptorError(
                    f"Raw expression for '{column}' needs a non-empty SQL string in 'value'",
                    details={"column": column, "errors": exc.errors(include_url=False)},
                ) from exc
        else:
            normalized[column] = value
    return normalized


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


class _Descriptor(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @field_validator("table", mode="before", check_fields=False)
    @classmethod
    def _check_table(cls, value: Any) -> str:
        return validate_table_name(value)

    @field_validator("where", mode="before", check_fields=False)
    @classmethod
    def _parse_where(cls, value: Any) -> Any:
        return parse_where(value)


class JoinClause(BaseModel):
    """A single JOIN entry.

    Attributes:
        type: Join type; case-insensitive on input.
        table: Joined table name.
        alias: Optional alias for the joined table.
        on: Join condition, or a list of conditions ANDed together.
            Ignored for ``CROSS`` joins.
    """

    model_config = ConfigDict(extra="forbid")

    type: Literal["INNER", "LEFT", "RIGHT", "FULL", "CROSS"] = "INNER"
    table: str
    alias: str | None = None
    on: str | list[str] | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("table", mode="before")
    @classmethod
    def _check_table(cls, value: Any) -> str:
        return validate_table_name(value)


class SelectQuery(_Descriptor):
    """A SELECT descriptor.

    Attributes:
        table: Primary table.
        alias: Optional alias for the primary table.
        fields: Column list, or one comma-separated string; ``*`` when empty.
        joins: JOIN clauses, emitted in order.
        where: Condition tree.
        order_by: ORDER BY text, or a list of items.
        group_by: GROUP BY text.
        having: HAVING text.
        limit: Row limit; emitted only when a positive integer.
        offset: Rows to skip; emitted only together with ``limit``.
        for_update: Append the dialect's row-lock clause.
    """

    table: str
    alias: str | None = None
    fields: str | list[str] | None = None
    joins: list[JoinClause] = Field(default_factory=list)
    where: Condition | None = None
    order_by: str | list[str] | None = None
    group_by: str | None = None
    having: str | None = None
    limit: int | None = None
    offset: int | None = Field(default=None, ge=0)
    for_update: bool = False


class UpdateQuery(_Descriptor):
    """An UPDATE descriptor.

    Attributes:
        table: Target table.
        data: Column → value.  ``None`` sets NULL, :data:`UNSET` drops the
            field, a :class:`RawExpression` (or ``__raw`` tag) is inlined.
        where: Optional condition tree.
    """

    table: str
    data: dict[str, Any]
    where: Condition | None = None

    @field_validator("data", mode="before")
    @classmethod
    def _normalize_data(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return normalize_update_data(value)
        return value


class DeleteQuery(_Descriptor):
    """A DELETE descriptor.

    ``where`` is mandatory in practice: the builder refuses to compile a
    DELETE whose condition is absent or compiles to nothing.
    """

    table: str
    where: Condition | None = None


D = TypeVar("D", bound=BaseModel)


def coerce_descriptor(model: type[D], options: D | Mapping[str, Any]) -> D:
    """Return ``options`` as a ``model`` instance.

    Args:
        model: The descriptor class expected.
        options: A ready instance or a mapping of its fields.

    Raises:
        DescriptorError: If the mapping does not fit ``model``.
        InvalidTableError: If the table name is unusable.
        ConditionError: If the ``where`` tree is malformed.
    """
    if isinstance(options, model):
        return options
    if not isinstance(options, Mapping):
        raise DescriptorError(
            f"{model.__name__} expects a mapping, got {type(options).__name__}"
        )
    try:
        return model.model_validate(dict(options))
    except ValidationError as exc:
        raise DescriptorError(
            f"{model.__name__} structure is invalid: {exc}",
            details={"errors": exc.errors(include_url=False)},
        ) from exc
