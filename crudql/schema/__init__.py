"""crudql schema models: condition trees and query descriptors."""
from crudql.schema.conditions import (
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
from crudql.schema.descriptors import (
    RAW_TAG,
    UNSET,
    DeleteQuery,
    JoinClause,
    RawExpression,
    SelectQuery,
    UpdateQuery,
    raw,
    validate_table_name,
)
from crudql.schema.where import parse_where

__all__ = [
    "And",
    "Between",
    "Comparison",
    "ComparisonOp",
    "Condition",
    "InList",
    "IsNull",
    "Not",
    "Or",
    "RAW_TAG",
    "UNSET",
    "DeleteQuery",
    "JoinClause",
    "RawExpression",
    "SelectQuery",
    "UpdateQuery",
    "raw",
    "validate_table_name",
    "parse_where",
]
