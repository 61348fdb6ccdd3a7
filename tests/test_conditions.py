"""Unit tests for the WHERE mini-language parser and the condition compiler."""

from __future__ import annotations

import pytest

from crudql.compile.condition_builder import compile_condition
from crudql.compile.mysql import MySQLCompiler
from crudql.compile.postgres import PostgresCompiler
from crudql.compile.sqlite import SQLiteCompiler
from crudql.errors import ConditionError, UnsupportedOperatorError
from crudql.schema.conditions import And, Comparison, ComparisonOp, InList, IsNull, Not, Or
from crudql.schema.where import parse_where


def _my(tree):
    return compile_condition(parse_where(tree), MySQLCompiler())


def _sq(tree):
    return compile_condition(parse_where(tree), SQLiteCompiler())


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------


def test_plain_scalar_is_equality():
    assert _my({"status": "active"}) == ("status = %s", ["active"])


def test_none_is_null_without_param():
    assert _my({"deleted_at": None}) == ("deleted_at IS NULL", [])


def test_explicit_eq_none_binds_null():
    assert _my({"deleted_at": {"$eq": None}}) == ("deleted_at = %s", [None])


@pytest.mark.parametrize(
    "token, sql",
    [
        ("$eq", "="),
        ("$ne", "!="),
        ("$gt", ">"),
        ("$gte", ">="),
        ("$lt", "<"),
        ("$lte", "<="),
        ("$like", "LIKE"),
    ],
)
def test_comparison_operators(token, sql):
    assert _my({"age": {token: 30}}) == (f"age {sql} %s", [30])


def test_operator_map_ands_in_insertion_order():
    clause, params = _my({"age": {"$gte": 18, "$lt": 65}})
    assert clause == "age >= %s AND age < %s"
    assert params == [18, 65]


def test_contradictory_operators_are_allowed():
    clause, params = _my({"x": {"$gt": 5, "$lt": 1}})
    assert clause == "x > %s AND x < %s"
    assert params == [5, 1]


def test_like_keeps_caller_wildcards():
    assert _my({"name": {"$like": "%ann%"}}) == ("name LIKE %s", ["%ann%"])


def test_in_list():
    assert _my({"id": {"$in": [1, 2, 3]}}) == ("id IN (%s, %s, %s)", [1, 2, 3])


@pytest.mark.parametrize("token", ["$nin", "$notIn", "$nIn"])
def test_not_in_aliases(token):
    assert _my({"id": {token: [4, 5]}}) == ("id NOT IN (%s, %s)", [4, 5])


def test_empty_in_is_always_false():
    assert _my({"id": {"$in": []}}) == ("FALSE", [])
    assert _sq({"id": {"$in": []}}) == ("1 = 0", [])


def test_empty_not_in_is_always_true():
    assert _my({"id": {"$nin": []}}) == ("TRUE", [])
    assert _sq({"id": {"$nin": []}}) == ("1 = 1", [])


def test_between():
    assert _my({"age": {"$between": [18, 30]}}) == ("age BETWEEN %s AND %s", [18, 30])


def test_between_bounds_are_not_reordered():
    assert _my({"age": {"$between": [30, 18]}})[1] == [30, 18]


@pytest.mark.parametrize("operand", [[1], [1, 2, 3], 5, "a,b"])
def test_between_requires_two_bounds(operand):
    with pytest.raises(ConditionError, match=r"\$between requires \[min, max\]"):
        parse_where({"age": {"$between": operand}})


def test_postgres_placeholders_and_literals():
    compiler = PostgresCompiler()
    assert compile_condition(parse_where({"a": 1}), compiler) == ("a = %s", [1])
    assert compile_condition(parse_where({"a": {"$in": []}}), compiler) == ("FALSE", [])


def test_sqlite_placeholders():
    assert _sq({"a": 1, "b": {"$in": [2, 3]}}) == ("a = ? AND b IN (?, ?)", [1, 2, 3])


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


def test_and_is_parenthesised():
    assert _my({"$and": [{"a": 1}, {"b": 2}]}) == ("(a = %s AND b = %s)", [1, 2])


def test_or_is_parenthesised():
    clause, params = _my({"$or": [{"role": "admin"}, {"owner_id": 7}]})
    assert clause == "(role = %s OR owner_id = %s)"
    assert params == ["admin", 7]


def test_not_wraps_single_condition():
    assert _my({"$not": {"a": 1}}) == ("NOT (a = %s)", [1])


def test_not_parenthesises_compound_operand():
    assert _my({"$not": {"a": 1, "b": 2}}) == ("NOT (a = %s AND b = %s)", [1, 2])


def test_bare_list_is_implicit_and_without_parentheses():
    clause, params = _my([{"a": 1}, {"b": {"$in": [1, 2, 3]}}])
    assert clause == "a = %s AND b IN (%s, %s, %s)"
    assert params == [1, 1, 2, 3]


def test_mixed_keys_follow_insertion_order():
    clause, params = _my({"$or": [{"a": 1}, {"b": 2}], "c": 3})
    assert clause == "(a = %s OR b = %s) AND c = %s"
    assert params == [1, 2, 3]

    clause, params = _my({"c": 3, "$or": [{"a": 1}, {"b": 2}]})
    assert clause == "c = %s AND (a = %s OR b = %s)"
    assert params == [3, 1, 2]


def test_nested_params_follow_placeholder_order():
    tree = {
        "$or": [
            {"$and": [{"a": 1}, {"b": {"$between": [2, 3]}}]},
            {"c": {"$in": [4, 5]}},
            {"$not": {"d": {"$like": "x%"}}},
        ],
        "e": 6,
    }
    clause, params = _my(tree)
    assert clause == (
        "((a = %s AND b BETWEEN %s AND %s) OR c IN (%s, %s) OR NOT (d LIKE %s)) AND e = %s"
    )
    assert params == [1, 2, 3, 4, 5, "x%", 6]
    assert clause.count("%s") == len(params)


# ---------------------------------------------------------------------------
# Empty trees
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("tree", [None, {}, [], {"$and": []}, {"$or": []}, {"$not": {}}])
def test_empty_trees_compile_to_nothing(tree):
    assert _my(tree) == ("", [])


def test_empty_combinator_is_dropped_from_mixed_dict():
    assert _my({"$or": [], "a": 1}) == ("a = %s", [1])


# ---------------------------------------------------------------------------
# Malformed trees
# ---------------------------------------------------------------------------


def test_unknown_column_operator():
    with pytest.raises(UnsupportedOperatorError, match=r"Unsupported operator: \$regex") as exc:
        parse_where({"name": {"$regex": "^a"}})
    assert exc.value.column == "name"
    assert exc.value.operator == "$regex"


def test_unknown_top_level_operator():
    with pytest.raises(UnsupportedOperatorError):
        parse_where({"$xor": [{"a": 1}]})


def test_empty_operator_map():
    with pytest.raises(ConditionError, match="Empty operator map"):
        parse_where({"a": {}})


def test_list_as_plain_value_is_rejected():
    with pytest.raises(ConditionError, match=r"\$in"):
        parse_where({"a": [1, 2]})


def test_in_requires_a_list():
    with pytest.raises(ConditionError, match="requires a list"):
        parse_where({"a": {"$in": 5}})


def test_or_requires_conditions():
    with pytest.raises(ConditionError):
        parse_where({"$or": "a = 1"})


def test_scalar_tree_is_rejected():
    with pytest.raises(ConditionError):
        parse_where(5)


def test_empty_column_name_is_rejected():
    with pytest.raises(ConditionError):
        parse_where({"": 1})


# ---------------------------------------------------------------------------
# Typed trees
# ---------------------------------------------------------------------------


def test_parse_builds_typed_tree():
    tree = parse_where({"a": 1, "b": None, "$or": [{"c": {"$nin": [1]}}]})
    assert tree == And(
        conditions=(
            Comparison(column="a", op=ComparisonOp.EQ, value=1),
            IsNull(column="b"),
            Or(conditions=(InList(column="c", values=(1,), negated=True),)),
        ),
        grouped=False,
    )


def test_typed_condition_passes_through():
    cond = Not(condition=Comparison(column="a", op=ComparisonOp.GT, value=3))
    assert parse_where(cond) is cond
    assert compile_condition(cond, MySQLCompiler()) == ("NOT (a > %s)", [3])


def test_typed_tree_round_trips_through_dump():
    tree = parse_where({"$or": [{"a": 1}, {"b": {"$between": [1, 2]}}]})
    assert Or.model_validate(tree.model_dump()) == tree
