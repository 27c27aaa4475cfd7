# tests/test_rule_engine.py
import pytest

from services.grid.row_store import RowStore
from services.rules.engine import (
    BETWEEN,
    EQUAL_TO,
    Condition,
    Rule,
    apply_rules,
    evaluate_condition,
    evaluate_conditions,
    evaluate_rule,
    normalize_operator,
)


def test_left_fold_order():
    row = {"a": 1, "b": 2, "c": 3}
    a_true = {"column": "a", "operator": "equal to", "value": 1, "type": "where"}
    b_false = {"column": "b", "operator": "equal to", "value": 99, "type": "and"}
    c_true = {"column": "c", "operator": "equal to", "value": 3, "type": "or"}
    assert evaluate_conditions(row, [a_true, b_false, c_true]) is True

    b_false_or = {**b_false, "type": "or"}
    a_false_and = {"column": "a", "operator": "equal to", "value": 0, "type": "and"}
    # (true OR false) AND false; AND-before-OR precedence would give true
    assert evaluate_conditions(row, [a_true, b_false_or, a_false_and]) is False


def test_where_restarts_the_fold():
    row = {"a": 1}
    conditions = [
        {"column": "a", "operator": "equal to", "value": 1},
        {"column": "a", "operator": "equal to", "value": 5, "type": "where"},
    ]
    assert evaluate_conditions(row, conditions) is False


def test_first_condition_type_is_ignored():
    row = {"a": 1}
    assert evaluate_conditions(row, [{"column": "a", "operator": "=", "value": 1, "type": "or"}]) is True


def test_numeric_then_case_insensitive_equality():
    assert evaluate_condition({"price": "10"}, {"column": "price", "operator": "equal to", "value": "10.0"})
    assert evaluate_condition({"bias": "BID"}, {"column": "bias", "operator": "equal to", "value": "bid"})
    assert not evaluate_condition({"bias": "BID"}, {"column": "bias", "operator": "not equal to", "value": "bid"})


def test_between_is_inclusive():
    row = {"rank": 5}
    assert evaluate_condition(row, {"column": "rank", "operator": "between", "value": "1", "value2": "10"})
    assert evaluate_condition(row, {"column": "rank", "operator": "between", "value": "5", "value2": "5"})
    assert not evaluate_condition(row, {"column": "rank", "operator": "between", "value": "6", "value2": "10"})
    assert not evaluate_condition(row, {"column": "rank", "operator": "between", "value": "1"})


@pytest.mark.parametrize(
    "operator,value,expected",
    [
        ("greater than", "90", True),
        ("less than", "90", False),
        ("greater than or equal to", "99", True),
        ("less than or equal to", "98.9", False),
        ("gt", "abc", False),
    ],
)
def test_numeric_comparisons(operator, value, expected):
    assert evaluate_condition({"bid": 99}, {"column": "bid", "operator": operator, "value": value}) is expected


@pytest.mark.parametrize(
    "operator,value,expected",
    [
        ("contains", "bc", True),
        ("does not contain", "bc", False),
        ("starts with", "AB", True),
        ("ends with", "cd", True),
        ("ends with", "ab", False),
    ],
)
def test_string_operators_are_case_insensitive(operator, value, expected):
    assert evaluate_condition({"ticker": "aBCd"}, {"column": "ticker", "operator": operator, "value": value}) is expected


def test_unknown_operator_never_matches():
    assert normalize_operator("sounds like") is None
    assert not evaluate_condition({"a": 1}, {"column": "a", "operator": "sounds like", "value": 1})


def test_operator_synonyms():
    assert normalize_operator("Equal To") == EQUAL_TO
    assert normalize_operator("  is   between ") == BETWEEN
    assert normalize_operator("Greater than or equal to") == "greater_than_equal_to"


def test_missing_field_reads_as_empty():
    assert evaluate_condition({}, {"column": "ticker", "operator": "equal to", "value": ""})
    assert not evaluate_condition({}, {"column": "bid", "operator": "greater than", "value": 0})


def test_column_lookup_is_alias_aware(store):
    row = store.get("row_M1")
    assert evaluate_condition(row, Condition(column="MESSAGE_ID", operator="equal to", value="m1"))
    assert evaluate_condition(row, Condition(column="Ticker", operator="equal to", value="AAA"))


def test_rule_with_no_conditions_matches_nothing():
    assert evaluate_rule({"a": 1}, Rule(id=1, name="empty")) is False


def test_apply_rules_excludes_matches(store):
    rule = Rule.from_dict(
        {
            "id": 1,
            "name": "drop GS and MS",
            "conditions": [
                {"type": "where", "column": "source", "operator": "equal to", "value": "GS"},
                {"type": "or", "column": "source", "operator": "equal to", "value": "MS"},
            ],
        }
    )
    kept, excluded = apply_rules(store.rows, [rule])
    assert [row.id for row in excluded] == ["row_M1-b", "row_M2-a"]
    assert len(kept) == 4


def test_apply_rules_is_pure():
    s = RowStore()
    s.load([{"message_id": "A", "bid": 1}])
    rule = Rule(id=1, name="all", conditions=(Condition("bid", "gt", 0),))
    apply_rules(s.rows, [rule])
    apply_rules(s.rows, [rule])
    assert len(s) == 1
