# tests/test_filter_compiler.py
from services.rules.engine import evaluate_conditions
from services.rules.filter_compiler import (
    FilterCondition,
    backend_column,
    compile_condition,
    compile_filters,
    operator_label,
)


def test_column_mapping_and_fallback():
    assert backend_column("Price") == "PX"
    assert backend_column("Message ID") == "MESSAGE_ID"
    assert backend_column("Bwic Cover") == "BWIC_COVER"
    assert backend_column("Coupon") == "COUPON"


def test_operator_label_passthrough():
    assert operator_label("gte") == "Greater than or equal to"
    assert operator_label("notContains") == "Does not contain"
    assert operator_label("fuzzy") == "fuzzy"


def test_compile_condition():
    compiled = compile_condition(FilterCondition(column="Price", operator="between", values="1", value2="5"))
    assert compiled.to_dict() == {"field": "PX", "operator": "Between", "value": "1", "value2": "5"}


def test_compile_filters_joins_and_skips_blanks():
    compiled = compile_filters(
        [
            {"column": "Ticker", "operator": "eq", "values": "AAA"},
            {"column": "", "operator": "eq", "values": "ignored"},
            {"column": "BID", "operator": "gt", "values": "90", "logicalOperator": "OR"},
        ]
    )
    assert [c.type for c in compiled] == ["where", "or"]
    assert [c.field for c in compiled] == ["TICKER", "BID"]


def test_subgroup_first_condition_uses_group_operator():
    compiled = compile_filters(
        [{"column": "Ticker", "operator": "eq", "values": "AAA"}],
        [
            {
                "logicalOperator": "OR",
                "conditions": [
                    {"column": "Source", "operator": "eq", "values": "GS", "logicalOperator": "AND"},
                    {"column": "Bias", "operator": "eq", "values": "BID", "logicalOperator": "AND"},
                ],
            }
        ],
    )
    assert [c.type for c in compiled] == ["where", "or", "and"]


def test_compiled_predicates_evaluate_with_rule_engine():
    compiled = compile_filters(
        [
            {"column": "Ticker", "operator": "eq", "values": "aaa"},
            {"column": "Price", "operator": "gte", "values": "100", "logicalOperator": "AND"},
        ]
    )
    conditions = [c.as_condition() for c in compiled]
    assert evaluate_conditions({"TICKER": "AAA", "px": 101}, conditions)
    assert not evaluate_conditions({"ticker": "AAA", "px": 99}, conditions)
