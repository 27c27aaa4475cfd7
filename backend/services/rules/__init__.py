# services/rules/__init__.py

from services.rules.engine import (
    CANONICAL_OPERATORS,
    Condition,
    Rule,
    apply_rules,
    evaluate_condition,
    evaluate_rule,
    normalize_operator,
)
from services.rules.filter_compiler import CompiledCondition, FilterCondition, compile_filters

__all__ = [
    "CANONICAL_OPERATORS",
    "CompiledCondition",
    "Condition",
    "FilterCondition",
    "Rule",
    "apply_rules",
    "compile_filters",
    "evaluate_condition",
    "evaluate_rule",
    "normalize_operator",
]
