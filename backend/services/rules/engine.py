# services/rules/engine.py
#
# Pure rule evaluation. A rule is an ordered list of conditions folded left to
# right (no precedence, no parentheses):
#   first condition   -> result = eval(c)        (its type tag is ignored)
#   type "and"        -> result = result and eval(c)
#   type "or"         -> result = result or eval(c)
#   type "where"      -> result = eval(c)        (starts a new clause)
# A match means EXCLUDE the row.

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from services.grid.fields import as_text, get_field, to_number

logger = logging.getLogger(__name__)

EQUAL_TO = "equal_to"
NOT_EQUAL_TO = "not_equal_to"
CONTAINS = "contains"
NOT_CONTAINS = "not_contains"
STARTS_WITH = "starts_with"
ENDS_WITH = "ends_with"
LESS_THAN = "less_than"
GREATER_THAN = "greater_than"
LESS_THAN_EQUAL_TO = "less_than_equal_to"
GREATER_THAN_EQUAL_TO = "greater_than_equal_to"
BETWEEN = "between"

CANONICAL_OPERATORS = (
    EQUAL_TO,
    NOT_EQUAL_TO,
    CONTAINS,
    NOT_CONTAINS,
    STARTS_WITH,
    ENDS_WITH,
    LESS_THAN,
    GREATER_THAN,
    LESS_THAN_EQUAL_TO,
    GREATER_THAN_EQUAL_TO,
    BETWEEN,
)

OPERATOR_SYNONYMS = {
    EQUAL_TO: ["equal to", "is equal to", "equals", "equal", "is", "eq", "=", "=="],
    NOT_EQUAL_TO: ["not equal to", "is not equal to", "not equals", "does not equal", "is not", "neq", "ne", "!=", "<>"],
    CONTAINS: ["contains", "includes", "like"],
    NOT_CONTAINS: ["not contains", "does not contain", "doesn't contain", "not like", "notcontains"],
    STARTS_WITH: ["starts with", "begins with", "startswith"],
    ENDS_WITH: ["ends with", "endswith"],
    LESS_THAN: ["less than", "is less than", "lt", "<"],
    GREATER_THAN: ["greater than", "is greater than", "gt", ">"],
    LESS_THAN_EQUAL_TO: ["less than or equal to", "less than equal to", "is less than or equal to", "lte", "le", "<="],
    GREATER_THAN_EQUAL_TO: ["greater than or equal to", "greater than equal to", "is greater than or equal to", "gte", "ge", ">="],
    BETWEEN: ["between", "is between", "in range"],
}

OPERATOR_ALIASES: dict[str, str] = {}
for _canonical, _synonyms in OPERATOR_SYNONYMS.items():
    OPERATOR_ALIASES[_canonical] = _canonical
    for _synonym in _synonyms:
        OPERATOR_ALIASES[_synonym] = _canonical

NUMERIC_OPERATORS = {
    EQUAL_TO,
    NOT_EQUAL_TO,
    LESS_THAN,
    GREATER_THAN,
    LESS_THAN_EQUAL_TO,
    GREATER_THAN_EQUAL_TO,
    BETWEEN,
}

CONDITION_TYPES = ("where", "and", "or")


@dataclass(frozen=True)
class Condition:
    column: str
    operator: str
    value: Any = None
    value2: Any = None
    type: str = "where"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        kind = str(data.get("type") or data.get("logicalOperator") or "where").strip().lower()
        return cls(
            column=str(data.get("column") or data.get("field") or ""),
            operator=str(data.get("operator") or ""),
            value=data.get("value", data.get("values")),
            value2=data.get("value2"),
            type=kind if kind in CONDITION_TYPES else "where",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "column": self.column,
            "operator": self.operator,
            "value": self.value,
            "value2": self.value2,
        }


@dataclass(frozen=True)
class Rule:
    id: int | str | None
    name: str
    is_active: bool = True
    conditions: tuple[Condition, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Rule":
        return cls(
            id=data.get("id"),
            name=str(data.get("name") or ""),
            is_active=bool(data.get("is_active", data.get("isActive", True))),
            conditions=tuple(Condition.from_dict(c) for c in data.get("conditions") or ()),
        )


def normalize_operator(operator: str | None) -> str | None:
    key = " ".join(str(operator or "").strip().lower().split())
    return OPERATOR_ALIASES.get(key)


def _row_fields(row: Any) -> Mapping[str, Any]:
    fields = getattr(row, "fields", None)
    if isinstance(fields, Mapping):
        return fields
    return row if isinstance(row, Mapping) else {}


def _row_value(row: Any, column: str) -> Any:
    return get_field(_row_fields(row), column, "")


def evaluate_condition(row: Any, condition: Condition | Mapping[str, Any]) -> bool:
    if not isinstance(condition, Condition):
        condition = Condition.from_dict(condition)

    operator = normalize_operator(condition.operator)
    if operator is None:
        logger.debug("Unknown rule operator %r", condition.operator)
        return False

    raw = _row_value(row, condition.column)

    if operator in NUMERIC_OPERATORS:
        left = to_number(raw)
        right = to_number(condition.value)

        if operator == BETWEEN:
            upper = to_number(condition.value2)
            if left is None or right is None or upper is None:
                return False
            return right <= left <= upper

        if left is not None and right is not None:
            if operator == EQUAL_TO:
                return left == right
            if operator == NOT_EQUAL_TO:
                return left != right
            if operator == LESS_THAN:
                return left < right
            if operator == GREATER_THAN:
                return left > right
            if operator == LESS_THAN_EQUAL_TO:
                return left <= right
            return left >= right

        if operator == EQUAL_TO:
            return as_text(raw).lower() == as_text(condition.value).lower()
        if operator == NOT_EQUAL_TO:
            return as_text(raw).lower() != as_text(condition.value).lower()
        return False

    cell = as_text(raw).lower()
    needle = as_text(condition.value).lower()
    if operator == CONTAINS:
        return needle in cell
    if operator == NOT_CONTAINS:
        return needle not in cell
    if operator == STARTS_WITH:
        return cell.startswith(needle)
    return cell.endswith(needle)


def evaluate_conditions(row: Any, conditions: Iterable[Condition | Mapping[str, Any]]) -> bool:
    result: bool | None = None
    for condition in conditions:
        if not isinstance(condition, Condition):
            condition = Condition.from_dict(condition)
        matched = evaluate_condition(row, condition)
        if result is None or condition.type == "where":
            result = matched
        elif condition.type == "and":
            result = result and matched
        elif condition.type == "or":
            result = result or matched
    return bool(result)


def evaluate_rule(row: Any, rule: Rule | Mapping[str, Any]) -> bool:
    if not isinstance(rule, Rule):
        rule = Rule.from_dict(rule)
    return evaluate_conditions(row, rule.conditions)


def apply_rules(rows: Iterable[Any], rules: Iterable[Rule]) -> tuple[list[Any], list[Any]]:
    """Split rows into (kept, excluded); a row matching any rule is excluded."""
    rules = list(rules)
    kept, excluded = [], []
    for row in rows:
        if any(evaluate_rule(row, rule) for rule in rules):
            excluded.append(row)
        else:
            kept.append(row)
    return kept, excluded
