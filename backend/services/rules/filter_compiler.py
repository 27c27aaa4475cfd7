# services/rules/filter_compiler.py
#
# Filter dialog conditions (display column + operator value) -> backend
# predicates. Column names map through a fixed table, falling back to the
# upper-cased display name; operator values map to the label shown to the
# user, which the rule engine normalizes.

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from services.rules.engine import Condition

COLUMN_MAP = {
    "Bwic Cover": "BWIC_COVER",
    "Message ID": "MESSAGE_ID",
    "Ticker": "TICKER",
    "CUSIP": "CUSIP",
    "Bias": "BIAS",
    "Date": "DATE",
    "Source": "SOURCE",
    "Sector": "SECTOR",
    "Rank": "RANK",
    "Price": "PX",
    "BID": "BID",
    "MID": "MID",
    "ASK": "ASK",
}

OPERATOR_OPTIONS = [
    {"label": "Equal to", "value": "eq"},
    {"label": "Not equal to", "value": "neq"},
    {"label": "Contains", "value": "contains"},
    {"label": "Does not contain", "value": "notContains"},
    {"label": "Starts with", "value": "startsWith"},
    {"label": "Ends with", "value": "endsWith"},
    {"label": "Greater than", "value": "gt"},
    {"label": "Less than", "value": "lt"},
    {"label": "Greater than or equal to", "value": "gte"},
    {"label": "Less than or equal to", "value": "lte"},
    {"label": "Between", "value": "between"},
]


@dataclass(frozen=True)
class FilterCondition:
    column: str
    operator: str
    values: Any = None
    value2: Any = None
    logical_operator: str = "AND"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FilterCondition":
        return cls(
            column=str(data.get("column") or ""),
            operator=str(data.get("operator") or ""),
            values=data.get("values", data.get("value")),
            value2=data.get("value2"),
            logical_operator=str(data.get("logicalOperator") or data.get("logical_operator") or "AND"),
        )


@dataclass(frozen=True)
class CompiledCondition:
    field: str
    operator: str
    value: Any = None
    value2: Any = None
    type: str = "where"

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator,
            "value": self.value,
            "value2": self.value2,
        }

    def as_condition(self) -> Condition:
        return Condition(
            column=self.field,
            operator=self.operator,
            value=self.value,
            value2=self.value2,
            type=self.type,
        )


def backend_column(display_name: str) -> str:
    return COLUMN_MAP.get(display_name, (display_name or "").upper())


def operator_label(value: str) -> str:
    for option in OPERATOR_OPTIONS:
        if option["value"] == value:
            return option["label"]
    return value


def compile_condition(condition: FilterCondition | Mapping[str, Any], kind: str = "where") -> CompiledCondition:
    if not isinstance(condition, FilterCondition):
        condition = FilterCondition.from_dict(condition)
    return CompiledCondition(
        field=backend_column(condition.column),
        operator=operator_label(condition.operator),
        value=condition.values,
        value2=condition.value2,
        type=kind,
    )


def _is_blank(condition: FilterCondition) -> bool:
    return not condition.column.strip() or not condition.operator.strip()


def compile_filters(
    conditions: Iterable[FilterCondition | Mapping[str, Any]],
    subgroups: Iterable[Mapping[str, Any]] = (),
) -> list[CompiledCondition]:
    """
    Flatten dialog conditions and subgroups into one left-fold list.

    Each condition after the first combines by its own logical operator; the
    first condition of a subgroup combines by the subgroup's operator. Blank
    rows (no column or no operator) are skipped.
    """
    compiled: list[CompiledCondition] = []

    def _append(item: FilterCondition, joiner: str):
        kind = "where" if not compiled else ("or" if joiner.upper() == "OR" else "and")
        compiled.append(compile_condition(item, kind))

    for raw in conditions:
        item = raw if isinstance(raw, FilterCondition) else FilterCondition.from_dict(raw)
        if _is_blank(item):
            continue
        _append(item, item.logical_operator)

    for group in subgroups:
        group_operator = str(group.get("logicalOperator") or group.get("logical_operator") or "AND")
        first = True
        for raw in group.get("conditions") or ():
            item = raw if isinstance(raw, FilterCondition) else FilterCondition.from_dict(raw)
            if _is_blank(item):
                continue
            _append(item, group_operator if first else item.logical_operator)
            first = False

    return compiled
