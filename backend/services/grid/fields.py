# services/grid/fields.py
#
# Single alias-aware accessor for row fields. Hierarchy business-key matching
# and rule column lookup both go through here.

import math
import re
from typing import Any, Mapping

_CAMEL_BOUNDARY = re.compile(r"_+([a-z0-9])")
_CAMEL_SPLIT = re.compile(r"(?<=[a-z0-9])([A-Z])")


def snake_to_camel(name: str) -> str:
    """MESSAGE_ID / message_id -> messageId."""
    lowered = (name or "").strip().lower()
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), lowered)


def camel_to_snake(name: str) -> str:
    return _CAMEL_SPLIT.sub(r"_\1", (name or "").strip()).lower()


def to_safe_key(key: str) -> str:
    return re.sub(r"[()%'.#]", "", re.sub(r"\s+", "_", (key or "").strip().lower()))


def resolve_field(fields: Mapping[str, Any], column: str) -> str | None:
    """
    Return the actual key in `fields` that `column` refers to.

    Tries, in order: exact key, case-insensitive key, then the camelCase
    transliteration of `column` (case-insensitive).
    """
    if not column:
        return None
    if column in fields:
        return column

    lower_map = {str(k).lower(): k for k in fields.keys()}
    wanted = column.strip().lower()
    if wanted in lower_map:
        return lower_map[wanted]

    camel = snake_to_camel(column).lower()
    return lower_map.get(camel)


def get_field(fields: Mapping[str, Any], column: str, default: Any = None) -> Any:
    key = resolve_field(fields, column)
    if key is None:
        return default
    return fields.get(key, default)


def first_field(fields: Mapping[str, Any], *columns: str, default: Any = None) -> Any:
    for column in columns:
        key = resolve_field(fields, column)
        if key is not None and fields.get(key) is not None:
            return fields[key]
    return default


def to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    return num if math.isfinite(num) else None


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def as_key(value: Any) -> str | None:
    """Normalize a reference / business key for equality matching."""
    if value is None:
        return None
    text = as_text(value).strip()
    return text or None
