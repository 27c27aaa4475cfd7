# services/grid/row_store.py

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from services.grid.fields import (
    as_key,
    as_text,
    first_field,
    resolve_field,
    snake_to_camel,
    to_number,
)

logger = logging.getLogger(__name__)

ID_PREFIX = "row_"
BUSINESS_KEY_FIELD = os.getenv("GRID_BUSINESS_KEY_FIELD", "messageId")

_ID_KEYS = ("id", "_rowId", "row_id")
_BUSINESS_KEYS = ("business_id", "message_id")
_PARENT_KEYS = ("parent_business_id", "parent_message_id", "parent_id", "parentRow", "parent_ref")
_IS_PARENT_KEYS = ("is_parent",)
_CHILD_COUNT_KEYS = ("children_count", "child_count")
# derived on every rebuild or owned by the store, never carried as data
_BOOKKEEPING_KEYS = {
    "id", "_rowid", "row_id", "rowid", "business_id",
    "parent_business_id", "parent_message_id", "parentmessageid", "parent_id", "parentid",
    "parentrow", "parent_ref", "is_parent", "isparent",
    "children_count", "childrencount", "child_count", "childcount",
    "_selected", "selected", "rownumber", "row_number", "children",
}


@dataclass(eq=False)
class Row:
    id: str
    fields: dict[str, Any] = field(default_factory=dict)
    is_parent: bool = False
    parent_ref: str | None = None
    selected: bool = False
    child_count: int | None = None

    def __setattr__(self, name, value):
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Row id is immutable")
        super().__setattr__(name, value)

    def get(self, column: str, default: Any = None) -> Any:
        key = resolve_field(self.fields, column)
        return self.fields.get(key, default) if key is not None else default

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            **self.fields,
            "isParent": self.is_parent,
            "parentRef": self.parent_ref,
            "childrenCount": self.child_count,
            "selected": self.selected,
        }


@dataclass(frozen=True)
class FieldChange:
    row_id: str
    field: str
    old_value: Any
    new_value: Any


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value or "").strip().lower() in {"1", "true", "yes", "y"}


def same_value(a: Any, b: Any) -> bool:
    a_num = isinstance(a, (int, float)) and not isinstance(a, bool)
    b_num = isinstance(b, (int, float)) and not isinstance(b, bool)
    if a_num and b_num:
        return a == b
    return type(a) is type(b) and a == b


def normalize_source_row(raw: Mapping[str, Any]) -> dict[str, Any]:
    """
    Adapt a loosely-typed source record into the pieces a Row needs.

    Bookkeeping keys (business_id, parent_business_id, is_parent,
    children_count and their aliases) are consumed; every other key becomes a
    camelCase field. A `mid` is derived from bid/ask when the source has none.
    """
    business_key = first_field(raw, *_BUSINESS_KEYS)
    parent_ref = as_key(first_field(raw, *_PARENT_KEYS))
    is_parent = _as_bool(first_field(raw, *_IS_PARENT_KEYS, default=False))
    child_count = to_number(first_field(raw, *_CHILD_COUNT_KEYS))

    fields: dict[str, Any] = {}
    for key, value in raw.items():
        name = str(key)
        if name.lower() in _BOOKKEEPING_KEYS:
            continue
        fields[snake_to_camel(name) if "_" in name else name] = value

    if business_key is not None:
        fields[BUSINESS_KEY_FIELD] = as_text(business_key)

    if resolve_field(fields, "mid") is None:
        bid = to_number(fields.get("bid"))
        ask = to_number(fields.get("ask"))
        if bid is not None and ask is not None:
            fields["mid"] = (bid + ask) / 2

    return {
        "id": as_key(first_field(raw, *_ID_KEYS)),
        "business_key": as_key(business_key),
        "fields": fields,
        "is_parent": is_parent,
        "parent_ref": parent_ref,
        "child_count": int(child_count) if child_count is not None else None,
    }


class RowStore:
    """
    Canonical ordered collection of rows.

    Views hold references to the Row objects kept here, never copies, so
    selection and edits are visible everywhere at once. Operations that name an
    unknown row id are silent no-ops.
    """

    def __init__(self):
        self._rows: list[Row] = []
        self._by_id: dict[str, Row] = {}
        self._seq = 0
        self.generation = 0

    # ---------- reads ----------

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self):
        return iter(list(self._rows))

    def __contains__(self, row_id) -> bool:
        return row_id in self._by_id

    @property
    def rows(self) -> list[Row]:
        return list(self._rows)

    def get(self, row_id: str) -> Row | None:
        return self._by_id.get(row_id)

    @property
    def selected_rows(self) -> list[Row]:
        return [row for row in self._rows if row.selected]

    # ---------- ids ----------

    def _next_id(self, base: str, taken: set[str]) -> str:
        if base not in taken:
            return base
        suffix = 2
        while f"{base}_{suffix}" in taken:
            suffix += 1
        return f"{base}_{suffix}"

    def _synthesize_id(self, business_key: str | None, taken: set[str]) -> str:
        if business_key:
            return self._next_id(f"{ID_PREFIX}{business_key}", taken)
        self._seq += 1
        return self._next_id(f"{ID_PREFIX}auto_{self._seq}", taken)

    # ---------- lifecycle ----------

    def load(self, raw_rows: Iterable[Mapping[str, Any]]) -> list[Row]:
        taken: set[str] = set()
        rows: list[Row] = []
        for raw in raw_rows:
            parts = normalize_source_row(raw)
            source_id = parts["id"]
            if source_id:
                row_id = self._next_id(source_id, taken)
            else:
                row_id = self._synthesize_id(parts["business_key"], taken)
            taken.add(row_id)
            rows.append(
                Row(
                    id=row_id,
                    fields=parts["fields"],
                    is_parent=parts["is_parent"],
                    parent_ref=parts["parent_ref"],
                    child_count=parts["child_count"],
                )
            )

        self._rows = rows
        self._by_id = {row.id: row for row in rows}
        self.generation += 1
        logger.info("ROWSTORE: loaded rows=%s generation=%s", len(rows), self.generation)
        return self.rows

    def replace(self, rows: Iterable[Row]) -> None:
        """Swap in a new snapshot built from existing Row objects."""
        self._rows = list(rows)
        self._by_id = {row.id: row for row in self._rows}
        self.generation += 1

    # ---------- selection ----------

    def toggle_select(self, row_id: str) -> bool | None:
        row = self._by_id.get(row_id)
        if row is None:
            logger.debug("toggle_select: unknown row %s", row_id)
            return None
        row.selected = not row.selected
        return row.selected

    def select_all(self, row_ids: Iterable[str] | None = None) -> int:
        targets = self._rows if row_ids is None else [self._by_id[i] for i in row_ids if i in self._by_id]
        for row in targets:
            row.selected = True
        return len(targets)

    def clear_selection(self) -> None:
        for row in self._rows:
            row.selected = False

    # ---------- mutation ----------

    def update_field(self, row_id: str, field_name: str, value: Any) -> FieldChange | None:
        row = self._by_id.get(row_id)
        if row is None:
            logger.debug("update_field: unknown row %s", row_id)
            return None

        key = resolve_field(row.fields, field_name) or field_name
        old_value = row.fields.get(key)
        if key in row.fields and same_value(old_value, value):
            return None

        row.fields[key] = value
        return FieldChange(row_id=row_id, field=key, old_value=old_value, new_value=value)

    def update_row_fields(self, row_id: str, patch: Mapping[str, Any]) -> list[FieldChange] | None:
        if row_id not in self._by_id:
            logger.debug("update_row_fields: row %s no longer present, dropping patch", row_id)
            return None
        changes = []
        for field_name, value in patch.items():
            change = self.update_field(row_id, field_name, value)
            if change is not None:
                changes.append(change)
        return changes

    def delete_rows(self, row_ids: Iterable[str]) -> list[str]:
        doomed = {i for i in row_ids if i in self._by_id}
        if not doomed:
            return []
        self._rows = [row for row in self._rows if row.id not in doomed]
        for row_id in doomed:
            self._by_id.pop(row_id, None)
        return sorted(doomed)

    def insert_row(
        self,
        fields: Mapping[str, Any] | None = None,
        at_start: bool = True,
        is_parent: bool = True,
        parent_ref: str | None = None,
    ) -> Row:
        self._seq += 1
        row_id = self._next_id(f"{ID_PREFIX}new_{self._seq}", set(self._by_id))
        row = Row(
            id=row_id,
            fields=dict(fields or {}),
            is_parent=is_parent,
            parent_ref=as_key(parent_ref),
        )
        if at_start:
            self._rows.insert(0, row)
        else:
            self._rows.append(row)
        self._by_id[row.id] = row
        return row

    def assign_as_parent(self, row_id: str) -> Row | None:
        row = self._by_id.get(row_id)
        if row is None:
            return None
        row.is_parent = True
        row.parent_ref = None
        row.child_count = row.child_count or 0
        return row
