# services/grid/edit_session.py

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from services.grid.errors import ValidationReject
from services.grid.events import CELL_EDITED, DATA_CHANGED, LOOKUP_REQUESTED, EventBus
from services.grid.row_store import FieldChange, RowStore, same_value

logger = logging.getLogger(__name__)

ACCEPT_KEYS = {"Enter"}
CANCEL_KEYS = {"Escape"}
# selection and numbering columns are never editable
LOCKED_FIELDS = {"select", "rowNumber"}


@dataclass(frozen=True)
class ColumnSpec:
    field: str
    header: str
    editable: bool = True
    type: str = "text"


@dataclass(frozen=True)
class EditingState:
    row_id: str
    field: str
    pending_value: Any


@dataclass(frozen=True)
class LookupRequest:
    row_id: str
    value: Any
    generation: int


class EditSession:
    """
    Single in-flight cell edit: Idle, or Editing(row, field, pending value).

    In lookup mode the grid is read-only except `lookup_field`; committing a
    new value there writes the key itself and publishes a LookupRequest. The
    resolver writes dependent fields back through RowStore.update_row_fields.
    """

    def __init__(
        self,
        store: RowStore,
        columns: Iterable[ColumnSpec] = (),
        editable: bool = True,
        lookup_field: str | None = None,
        events: EventBus | None = None,
    ):
        self.store = store
        self.columns = {col.field: col for col in columns}
        self.editable = editable
        self.lookup_field = lookup_field
        self.events = events or EventBus()
        self._editing: EditingState | None = None

    @property
    def state(self) -> EditingState | None:
        return self._editing

    @property
    def is_editing(self) -> bool:
        return self._editing is not None

    def _check_editable(self, field: str) -> None:
        if not self.editable:
            raise ValidationReject("Editing is disabled for this grid")
        if field in LOCKED_FIELDS:
            raise ValidationReject(f"Field '{field}' is not editable")
        if self.columns:
            column = self.columns.get(field)
            if column is None or not column.editable:
                raise ValidationReject(f"Field '{field}' is not editable")
        if self.lookup_field is not None and field != self.lookup_field:
            raise ValidationReject(f"Only '{self.lookup_field}' can be edited in lookup mode")

    def start_edit(self, row_id: str, field: str) -> EditingState | None:
        current = self._editing
        if current is not None and current.row_id == row_id and current.field == field:
            return current

        self._check_editable(field)

        row = self.store.get(row_id)
        if row is None:
            logger.debug("start_edit: unknown row %s", row_id)
            return None

        self._editing = EditingState(row_id=row_id, field=field, pending_value=row.get(field))
        return self._editing

    def set_value(self, value: Any) -> None:
        if self._editing is None:
            return
        self._editing = EditingState(
            row_id=self._editing.row_id,
            field=self._editing.field,
            pending_value=value,
        )

    def commit(self) -> FieldChange | LookupRequest | None:
        state = self._editing
        if state is None:
            return None
        self._editing = None

        row = self.store.get(state.row_id)
        if row is None:
            return None

        if self.lookup_field is not None and state.field == self.lookup_field:
            if same_value(row.get(state.field), state.pending_value):
                return None
            self.store.update_field(state.row_id, state.field, state.pending_value)
            request = LookupRequest(
                row_id=state.row_id,
                value=state.pending_value,
                generation=self.store.generation,
            )
            self.events.publish(LOOKUP_REQUESTED, request)
            return request

        change = self.store.update_field(state.row_id, state.field, state.pending_value)
        if change is None:
            return None

        self.events.publish(
            CELL_EDITED,
            {
                "row": row,
                "field": change.field,
                "oldValue": change.old_value,
                "newValue": change.new_value,
            },
        )
        self.events.publish(DATA_CHANGED, self.store.rows)
        return change

    def cancel(self) -> None:
        self._editing = None

    def handle_key(self, key: str) -> FieldChange | LookupRequest | None:
        if key in ACCEPT_KEYS:
            return self.commit()
        if key in CANCEL_KEYS:
            self.cancel()
        return None
