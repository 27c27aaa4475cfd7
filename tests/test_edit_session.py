# tests/test_edit_session.py
import pytest

from services.grid.edit_session import ColumnSpec, EditSession, LookupRequest
from services.grid.errors import ValidationReject
from services.grid.events import CELL_EDITED, DATA_CHANGED, LOOKUP_REQUESTED, EventBus
from services.grid.profiles import COLOR_COLUMNS
from services.grid.row_store import FieldChange


def _recorder(events, *names):
    seen = []
    for name in names:
        events.subscribe(name, lambda payload, name=name: seen.append((name, payload)))
    return seen


def test_commit_publishes_cell_edited_then_data_changed(store):
    events = EventBus()
    seen = _recorder(events, CELL_EDITED, DATA_CHANGED)
    editor = EditSession(store, COLOR_COLUMNS, events=events)

    state = editor.start_edit("row_M1", "ticker")
    assert state.pending_value == "AAA"
    editor.set_value("AAZ")
    change = editor.handle_key("Enter")

    assert isinstance(change, FieldChange)
    assert store.get("row_M1").fields["ticker"] == "AAZ"
    assert [name for name, _ in seen] == [CELL_EDITED, DATA_CHANGED]
    payload = seen[0][1]
    assert payload["row"] is store.get("row_M1")
    assert payload["oldValue"] == "AAA"
    assert payload["newValue"] == "AAZ"
    assert not editor.is_editing


def test_commit_without_change_is_silent(store):
    events = EventBus()
    seen = _recorder(events, CELL_EDITED, DATA_CHANGED)
    editor = EditSession(store, COLOR_COLUMNS, events=events)
    editor.start_edit("row_M1", "ticker")
    assert editor.commit() is None
    assert seen == []


def test_escape_cancels(store):
    editor = EditSession(store, COLOR_COLUMNS)
    editor.start_edit("row_M1", "ticker")
    editor.set_value("nope")
    assert editor.handle_key("Escape") is None
    assert not editor.is_editing
    assert store.get("row_M1").fields["ticker"] == "AAA"


def test_other_keys_keep_editing(store):
    editor = EditSession(store, COLOR_COLUMNS)
    editor.start_edit("row_M1", "ticker")
    assert editor.handle_key("Tab") is None
    assert editor.is_editing


def test_start_edit_same_cell_is_noop(store):
    editor = EditSession(store, COLOR_COLUMNS)
    editor.start_edit("row_M1", "ticker")
    editor.set_value("draft")
    state = editor.start_edit("row_M1", "ticker")
    assert state.pending_value == "draft"


def test_only_one_edit_open(store):
    editor = EditSession(store, COLOR_COLUMNS)
    editor.start_edit("row_M1", "ticker")
    editor.start_edit("row_M2", "cusip")
    assert editor.state.row_id == "row_M2"
    assert editor.state.field == "cusip"


def test_start_edit_unknown_row_returns_none(store):
    editor = EditSession(store, COLOR_COLUMNS)
    assert editor.start_edit("missing", "ticker") is None
    assert not editor.is_editing


@pytest.mark.parametrize("field", ["select", "rowNumber", "notAColumn"])
def test_locked_and_unknown_fields_rejected(store, field):
    editor = EditSession(store, COLOR_COLUMNS)
    with pytest.raises(ValidationReject):
        editor.start_edit("row_M1", field)


def test_read_only_grid_rejects_edits(store):
    editor = EditSession(store, [ColumnSpec("ticker", "Ticker", editable=False)])
    with pytest.raises(ValidationReject):
        editor.start_edit("row_M1", "ticker")

    disabled = EditSession(store, COLOR_COLUMNS, editable=False)
    with pytest.raises(ValidationReject):
        disabled.start_edit("row_M1", "ticker")


def test_lookup_mode_publishes_request(store):
    events = EventBus()
    seen = _recorder(events, LOOKUP_REQUESTED, CELL_EDITED)
    editor = EditSession(store, COLOR_COLUMNS, lookup_field="messageId", events=events)

    with pytest.raises(ValidationReject):
        editor.start_edit("row_M1", "ticker")

    editor.start_edit("row_M1", "messageId")
    editor.set_value("M2")
    request = editor.handle_key("Enter")

    assert isinstance(request, LookupRequest)
    assert request.row_id == "row_M1"
    assert request.value == "M2"
    assert request.generation == store.generation
    assert store.get("row_M1").fields["messageId"] == "M2"
    assert seen == [(LOOKUP_REQUESTED, request)]


def test_commit_after_row_deleted_is_dropped(store):
    editor = EditSession(store, COLOR_COLUMNS)
    editor.start_edit("row_M1", "ticker")
    editor.set_value("X")
    store.delete_rows(["row_M1"])
    assert editor.commit() is None
    assert not editor.is_editing
