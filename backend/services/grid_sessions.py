import logging
import os
import threading
import time
import uuid
from typing import Any, Iterable, Mapping

from services.grid import PROFILE_REGISTRY
from services.grid.edit_session import EditSession, LookupRequest
from services.grid.errors import RowNotFound, ValidationReject
from services.grid.events import DATA_CHANGED, LOOKUP_REQUESTED, ROWS_SELECTED, TABLE_EXPANDED, EventBus
from services.grid.export import export_filename, to_csv
from services.grid.hierarchy import cascade_ids
from services.grid.profiles import GRID_PAGE_SIZE, GridProfile
from services.grid.row_store import Row, RowStore
from services.grid.view import ViewPage, ViewProjector
from services.rules.engine import Rule, apply_rules

logger = logging.getLogger(__name__)

GRID_SESSION_TTL_SECONDS = int(os.getenv("GRID_SESSION_TTL_SECONDS", "3600"))
_MAX_SESSIONS = 256

_sessions_lock = threading.Lock()
_sessions: dict[str, "GridSession"] = {}


class GridSession:
    """One grid instance: its RowStore, view state, edit session and event bus."""

    def __init__(self, session_id: str, profile: GridProfile, filename: str = "", page_size: int | None = None):
        self.session_id = session_id
        self.profile = profile
        self.filename = filename
        self.lock = threading.RLock()
        self.events = EventBus()
        self.store = RowStore()
        self.projector = ViewProjector(
            self.store,
            page_size=page_size or profile.page_size or GRID_PAGE_SIZE,
            pagination=profile.pagination,
        )
        self.editor = EditSession(
            self.store,
            columns=profile.columns,
            editable=profile.editable,
            lookup_field=profile.lookup_field,
            events=self.events,
        )
        self.table_expanded = False
        self.pending_lookups: list[LookupRequest] = []
        self.events.subscribe(LOOKUP_REQUESTED, self.pending_lookups.append)
        self.touched_at = time.time()

    # ---------- lifecycle ----------

    def load(self, raw_rows: Iterable[Mapping[str, Any]]) -> list[Row]:
        # a reload invalidates the open edit and any in-flight lookup
        self.editor.cancel()
        self.pending_lookups.clear()
        self.projector.expanded.clear()
        self.projector.current_page = 1
        rows = self.store.load(raw_rows)
        self.projector.refresh()
        self.events.publish(DATA_CHANGED, self.store.rows)
        return rows

    def _after_mutation(self) -> None:
        state = self.editor.state
        if state is not None and state.row_id not in self.store:
            self.editor.cancel()
        self.projector.refresh()
        self.events.publish(DATA_CHANGED, self.store.rows)

    # ---------- view ----------

    def page(self) -> ViewPage:
        return self.projector.render()

    def statistics(self) -> dict[str, int]:
        index = self.projector.refresh()
        parents = sum(1 for row in self.store.rows if row.is_parent)
        cusips = {str(row.get("cusip")).strip() for row in self.store.rows if row.get("cusip")}
        return {
            "total_rows": len(self.store),
            "parent_rows": parents,
            "child_rows": sum(len(ids) for ids in index.children_of.values()),
            "orphan_rows": len(index.orphans),
            "unique_cusips": len(cusips),
        }

    def toggle_table_expanded(self) -> bool:
        self.table_expanded = not self.table_expanded
        self.events.publish(TABLE_EXPANDED, self.table_expanded)
        return self.table_expanded

    # ---------- selection ----------

    def toggle_select(self, row_id: str) -> bool | None:
        state = self.store.toggle_select(row_id)
        self.events.publish(ROWS_SELECTED, self.store.selected_rows)
        return state

    def select_visible(self) -> int:
        count = self.store.select_all([row.id for row in self.projector.visible_rows()])
        self.events.publish(ROWS_SELECTED, self.store.selected_rows)
        return count

    def clear_selection(self) -> None:
        self.store.clear_selection()
        self.events.publish(ROWS_SELECTED, [])

    # ---------- structural mutations ----------

    def delete_rows(self, row_ids: Iterable[str]) -> list[str]:
        doomed = cascade_ids(self.projector.refresh(), row_ids)
        removed = self.store.delete_rows(doomed)
        self._after_mutation()
        logger.info("GRID %s: deleted rows=%s", self.session_id, len(removed))
        return removed

    def delete_selected(self) -> list[str]:
        selected = [row.id for row in self.store.selected_rows]
        if not selected:
            raise ValidationReject("Please select rows to delete")
        removed = self.delete_rows(selected)
        self.clear_selection()
        return removed

    def add_row(self, fields: Mapping[str, Any] | None = None) -> Row:
        if not self.profile.editable:
            raise ValidationReject("Rows cannot be added to a read-only grid")
        defaults = {col.field: "" for col in self.profile.columns}
        defaults.update(fields or {})
        row = self.store.insert_row(defaults, at_start=True)
        self.projector.current_page = 1
        self._after_mutation()
        return row

    def assign_as_parent(self) -> Row:
        selected = self.store.selected_rows
        if len(selected) != 1:
            raise ValidationReject("Please select exactly one row")
        row = self.store.assign_as_parent(selected[0].id)
        self._after_mutation()
        return row

    def run_rules(self, rules: Iterable[Rule]) -> dict[str, Any]:
        rules = list(rules)
        if len(self.store) == 0:
            raise ValidationReject("No rows to run rules against")
        if not rules:
            raise ValidationReject("No rules selected")

        already_orphaned = set(self.projector.refresh().orphans)
        kept, excluded = apply_rules(self.store.rows, rules)
        self.store.replace(kept)
        self.pending_lookups.clear()
        self._after_mutation()

        # children whose parent was excluded stay in the store but drop out of the view
        orphaned = [row_id for row_id in self.projector.refresh().orphans if row_id not in already_orphaned]
        logger.info(
            "GRID %s: rules=%s excluded=%s remaining=%s orphaned=%s",
            self.session_id,
            len(rules),
            len(excluded),
            len(kept),
            len(orphaned),
        )
        return {
            "rules_applied": len(rules),
            "excluded_count": len(excluded),
            "excluded_ids": [row.id for row in excluded],
            "remaining_count": len(kept),
            "orphaned_count": len(orphaned),
            "orphaned_ids": orphaned,
        }

    # ---------- export ----------

    def export_rows(self) -> list[Row]:
        selected = self.store.selected_rows
        return selected if selected else self.projector.visible_rows()

    def export_csv(self) -> tuple[str, str, int]:
        rows = self.export_rows()
        if not rows:
            raise ValidationReject("No data to export")
        return export_filename(), to_csv(rows, self.profile.columns), len(rows)


def _evict_expired(now: float) -> None:
    expired = [sid for sid, s in _sessions.items() if s.touched_at + GRID_SESSION_TTL_SECONDS <= now]
    for sid in expired:
        _sessions.pop(sid, None)
    if expired:
        logger.info("GRID: evicted idle sessions=%s", len(expired))


def create_session(profile_name: str = "manual_color", filename: str = "", page_size: int | None = None) -> GridSession:
    profile = PROFILE_REGISTRY.get(profile_name)
    if profile is None:
        raise ValidationReject(f"Unknown grid profile '{profile_name}'")

    session = GridSession(uuid.uuid4().hex, profile, filename=filename, page_size=page_size)
    now = time.time()
    with _sessions_lock:
        if len(_sessions) >= _MAX_SESSIONS:
            _evict_expired(now)
        _sessions[session.session_id] = session
    return session


def get_session(session_id: str) -> GridSession:
    with _sessions_lock:
        session = _sessions.get(session_id)
    if session is None:
        raise RowNotFound(f"Session '{session_id}' not found")
    session.touched_at = time.time()
    return session


def drop_session(session_id: str) -> bool:
    with _sessions_lock:
        return _sessions.pop(session_id, None) is not None
