import logging
from contextlib import contextmanager

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.deps import get_db
from models.schemas import (
    AddRowRequest,
    ApplyRulesRequest,
    EditKeyRequest,
    EditStartRequest,
    PageRequest,
    RowIdsRequest,
    RowRequest,
    SessionCreateRequest,
)
from services import grid_sessions
from services.grid.edit_session import LookupRequest
from services.grid.errors import ImportFailure, RowNotFound, ValidationReject
from services.grid.row_store import FieldChange
from services.import_service import import_into
from services.lookup_service import resolve_pending
from services.manual_update_service import save_session
from services.rules.repository import get_rules_by_ids, list_active_rules

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/manual-color", tags=["manual-color"])


@contextmanager
def _grid_errors():
    try:
        yield
    except ValidationReject as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except RowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ImportFailure as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _session(session_id: str) -> grid_sessions.GridSession:
    with _grid_errors():
        return grid_sessions.get_session(session_id)


def _page_payload(session: grid_sessions.GridSession) -> dict:
    page = session.page()
    state = session.editor.state
    return {
        "session_id": session.session_id,
        "profile": session.profile.name,
        "page": page.page,
        "page_size": page.page_size,
        "total_pages": page.total_pages,
        "total_groups": page.total_groups,
        "total_rows": page.total_rows,
        "rows": [item.to_dict() for item in page.rows],
        "selected_count": len(session.store.selected_rows),
        "all_selected": session.projector.is_all_selected(),
        "some_selected": session.projector.is_some_selected(),
        "editing": None
        if state is None
        else {"row_id": state.row_id, "field": state.field, "value": state.pending_value},
        "table_expanded": session.table_expanded,
        "columns": [{"field": c.field, "header": c.header, "editable": c.editable, "type": c.type} for c in session.profile.columns],
    }


# ==================================================
# SESSION LIFECYCLE
# ==================================================

@router.post("/sessions")
def create_session(payload: SessionCreateRequest):
    with _grid_errors():
        session = grid_sessions.create_session(payload.profile, page_size=payload.page_size)
    with session.lock:
        session.load(payload.rows)
        return {**session.statistics(), **_page_payload(session)}


@router.post("/import")
async def import_file(
    file: UploadFile = File(...),
    profile: str = Form("manual_color"),
):
    contents = await file.read()
    with _grid_errors():
        session = grid_sessions.create_session(profile)
        try:
            stats = import_into(session, file.filename or "", contents)
        except ImportFailure:
            grid_sessions.drop_session(session.session_id)
            logger.warning("IMPORT: failed for file=%s", file.filename)
            raise

    with session.lock:
        return {**stats, "preview": _page_payload(session)}


@router.get("/sessions/{session_id}")
def preview(session_id: str):
    session = _session(session_id)
    with session.lock:
        return _page_payload(session)


@router.delete("/sessions/{session_id}")
def close_session(session_id: str):
    if not grid_sessions.drop_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {"closed": session_id}


@router.post("/sessions/{session_id}/page")
def go_to_page(session_id: str, payload: PageRequest):
    session = _session(session_id)
    with session.lock:
        session.projector.refresh()
        if not session.projector.go_to_page(payload.page):
            raise HTTPException(status_code=400, detail=f"Page {payload.page} is out of range")
        return _page_payload(session)


# ==================================================
# SELECTION / EXPANSION / LAYOUT
# ==================================================

@router.post("/sessions/{session_id}/select")
def toggle_select(session_id: str, payload: RowRequest):
    session = _session(session_id)
    with session.lock:
        session.toggle_select(payload.row_id)
        return _page_payload(session)


@router.post("/sessions/{session_id}/select-all")
def select_all(session_id: str):
    session = _session(session_id)
    with session.lock:
        session.select_visible()
        return _page_payload(session)


@router.post("/sessions/{session_id}/clear-selection")
def clear_selection(session_id: str):
    session = _session(session_id)
    with session.lock:
        session.clear_selection()
        return _page_payload(session)


@router.post("/sessions/{session_id}/expand")
def toggle_expand(session_id: str, payload: RowRequest):
    session = _session(session_id)
    with session.lock:
        session.projector.toggle_expand(payload.row_id)
        return _page_payload(session)


@router.post("/sessions/{session_id}/expand-all")
def expand_all(session_id: str):
    session = _session(session_id)
    with session.lock:
        session.projector.expand_all()
        return _page_payload(session)


@router.post("/sessions/{session_id}/collapse-all")
def collapse_all(session_id: str):
    session = _session(session_id)
    with session.lock:
        session.projector.collapse_all()
        return _page_payload(session)


@router.post("/sessions/{session_id}/layout/toggle")
def toggle_layout(session_id: str):
    session = _session(session_id)
    with session.lock:
        return {"table_expanded": session.toggle_table_expanded()}


# ==================================================
# EDITING
# ==================================================

@router.post("/sessions/{session_id}/edit/start")
def start_edit(session_id: str, payload: EditStartRequest):
    session = _session(session_id)
    with session.lock, _grid_errors():
        state = session.editor.start_edit(payload.row_id, payload.field)
        if state is None:
            raise RowNotFound(f"Row '{payload.row_id}' not found")
        return {"row_id": state.row_id, "field": state.field, "value": state.pending_value}


@router.post("/sessions/{session_id}/edit/key")
def edit_key(session_id: str, payload: EditKeyRequest, db: Session = Depends(get_db)):
    session = _session(session_id)
    with session.lock:
        if "value" in payload.model_fields_set:
            session.editor.set_value(payload.value)
        result = session.editor.handle_key(payload.key)

        response: dict = {"committed": False, "change": None, "lookup": None}
        if isinstance(result, FieldChange):
            session.projector.refresh()
            response["committed"] = True
            response["change"] = {
                "row_id": result.row_id,
                "field": result.field,
                "old_value": result.old_value,
                "new_value": result.new_value,
            }
        elif isinstance(result, LookupRequest):
            response["committed"] = True
            response["lookup"] = resolve_pending(db, session)
            session.projector.refresh()

        return {**response, "grid": _page_payload(session)}


@router.post("/sessions/{session_id}/lookups/resolve")
def resolve_lookups(session_id: str, db: Session = Depends(get_db)):
    session = _session(session_id)
    with session.lock:
        return resolve_pending(db, session)


# ==================================================
# STRUCTURAL MUTATIONS
# ==================================================

@router.post("/sessions/{session_id}/rows")
def add_row(session_id: str, payload: AddRowRequest):
    session = _session(session_id)
    with session.lock, _grid_errors():
        row = session.add_row(payload.fields)
        return {"row_id": row.id, "grid": _page_payload(session)}


@router.post("/sessions/{session_id}/rows/delete")
def delete_rows(session_id: str, payload: RowIdsRequest):
    session = _session(session_id)
    with session.lock:
        removed = session.delete_rows(payload.row_ids)
        return {"deleted_ids": removed, "deleted_count": len(removed), "grid": _page_payload(session)}


@router.post("/sessions/{session_id}/delete-selected")
def delete_selected(session_id: str):
    session = _session(session_id)
    with session.lock, _grid_errors():
        removed = session.delete_selected()
        return {"deleted_ids": removed, "deleted_count": len(removed), "grid": _page_payload(session)}


@router.post("/sessions/{session_id}/assign-parent")
def assign_parent(session_id: str):
    session = _session(session_id)
    with session.lock, _grid_errors():
        row = session.assign_as_parent()
        return {"row_id": row.id, "grid": _page_payload(session)}


@router.post("/sessions/{session_id}/apply-rules")
def apply_rules(session_id: str, payload: ApplyRulesRequest, db: Session = Depends(get_db)):
    session = _session(session_id)
    rules = get_rules_by_ids(db, payload.rule_ids) if payload.rule_ids else list_active_rules(db)
    with session.lock, _grid_errors():
        result = session.run_rules(rules)
        return {**result, "grid": _page_payload(session)}


# ==================================================
# EXPORT / SAVE
# ==================================================

@router.get("/sessions/{session_id}/export")
def export_csv(session_id: str):
    session = _session(session_id)
    with session.lock, _grid_errors():
        filename, content, count = session.export_csv()

    logger.info("EXPORT: session=%s rows=%s file=%s", session_id, count, filename)
    return StreamingResponse(
        iter([content.encode("utf-8")]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/sessions/{session_id}/save")
def save(session_id: str, db: Session = Depends(get_db)):
    session = _session(session_id)
    with session.lock:
        if len(session.store) == 0:
            raise HTTPException(status_code=400, detail="No rows to save")
        try:
            result = save_session(db, session)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("SAVE: session=%s failed: %s", session_id, exc)
            raise HTTPException(status_code=502, detail="Failed to save session")
    return {"session_id": session_id, **result}
