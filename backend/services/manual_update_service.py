import logging

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from models.colors import ColorRecord
from models.import_sessions import ImportSessionMarker
from services.color_repository import invalidate_color_cache
from services.grid.fields import as_key, as_text
from services.grid.row_store import BUSINESS_KEY_FIELD, Row

logger = logging.getLogger(__name__)

MANUAL_PROCESSING_TYPE = "manual"


def _session_key(session_id: str | None) -> str:
    if session_id is None:
        return ""
    return session_id.strip()


def mark_session_saved(db: Session, session_id: str | None, filename: str | None, rows_saved: int) -> None:
    key = _session_key(session_id)
    if not key:
        return

    marker = db.query(ImportSessionMarker).filter(ImportSessionMarker.session_id == key).first()

    if marker is None:
        marker = ImportSessionMarker(session_id=key, filename=(filename or "").strip(), rows_saved=rows_saved)
        db.add(marker)
    else:
        marker.rows_saved = rows_saved
        marker.saved_at = func.now()

    db.flush()


def _text_or_none(value) -> str | None:
    text = as_text(value).strip()
    return text or None


def to_color_record(row: Row, parent: Row | None, child_count: int, session_id: str | None = None) -> ColorRecord:
    parent_key = None
    if parent is not None:
        parent_key = as_key(parent.get(BUSINESS_KEY_FIELD)) or parent.id
    elif row.parent_ref:
        parent_key = row.parent_ref

    return ColorRecord(
        message_id=as_key(row.get(BUSINESS_KEY_FIELD)),
        parent_message_id=None if row.is_parent and parent is None else parent_key,
        is_parent=bool(row.is_parent),
        children_count=child_count,
        sector=_text_or_none(row.get("sector")),
        processing_type=MANUAL_PROCESSING_TYPE,
        session_id=session_id,
        source=_text_or_none(row.get("source")),
        bias=_text_or_none(row.get("bias")),
        date=_text_or_none(row.get("date")),
        data=dict(row.fields),
    )


def clear_session_colors(db: Session, session_id: str) -> int:
    """Drop colors a previous save of this session wrote; a re-save replaces them."""
    if not session_id:
        return 0
    deleted = (
        db.query(ColorRecord)
        .filter(ColorRecord.session_id == session_id)
        .filter(ColorRecord.processing_type == MANUAL_PROCESSING_TYPE)
        .delete(synchronize_session=False)
    )
    return int(deleted or 0)


def save_session(db: Session, session) -> dict[str, int]:
    """
    Persist every row of a grid session as manual colors, in store order, and
    record the import session as saved. The caller commits.
    """
    session_key = _session_key(session.session_id)
    replaced = clear_session_colors(db, session_key)

    index = session.projector.refresh()
    records = []
    for row in session.store.rows:
        parent_id = index.parent_of.get(row.id)
        parent = session.store.get(parent_id) if parent_id else None
        child_count = len(index.children_of.get(row.id, ())) or int(row.child_count or 0)
        records.append(to_color_record(row, parent, child_count, session_key))

    db.add_all(records)
    db.flush()
    mark_session_saved(db, session.session_id, session.filename, len(records))
    invalidate_color_cache()

    logger.info("SAVE: session=%s rows=%s replaced=%s", session.session_id, len(records), replaced)
    return {"rows_saved": len(records)}
