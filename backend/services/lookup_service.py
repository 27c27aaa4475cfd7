import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.color_repository import lookup_by_business_key
from services.grid.edit_session import LookupRequest
from services.grid.errors import LookupFailure
from services.grid.events import DATA_CHANGED
from services.grid.fields import get_field
from services.grid.profiles import LOOKUP_DEPENDENT_FIELDS
from services.grid.row_store import normalize_source_row

logger = logging.getLogger(__name__)

ERROR_SENTINEL = "ERROR"


def fetch(db: Session, key: Any) -> dict:
    """Normalized fields for a business key; LookupFailure when absent or unreachable."""
    try:
        payload = lookup_by_business_key(db, key)
    except SQLAlchemyError as exc:
        raise LookupFailure(key, reason=str(exc)) from exc
    if payload is None:
        raise LookupFailure(key)
    return normalize_source_row(payload)["fields"]


def dependent_patch(fields: dict | None) -> dict[str, Any]:
    if fields is None:
        return {name: ERROR_SENTINEL for name in LOOKUP_DEPENDENT_FIELDS}
    return {name: get_field(fields, name, "") for name in LOOKUP_DEPENDENT_FIELDS}


def apply_lookup(session, request: LookupRequest, fields: dict | None) -> bool:
    """
    Write a lookup result into the row it was issued for. Dropped when the
    store was reloaded since (generation mismatch) or the row is gone.
    """
    if request.generation != session.store.generation:
        logger.debug("lookup for %s dropped: stale generation %s", request.row_id, request.generation)
        return False

    changes = session.store.update_row_fields(request.row_id, dependent_patch(fields))
    if changes is None:
        return False
    if changes:
        session.events.publish(DATA_CHANGED, session.store.rows)
    return True


def resolve_pending(db: Session, session) -> dict[str, int]:
    pending = list(session.pending_lookups)
    session.pending_lookups.clear()

    applied = failed = 0
    for request in pending:
        try:
            fields = fetch(db, request.value)
        except LookupFailure as exc:
            logger.warning("LOOKUP: session=%s row=%s %s", session.session_id, request.row_id, exc)
            fields = None
            failed += 1
        if apply_lookup(session, request, fields):
            applied += 1

    return {"requested": len(pending), "applied": applied, "failed": failed}
