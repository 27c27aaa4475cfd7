# routers/colors.py

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from db.deps import get_db
from services.color_repository import load_rows, lookup_by_business_key, output_stats
from services.grid import PROFILE_REGISTRY
from services.grid.row_store import RowStore
from services.grid.view import ViewProjector

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _normalize(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


@router.get("/colors")
def list_colors(
    cusip: str | None = Query(None),
    ticker: str | None = Query(None),
    message_id: str | None = Query(None),
    asset_class: str | None = Query(None),
    source: str | None = Query(None),
    bias: str | None = Query(None),
    processing_type: str | None = Query(None),
    date_from: str | None = Query(None),
    date_to: str | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    criteria = {
        "cusip": _normalize(cusip),
        "ticker": _normalize(ticker),
        "message_id": _normalize(message_id),
        "asset_class": _normalize(asset_class),
        "source": _normalize(source),
        "bias": _normalize(bias),
        "processing_type": _normalize(processing_type),
        "date_from": _normalize(date_from),
        "date_to": _normalize(date_to),
    }
    total, records = load_rows(db, criteria)

    # page by parent group over the whole filtered set so a group is never cut
    # from its children; skip/limit count groups
    profile = PROFILE_REGISTRY["dashboard"]
    store = RowStore()
    store.load(records)
    projector = ViewProjector(store, page_size=limit, pagination=True)
    projector.expand_all()
    page_number = skip // limit + 1
    in_range = projector.go_to_page(page_number)
    page = projector.render()

    return {
        "total_count": total,
        "skip": skip,
        "limit": limit,
        "page": page_number,
        "total_pages": page.total_pages,
        "total_groups": page.total_groups,
        "rows": [item.to_dict() for item in page.rows] if in_range else [],
        "columns": [{"field": c.field, "header": c.header} for c in profile.columns],
    }


@router.get("/colors/{message_id}")
def get_color(message_id: str, db: Session = Depends(get_db)):
    payload = lookup_by_business_key(db, message_id)
    if payload is None:
        raise HTTPException(status_code=404, detail=f"No color found for message id '{message_id}'")
    return payload


@router.get("/output-stats")
def get_output_stats(db: Session = Depends(get_db)):
    return output_stats(db)
