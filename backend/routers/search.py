# routers/search.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from db.deps import get_db
from models.schemas import FilterDialogRequest, SearchRequest
from services.color_repository import search
from services.grid.errors import ImportFailure
from services.rules.filter_compiler import (
    COLUMN_MAP,
    OPERATOR_OPTIONS,
    CompiledCondition,
    compile_filters,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/search", tags=["search"])


def _run_search(db: Session, predicates: list[CompiledCondition], **kwargs) -> dict:
    try:
        return search(db, predicates, **kwargs)
    except ImportFailure as exc:
        logger.warning("SEARCH: failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))


def _compile(payload: FilterDialogRequest) -> list[CompiledCondition]:
    return compile_filters(
        [c.model_dump() for c in payload.conditions],
        [g.model_dump() for g in payload.subgroups],
    )


@router.get("/options")
def filter_options():
    return {
        "columns": list(COLUMN_MAP.keys()),
        "operators": OPERATOR_OPTIONS,
    }


@router.post("/compile")
def compile_dialog(payload: FilterDialogRequest):
    return {"filters": [c.to_dict() | {"type": c.type} for c in _compile(payload)]}


@router.post("/generic")
def generic_search(payload: SearchRequest, db: Session = Depends(get_db)):
    predicates = [
        CompiledCondition(field=f.field, operator=f.operator, value=f.value, value2=f.value2, type=f.type)
        for f in payload.filters
    ]
    return _run_search(
        db,
        predicates,
        skip=payload.skip,
        limit=payload.limit,
        sort_by=payload.sort_by,
        sort_order=payload.sort_order,
    )


@router.post("/filter")
def filter_search(
    payload: FilterDialogRequest,
    skip: int = Query(0, ge=0),
    limit: int = Query(500, ge=1, le=5000),
    db: Session = Depends(get_db),
):
    return _run_search(db, _compile(payload), skip=skip, limit=limit)


@router.get("/fields")
def available_fields(db: Session = Depends(get_db)):
    result = _run_search(db, [], skip=0, limit=1)
    return {"fields": result["available_fields"]}
