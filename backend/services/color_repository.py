import threading
import time
from typing import Any

import pandas as pd
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.colors import ColorRecord
from services.grid.errors import ImportFailure
from services.grid.fields import as_key, resolve_field
from services.rules.engine import evaluate_conditions
from services.rules.filter_compiler import CompiledCondition

_CACHE_TTL_SECONDS = 300
_frame_cache_lock = threading.Lock()
_frame_cache: dict[str, tuple[float, pd.DataFrame]] = {}
_FRAME_KEY = "colors"

# listing filters matched case-insensitively against the payload
_TEXT_FILTERS = ("cusip", "ticker", "message_id", "source", "bias", "processing_type")


def invalidate_color_cache() -> None:
    with _frame_cache_lock:
        _frame_cache.clear()


def _json_safe(value: Any):
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if hasattr(value, "item"):
        # numpy scalar
        return value.item()
    return value


def clean_json_row(row: dict) -> dict:
    return {k: _json_safe(v) for k, v in row.items()}


def color_payload(record: ColorRecord) -> dict:
    data = record.data if isinstance(record.data, dict) else {}
    return {
        **data,
        "id": record.id,
        "message_id": record.message_id,
        "parent_message_id": record.parent_message_id,
        "is_parent": bool(record.is_parent),
        "children_count": int(record.children_count or 0),
        "sector": record.sector if record.sector is not None else data.get("sector"),
        "processing_type": record.processing_type,
    }


def get_color_frame(db: Session) -> pd.DataFrame:
    """
    All stored colors as a DataFrame in insertion order. Cached for a short TTL and
    invalidated whenever a session is saved.
    """
    now = time.time()
    with _frame_cache_lock:
        cached = _frame_cache.get(_FRAME_KEY)
        if cached is not None:
            expires_at, cached_df = cached
            if expires_at >= now:
                return cached_df.copy(deep=False)
            _frame_cache.pop(_FRAME_KEY, None)

    records = db.query(ColorRecord).order_by(ColorRecord.id.asc()).all()
    payloads = [color_payload(r) for r in records]
    df = pd.DataFrame(payloads) if payloads else pd.DataFrame()

    with _frame_cache_lock:
        _frame_cache[_FRAME_KEY] = (now + _CACHE_TTL_SECONDS, df)
    return df.copy(deep=False)


def _parse_series(series: pd.Series) -> pd.Series:
    try:
        return pd.to_datetime(series, format="mixed", errors="coerce")
    except TypeError:
        return pd.to_datetime(series, errors="coerce")


def _column_for(df: pd.DataFrame, name: str) -> str | None:
    return resolve_field({c: None for c in df.columns}, name)


def _sort_key(series: pd.Series) -> pd.Series:
    numeric = pd.to_numeric(series, errors="coerce")
    if numeric.notna().any():
        return numeric
    return series.astype(str).str.lower()


def _records(df: pd.DataFrame) -> list[dict]:
    if df is None or df.empty:
        return []
    df = df.astype(object).where(pd.notnull(df), None)
    return [clean_json_row(r) for r in df.to_dict(orient="records")]


def load_rows(
    db: Session,
    criteria: dict[str, Any] | None = None,
    skip: int = 0,
    limit: int | None = None,
) -> tuple[int, list[dict]]:
    """Data source for the dashboard grid: (total_count, page of RowSource records)."""
    df = get_color_frame(db)
    if df.empty:
        return 0, []

    criteria = {k: v for k, v in (criteria or {}).items() if v not in (None, "")}
    mask = pd.Series(True, index=df.index)

    for name in _TEXT_FILTERS:
        if name not in criteria:
            continue
        col = _column_for(df, name)
        if col is None:
            return 0, []
        wanted = str(criteria[name]).strip().lower()
        mask &= df[col].map(lambda v: (as_key(v) or "").lower() == wanted)

    if "asset_class" in criteria and "sector" in df.columns:
        wanted = str(criteria["asset_class"]).strip().lower()
        mask &= df["sector"].map(lambda v: str(v or "").strip().lower() == wanted)

    if ("date_from" in criteria or "date_to" in criteria) and "date" in df.columns:
        dates = _parse_series(df["date"])
        if "date_from" in criteria:
            mask &= dates >= pd.to_datetime(criteria["date_from"], errors="coerce")
        if "date_to" in criteria:
            mask &= dates <= pd.to_datetime(criteria["date_to"], errors="coerce")

    filtered = df[mask.fillna(False).astype(bool)]
    total = int(len(filtered))
    end = None if limit is None else skip + limit
    return total, _records(filtered.iloc[skip:end])


def lookup_by_business_key(db: Session, key: Any) -> dict | None:
    """Latest stored color for a message id; None means not found."""
    wanted = as_key(key)
    if wanted is None:
        return None
    record = (
        db.query(ColorRecord)
        .filter(ColorRecord.message_id == wanted)
        .order_by(ColorRecord.id.desc())
        .first()
    )
    return color_payload(record) if record is not None else None


def search(
    db: Session,
    predicates: list[CompiledCondition],
    skip: int = 0,
    limit: int = 500,
    sort_by: str | None = None,
    sort_order: str = "desc",
) -> dict[str, Any]:
    try:
        df = get_color_frame(db)
    except SQLAlchemyError as exc:
        raise ImportFailure(f"Search failed: {exc}") from exc

    page_size = max(1, int(limit or 1))
    available_fields = [str(c) for c in df.columns]
    if df.empty:
        return {
            "total_count": 0,
            "returned_count": 0,
            "page": skip // page_size + 1,
            "page_size": page_size,
            "results": [],
            "available_fields": available_fields,
        }

    if predicates:
        conditions = [p.as_condition() for p in predicates]
        records = _records(df)
        mask = pd.Series([evaluate_conditions(r, conditions) for r in records], index=df.index)
        df = df[mask]

    sort_col = _column_for(df, sort_by) if sort_by else None
    if sort_col is not None:
        df = df.sort_values(
            by=sort_col,
            ascending=(sort_order or "desc").lower() == "asc",
            na_position="last",
            key=_sort_key,
        )

    total = int(len(df))
    results = _records(df.iloc[skip : skip + page_size])
    return {
        "total_count": total,
        "returned_count": len(results),
        "page": skip // page_size + 1,
        "page_size": page_size,
        "results": results,
        "available_fields": available_fields,
    }


def output_stats(db: Session) -> dict[str, int]:
    def _count(*criteria) -> int:
        q = db.query(func.count(ColorRecord.id))
        for c in criteria:
            q = q.filter(c)
        return int(q.scalar() or 0)

    return {
        "automated_count": _count(ColorRecord.processing_type == "automated"),
        "manual_count": _count(ColorRecord.processing_type == "manual"),
        "parent_count": _count(ColorRecord.is_parent.is_(True)),
        "child_count": _count(ColorRecord.is_parent.is_(False), ColorRecord.parent_message_id.isnot(None)),
        "total_count": _count(),
    }
