import logging
import time
from io import BytesIO

import pandas as pd

from services.color_repository import clean_json_row
from services.grid.errors import ImportFailure
from services.grid.fields import to_safe_key

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")


def read_frame(filename: str, contents: bytes) -> pd.DataFrame:
    name = (filename or "").lower()
    if not contents:
        raise ImportFailure("Empty file")
    if not name.endswith(SUPPORTED_EXTENSIONS):
        raise ImportFailure("Only .csv, .xls, and .xlsx are supported")

    buffer = BytesIO(contents)
    try:
        if name.endswith(".csv"):
            return pd.read_csv(buffer)
        return pd.read_excel(buffer)
    except (ValueError, ImportError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ImportFailure(f"Failed to parse file: {exc}") from exc


def parse_upload(filename: str, contents: bytes) -> list[dict]:
    """
    CSV/XLSX bytes -> RowSource records. Headers become snake_case keys
    ("Message ID" -> message_id) so the row adapter can pick out hierarchy
    columns; empty cells become None.
    """
    df = read_frame(filename, contents)
    df.columns = [to_safe_key(str(c)) for c in df.columns]
    df = df.loc[:, [c for c in df.columns if c and not c.startswith("unnamed:")]]
    df = df.dropna(how="all")
    df = df.astype(object).where(pd.notnull(df), None)
    return [clean_json_row(r) for r in df.to_dict(orient="records")]


def import_into(session, filename: str, contents: bytes) -> dict:
    """Parse a file and load it into a grid session; the session is untouched on failure."""
    started = time.perf_counter()
    records = parse_upload(filename, contents)
    session.filename = filename or ""
    session.load(records)
    duration = time.perf_counter() - started

    stats = session.statistics()
    logger.info(
        "IMPORT: session=%s file=%s rows=%s parents=%s children=%s",
        session.session_id,
        filename,
        stats["total_rows"],
        stats["parent_rows"],
        stats["child_rows"],
    )
    return {
        "session_id": session.session_id,
        "filename": session.filename,
        **stats,
        "duration_seconds": round(duration, 3),
    }
