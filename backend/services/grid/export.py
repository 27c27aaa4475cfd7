# services/grid/export.py
#
# CSV export, deliberately minimal: a value containing a comma is wrapped in
# double quotes, nothing else is escaped.

import os
from datetime import date
from typing import Any, Iterable, Sequence

from services.grid.edit_session import ColumnSpec
from services.grid.fields import as_text

EXPORT_FILE_PREFIX = os.getenv("EXPORT_FILE_PREFIX", "export")


def _render(value: Any) -> str:
    text = as_text(value)
    if isinstance(value, str) and "," in value:
        return f'"{text}"'
    return text


def to_csv(rows: Iterable[Any], columns: Sequence[ColumnSpec]) -> str:
    """
    `rows` may be Row objects or plain mappings. Header line is the column
    headers joined by commas; lines are joined by newlines.
    """
    columns = [col for col in columns if col.field != "select"]
    lines = [",".join(col.header for col in columns)]
    for row in rows:
        lines.append(",".join(_render(row.get(col.field)) for col in columns))
    return "\n".join(lines)


def export_filename(prefix: str | None = None, today: date | None = None) -> str:
    stamp = (today or date.today()).isoformat()
    return f"{prefix or EXPORT_FILE_PREFIX}_{stamp}.csv"
