# services/grid/profiles.py

import os
from dataclasses import dataclass

from services.grid.edit_session import ColumnSpec


@dataclass(frozen=True)
class GridProfile:
    name: str
    columns: tuple[ColumnSpec, ...]
    editable: bool
    page_size: int
    lookup_field: str | None = None
    pagination: bool = True


GRID_PAGE_SIZE = int(os.getenv("GRID_PAGE_SIZE", "20"))

COLOR_COLUMNS = (
    ColumnSpec("messageId", "Message ID"),
    ColumnSpec("ticker", "Ticker"),
    ColumnSpec("cusip", "CUSIP"),
    ColumnSpec("bias", "Bias"),
    ColumnSpec("date", "Date", type="date"),
    ColumnSpec("bid", "BID", type="number"),
    ColumnSpec("mid", "MID", type="number"),
    ColumnSpec("ask", "ASK", type="number"),
    ColumnSpec("px", "PX", type="number"),
    ColumnSpec("source", "Source"),
)

# fields a messageId lookup fills in (or marks ERROR)
LOOKUP_DEPENDENT_FIELDS = tuple(col.field for col in COLOR_COLUMNS if col.field != "messageId") + ("rank",)


def _read_only(columns):
    return tuple(ColumnSpec(c.field, c.header, editable=False, type=c.type) for c in columns)


DASHBOARD = GridProfile(
    name="dashboard",
    columns=_read_only(COLOR_COLUMNS),
    editable=False,
    page_size=GRID_PAGE_SIZE,
)

MANUAL_COLOR = GridProfile(
    name="manual_color",
    columns=COLOR_COLUMNS,
    editable=True,
    page_size=10,
)

LOOKUP = GridProfile(
    name="lookup",
    columns=COLOR_COLUMNS,
    editable=True,
    page_size=10,
    lookup_field="messageId",
)
