# services/grid/view.py

import math
from dataclasses import dataclass

from services.grid.hierarchy import HierarchyIndex, build_index
from services.grid.row_store import BUSINESS_KEY_FIELD, Row, RowStore

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class VisibleRow:
    row: Row            # reference into the RowStore, not a copy
    number: str
    depth: int
    has_children: bool
    expanded: bool

    def to_dict(self) -> dict:
        return {
            **self.row.to_dict(),
            "rowNumber": self.number,
            "depth": self.depth,
            "hasChildren": self.has_children,
            "expanded": self.expanded,
        }


@dataclass(frozen=True)
class ViewPage:
    rows: list[VisibleRow]
    page: int
    page_size: int
    total_pages: int
    total_groups: int
    total_rows: int


class ViewProjector:
    """
    Visible subset of a RowStore: group heads in list order, each followed by
    its children when expanded. Pagination counts groups, never raw rows, so a
    group is never split from its children.
    """

    def __init__(
        self,
        store: RowStore,
        page_size: int = DEFAULT_PAGE_SIZE,
        pagination: bool = True,
        business_key: str = BUSINESS_KEY_FIELD,
    ):
        self.store = store
        self.page_size = max(1, int(page_size or DEFAULT_PAGE_SIZE))
        self.pagination_enabled = pagination
        self.business_key = business_key
        self.expanded: set[str] = set()
        self.current_page = 1
        self._index: HierarchyIndex | None = None

    # ---------- derivation ----------

    def refresh(self) -> HierarchyIndex:
        self._index = build_index(self.store.rows, business_key=self.business_key)
        self.expanded &= {row.id for row in self.store.rows}
        if self.current_page > self.total_pages:
            self.current_page = self.total_pages
        return self._index

    @property
    def index(self) -> HierarchyIndex:
        if self._index is None:
            return self.refresh()
        return self._index

    def groups(self) -> list[Row]:
        index = self.index
        return [row for row in self.store.rows if index.is_group_head(row)]

    @property
    def total_pages(self) -> int:
        if not self.pagination_enabled:
            return 1
        return max(1, math.ceil(len(self.groups()) / self.page_size))

    # ---------- expand / collapse ----------

    def toggle_expand(self, row_id: str) -> bool | None:
        if row_id not in self.store:
            return None
        if row_id in self.expanded:
            self.expanded.discard(row_id)
        else:
            self.expanded.add(row_id)
        return row_id in self.expanded

    def expand_all(self) -> None:
        index = self.refresh()
        self.expanded = {row_id for row_id, children in index.children_of.items() if children}

    def collapse_all(self) -> None:
        self.expanded.clear()

    # ---------- paging ----------

    def go_to_page(self, page: int) -> bool:
        if 1 <= page <= self.total_pages:
            self.current_page = page
            return True
        return False

    def next_page(self) -> bool:
        return self.go_to_page(self.current_page + 1)

    def previous_page(self) -> bool:
        return self.go_to_page(self.current_page - 1)

    # ---------- projection ----------

    def render(self) -> ViewPage:
        index = self.refresh()
        groups = [row for row in self.store.rows if index.is_group_head(row)]

        if self.pagination_enabled:
            start = (self.current_page - 1) * self.page_size
            page_groups = groups[start : start + self.page_size]
        else:
            page_groups = groups

        visible: list[VisibleRow] = []
        for head in page_groups:
            is_open = head.id in self.expanded
            visible.append(
                VisibleRow(
                    row=head,
                    number=index.display_number(head),
                    depth=0,
                    has_children=index.has_children(head),
                    expanded=is_open,
                )
            )
            if not is_open:
                continue
            for child_id in index.children_of.get(head.id, ()):
                child = self.store.get(child_id)
                if child is None:
                    continue
                visible.append(
                    VisibleRow(
                        row=child,
                        number=index.display_number(child),
                        depth=1,
                        has_children=False,
                        expanded=False,
                    )
                )

        return ViewPage(
            rows=visible,
            page=self.current_page,
            page_size=self.page_size,
            total_pages=self.total_pages,
            total_groups=len(groups),
            total_rows=len(self.store),
        )

    def visible_rows(self) -> list[Row]:
        return [item.row for item in self.render().rows]

    # ---------- selection over what is on screen ----------

    def is_all_selected(self) -> bool:
        rows = self.visible_rows()
        return bool(rows) and all(row.selected for row in rows)

    def is_some_selected(self) -> bool:
        rows = self.visible_rows()
        selected = sum(1 for row in rows if row.selected)
        return 0 < selected < len(rows)
