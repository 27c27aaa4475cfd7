# services/grid/hierarchy.py
#
# Parent/child derivation and row numbering. Pure functions of the row list;
# rebuilt after every mutation.
#
# Children are attached by explicit reference resolution rather than by
# position, so numbering holds regardless of row order. Resolution order
# (first match wins) against parent rows:
#   1. literal id equality
#   2. synthesized id convention (ID_PREFIX + reference)
#   3. business key equality (messageId by default)

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from services.grid.fields import as_key
from services.grid.row_store import BUSINESS_KEY_FIELD, ID_PREFIX, Row

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowNumbering:
    parent_num: int
    child_num: int


@dataclass
class HierarchyIndex:
    numbering: dict[str, RowNumbering] = field(default_factory=dict)
    children_of: dict[str, list[str]] = field(default_factory=dict)
    # every row whose reference resolved, nested parents included
    parent_of: dict[str, str] = field(default_factory=dict)
    orphans: list[str] = field(default_factory=list)
    flat: bool = False

    def is_child(self, row: Row) -> bool:
        return not row.is_parent and row.id in self.parent_of

    def is_group_head(self, row: Row) -> bool:
        if self.flat:
            return True
        return row.is_parent

    def has_children(self, row: Row) -> bool:
        # child_count is only a hint; a real child also counts
        if (row.child_count or 0) > 0:
            return True
        return bool(self.children_of.get(row.id))

    def display_number(self, row: Row) -> str:
        numbering = self.numbering.get(row.id)
        if numbering is None:
            return "0"
        if self.is_child(row):
            return str(numbering.child_num)
        return str(numbering.parent_num)

    def descendants(self, row_id: str) -> list[str]:
        dependents: dict[str, list[str]] = defaultdict(list)
        for child_id, parent_id in self.parent_of.items():
            dependents[parent_id].append(child_id)

        out: list[str] = []
        seen = {row_id}
        stack = [row_id]
        while stack:
            current = stack.pop()
            for child_id in dependents.get(current, ()):
                if child_id in seen:
                    continue
                seen.add(child_id)
                out.append(child_id)
                stack.append(child_id)
        return out


def resolve_parent_id(
    ref: str | None,
    parents_by_id: dict[str, Row],
    parents_by_key: dict[str, str],
    id_prefix: str = ID_PREFIX,
) -> str | None:
    if ref is None:
        return None
    if ref in parents_by_id:
        return ref
    synthesized = f"{id_prefix}{ref}"
    if synthesized in parents_by_id:
        return synthesized
    return parents_by_key.get(ref)


def build_index(
    rows: Iterable[Row],
    business_key: str = BUSINESS_KEY_FIELD,
    id_prefix: str = ID_PREFIX,
) -> HierarchyIndex:
    rows = list(rows)
    index = HierarchyIndex()

    parents = [row for row in rows if row.is_parent is True]
    if not parents:
        # no hierarchy metadata at all: every row is its own unit
        index.flat = True
        for position, row in enumerate(rows, start=1):
            index.numbering[row.id] = RowNumbering(parent_num=position, child_num=0)
        return index

    parents_by_id = {row.id: row for row in parents}
    parents_by_key: dict[str, str] = {}
    for row in parents:
        key = as_key(row.get(business_key))
        if key is not None and key not in parents_by_key:
            parents_by_key[key] = row.id

    parent_counter = 0
    for row in parents:
        parent_counter += 1
        index.numbering[row.id] = RowNumbering(parent_num=parent_counter, child_num=0)
        index.children_of[row.id] = []

    child_counters: dict[str, int] = defaultdict(int)
    for row in rows:
        parent_id = resolve_parent_id(row.parent_ref, parents_by_id, parents_by_key, id_prefix)
        if parent_id is None or parent_id == row.id:
            if not row.is_parent:
                index.orphans.append(row.id)
            continue

        index.parent_of[row.id] = parent_id
        if row.is_parent:
            # nested parent: keeps its own group number
            continue

        child_counters[parent_id] += 1
        index.numbering[row.id] = RowNumbering(
            parent_num=index.numbering[parent_id].parent_num,
            child_num=child_counters[parent_id],
        )
        index.children_of[parent_id].append(row.id)

    if index.orphans:
        logger.debug("hierarchy: %s orphan row(s) excluded from grouping", len(index.orphans))
    return index


def cascade_ids(index: HierarchyIndex, row_ids: Iterable[str]) -> list[str]:
    """Row ids plus everything that resolves to them, transitively."""
    out: list[str] = []
    seen: set[str] = set()
    for row_id in row_ids:
        for candidate in [row_id, *index.descendants(row_id)]:
            if candidate not in seen:
                seen.add(candidate)
                out.append(candidate)
    return out
