# tests/test_hierarchy.py
from services.grid.hierarchy import RowNumbering, build_index, cascade_ids, resolve_parent_id
from services.grid.row_store import Row, RowStore


def _parent(row_id, key=None, ref=None, child_count=None):
    fields = {"messageId": key} if key else {}
    return Row(id=row_id, fields=fields, is_parent=True, parent_ref=ref, child_count=child_count)


def _child(row_id, ref, key=None):
    fields = {"messageId": key} if key else {}
    return Row(id=row_id, fields=fields, is_parent=False, parent_ref=ref)


def test_numbering_is_deterministic_and_gapless(store):
    first = build_index(store.rows)
    second = build_index(store.rows)
    assert first.numbering == second.numbering

    parents = [row for row in store.rows if row.is_parent]
    assert [first.numbering[row.id].parent_num for row in parents] == [1, 2]


def test_children_numbered_per_parent(store):
    index = build_index(store.rows)
    assert index.children_of["row_M1"] == ["row_M1-a", "row_M1-b"]
    assert index.children_of["row_M2"] == ["row_M2-a"]
    assert index.display_number(store.get("row_M1")) == "1"
    assert index.display_number(store.get("row_M1-b")) == "2"
    assert index.display_number(store.get("row_M2-a")) == "1"
    assert index.numbering["row_M2-a"].parent_num == 2


def test_orphan_is_excluded_and_does_not_raise(store):
    index = build_index(store.rows)
    assert index.orphans == ["row_X9"]
    assert "row_X9" not in index.numbering
    assert index.display_number(store.get("row_X9")) == "0"


def test_resolution_order():
    parents_by_id = {"p1": _parent("p1"), "row_K": _parent("row_K"), "row_p1": _parent("row_p1")}
    parents_by_key = {"K2": "p1"}
    # literal id beats synthesized id
    assert resolve_parent_id("p1", parents_by_id, parents_by_key) == "p1"
    assert resolve_parent_id("K", parents_by_id, parents_by_key) == "row_K"
    assert resolve_parent_id("K2", parents_by_id, parents_by_key) == "p1"
    assert resolve_parent_id("nothing", parents_by_id, parents_by_key) is None
    assert resolve_parent_id(None, parents_by_id, parents_by_key) is None


def test_children_resolve_regardless_of_order():
    rows = [
        _child("c1", "P"),
        _parent("a", key="A"),
        _parent("row_P", key="P"),
        _child("c2", "A"),
    ]
    index = build_index(rows)
    assert index.parent_of == {"c1": "row_P", "c2": "a"}
    assert index.numbering["row_P"].parent_num == 2
    assert index.numbering["c1"] == RowNumbering(parent_num=2, child_num=1)


def test_flat_fallback_without_parents():
    rows = [Row(id="r1"), Row(id="r2"), Row(id="r3", parent_ref="r1")]
    index = build_index(rows)
    assert index.flat is True
    assert [index.numbering[r.id].parent_num for r in rows] == [1, 2, 3]
    assert all(index.is_group_head(r) for r in rows)
    assert index.orphans == []


def test_has_children_uses_hint_or_actual_children():
    hinted = _parent("h", child_count=3)
    real = _parent("r", key="R")
    none = _parent("n")
    index = build_index([hinted, real, _child("c", "R"), none])
    assert index.has_children(hinted)
    assert index.has_children(real)
    assert not index.has_children(none)


def test_cascade_delete_counts_nested_parent_and_its_children():
    # parent with N=3 direct children and one nested parent that has M=2 children
    rows = [
        _parent("P", key="P"),
        _child("c1", "P"),
        _child("c2", "P"),
        _child("c3", "P"),
        _parent("Q", key="Q", ref="P"),
        _child("q1", "Q"),
        _child("q2", "Q"),
        _parent("other", key="O"),
        _child("o1", "O"),
    ]
    s = RowStore()
    s.replace(rows)
    index = build_index(s.rows)

    doomed = cascade_ids(index, ["P"])
    assert sorted(doomed) == sorted(["P", "c1", "c2", "c3", "Q", "q1", "q2"])

    removed = s.delete_rows(doomed)
    assert len(removed) == 1 + 3 + 1 + 2
    assert [row.id for row in s.rows] == ["other", "o1"]


def test_nested_parent_keeps_its_own_group_number():
    rows = [_parent("P", key="P"), _parent("Q", key="Q", ref="P"), _child("q1", "Q")]
    index = build_index(rows)
    assert index.numbering["Q"].parent_num == 2
    assert index.parent_of["Q"] == "P"
    assert index.children_of["P"] == []
    assert index.is_group_head(rows[1])


def test_cascade_ignores_unknown_ids(store):
    index = build_index(store.rows)
    assert cascade_ids(index, ["missing"]) == ["missing"]
    assert store.delete_rows(cascade_ids(index, ["missing"])) == []
