# tests/test_view.py
from services.grid.row_store import RowStore
from services.grid.view import ViewProjector


def _five_groups():
    rows = []
    for n in range(1, 6):
        rows.append({"message_id": f"P{n}", "is_parent": True, "ticker": f"T{n}"})
        rows.append({"message_id": f"P{n}-a", "parent_message_id": f"P{n}", "ticker": f"T{n}"})
        rows.append({"message_id": f"P{n}-b", "parent_message_id": f"P{n}", "ticker": f"T{n}"})
    s = RowStore()
    s.load(rows)
    return s


def test_pagination_counts_parent_groups():
    projector = ViewProjector(_five_groups(), page_size=2)
    projector.expand_all()
    assert projector.total_pages == 3

    page = projector.render()
    assert [item.row.id for item in page.rows] == [
        "row_P1", "row_P1-a", "row_P1-b",
        "row_P2", "row_P2-a", "row_P2-b",
    ]
    assert [item.number for item in page.rows] == ["1", "1", "2", "2", "1", "2"]
    assert [item.depth for item in page.rows] == [0, 1, 1, 0, 1, 1]

    assert projector.go_to_page(3)
    page = projector.render()
    assert [item.row.id for item in page.rows] == ["row_P5", "row_P5-a", "row_P5-b"]
    assert page.total_groups == 5
    assert page.total_rows == 15


def test_collapsed_groups_show_heads_only():
    projector = ViewProjector(_five_groups(), page_size=2)
    page = projector.render()
    assert [item.row.id for item in page.rows] == ["row_P1", "row_P2"]
    assert all(item.has_children for item in page.rows)
    assert not any(item.expanded for item in page.rows)


def test_toggle_expand_single_group():
    projector = ViewProjector(_five_groups(), page_size=2)
    assert projector.toggle_expand("row_P2") is True
    ids = [item.row.id for item in projector.render().rows]
    assert ids == ["row_P1", "row_P2", "row_P2-a", "row_P2-b"]

    assert projector.toggle_expand("row_P2") is False
    assert projector.toggle_expand("missing") is None


def test_paging_bounds():
    projector = ViewProjector(_five_groups(), page_size=2)
    assert not projector.previous_page()
    assert projector.next_page()
    assert projector.next_page()
    assert not projector.next_page()
    assert projector.current_page == 3
    assert not projector.go_to_page(0)


def test_pagination_disabled_shows_every_group():
    projector = ViewProjector(_five_groups(), page_size=2, pagination=False)
    assert projector.total_pages == 1
    assert len(projector.render().rows) == 5


def test_page_clamped_after_rows_removed():
    store = _five_groups()
    projector = ViewProjector(store, page_size=2)
    projector.go_to_page(3)
    store.delete_rows(["row_P5", "row_P4"])
    projector.refresh()
    assert projector.current_page == 2


def test_orphans_are_not_visible(store):
    projector = ViewProjector(store, page_size=10)
    projector.expand_all()
    ids = [row.id for row in projector.visible_rows()]
    assert "row_X9" not in ids
    assert len(ids) == 5


def test_selection_summaries_follow_visible_rows(store):
    projector = ViewProjector(store, page_size=10)
    assert not projector.is_all_selected()
    assert not projector.is_some_selected()

    store.toggle_select("row_M1")
    assert projector.is_some_selected()
    assert not projector.is_all_selected()

    store.select_all([row.id for row in projector.visible_rows()])
    assert projector.is_all_selected()
    assert not projector.is_some_selected()


def test_views_share_row_objects(store):
    projector = ViewProjector(store, page_size=10)
    head = projector.render().rows[0].row
    assert head is store.get("row_M1")
    store.update_field("row_M1", "ticker", "CHANGED")
    assert projector.render().rows[0].to_dict()["ticker"] == "CHANGED"
