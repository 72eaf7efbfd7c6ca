from datetime import datetime

import pytest

from roadmapr.models import DateField, Item, Roadmap
from roadmapr.projection import (
    ItemWithIndex,
    project,
    sort_by_earliest,
    visible_months,
    window_for,
)

MARCH = datetime(2024, 3, 15)


def _names(cell):
    return [e.item.name for e in cell.items]


def test_visible_months():
    assert visible_months(MARCH, 3) == [
        datetime(2024, 3, 1),
        datetime(2024, 4, 1),
        datetime(2024, 5, 1),
    ]
    assert visible_months(datetime(2024, 11, 30), 4)[-1] == datetime(2025, 2, 1)
    with pytest.raises(ValueError):
        visible_months(MARCH, 0)


def test_window_for_viewport():
    assert [window_for(v) for v in ("small", "medium", "large")] == [1, 3, 4]
    with pytest.raises(ValueError):
        window_for("huge")


def test_projection_groups_by_section_and_month(roadmap):
    rows = project(roadmap, MARCH, 3)

    assert [r.name for r in rows] == ["Backend", "Frontend", None]

    backend = rows[0]
    assert [c.month for c in backend.months] == visible_months(MARCH, 3)
    assert _names(backend.months[0]) == ["Schema", "API"]
    # API's earliest date (March) puts it ahead of Perf in April
    assert _names(backend.months[1]) == ["API", "Perf"]
    assert _names(backend.months[2]) == []

    assert _names(rows[1].months[0]) == ["Login page"]
    assert _names(rows[2].months[0]) == ["Docs"]


def test_projection_keeps_original_index(roadmap):
    rows = project(roadmap, MARCH, 3)
    march = rows[0].months[0]
    assert [e.index for e in march.items] == [3, 0]
    assert march.items[1].item is roadmap.items[0]


def test_projection_drops_sections_without_items(roadmap):
    rows = project(roadmap, MARCH, 3)
    assert "Empty" not in [r.name for r in rows]
    # items in an undeclared section are not shown anywhere
    shown = {e.item.name for r in rows for c in r.months for e in c.items}
    assert "Undeclared" not in shown
    assert "Later" not in shown
    assert "Undated" not in shown


def test_catch_all_row_only_when_non_empty(roadmap):
    rows = project(roadmap, datetime(2024, 4, 1), 1)
    assert [r.name for r in rows] == ["Backend"]

    rows = project(roadmap, datetime(2024, 9, 1), 1)
    assert [r.name for r in rows] == ["Backend"]
    assert _names(rows[0].months[0]) == ["Later"]


def test_catch_all_row_is_last():
    r = Roadmap(
        name="r",
        sections=["Z", ""],
        items=[
            Item(name="loose", section="", date_fields=[DateField("2024-03-01")]),
            Item(name="z", section="Z", date_fields=[DateField("2024-03-02")]),
        ],
    )
    rows = project(r, MARCH, 1)
    assert [row.name for row in rows] == ["Z", None]
    assert _names(rows[1].months[0]) == ["loose"]


def test_projection_is_pure(roadmap):
    assert project(roadmap, MARCH, 4) == project(roadmap, MARCH, 4)


def test_empty_roadmap():
    assert project(Roadmap(name="empty", sections=["A"]), MARCH, 3) == []


def test_item_in_two_months_appears_in_both(roadmap):
    rows = project(roadmap, MARCH, 2)
    api_cells = [c.month.month for c in rows[0].months if "API" in _names(c)]
    assert api_cells == [3, 4]


def test_sort_undated_first_and_ties_stable():
    entries = [
        ItemWithIndex(0, Item(name="b", date_fields=[DateField("2024-03-05")])),
        ItemWithIndex(1, Item(name="a", date_fields=[DateField("2024-03-05")])),
        ItemWithIndex(2, Item(name="none")),
        ItemWithIndex(3, Item(name="early", date_fields=[DateField("2024-04-01"), DateField("2024-02-01")])),
    ]
    assert [e.item.name for e in sort_by_earliest(entries)] == ["none", "early", "b", "a"]
