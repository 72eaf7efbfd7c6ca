"""Section x month view of a roadmap.

The projection is recomputed from scratch for every (roadmap, reference
date, window size) triple and never edited afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from roadmapr.models import Item, Roadmap
from roadmapr.months import add_months, month_start, same_month

# months shown per viewport class
WINDOW_SIZES: dict[str, int] = {
    "small": 1,
    "medium": 3,
    "large": 4,
}


@dataclass(frozen=True)
class ItemWithIndex:
    """An item plus its position in ``Roadmap.items``."""

    index: int
    item: Item


@dataclass
class MonthCell:
    month: datetime
    items: list[ItemWithIndex] = field(default_factory=list)


@dataclass
class SectionRow:
    name: str | None  # None for the catch-all group
    months: list[MonthCell] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not any(cell.items for cell in self.months)


def window_for(viewport: str) -> int:
    """Translate a viewport class (small/medium/large) into a month count."""
    try:
        return WINDOW_SIZES[viewport]
    except KeyError:
        valid = ", ".join(WINDOW_SIZES)
        raise ValueError(f"Unknown viewport '{viewport}'. Use: {valid}") from None


def visible_months(reference: datetime, window_size: int) -> list[datetime]:
    if window_size < 1:
        raise ValueError("window_size must be at least 1")
    start = month_start(reference)
    return [add_months(start, i) for i in range(window_size)]


def earliest_date(item: Item) -> datetime | None:
    dates = [df.when for df in item.date_fields]
    return min(dates) if dates else None


def _sort_key(entry: ItemWithIndex) -> tuple:
    first = earliest_date(entry.item)
    # undated items sort ahead of everything else
    if first is None:
        return (0, datetime.min)
    return (1, first)


def sort_by_earliest(entries: Iterable[ItemWithIndex]) -> list[ItemWithIndex]:
    """Order by earliest date field; equal dates keep their original order."""
    return sorted(entries, key=_sort_key)


def _in_month(item: Item, month: datetime) -> bool:
    return any(same_month(month, df.when) for df in item.date_fields)


def _cells(entries: list[ItemWithIndex], months: list[datetime]) -> list[MonthCell]:
    return [
        MonthCell(
            month=month,
            items=sort_by_earliest(e for e in entries if _in_month(e.item, month)),
        )
        for month in months
    ]


def project(
    roadmap: Roadmap,
    reference: datetime,
    window_size: int,
) -> list[SectionRow]:
    """Group the roadmap's items into rows per section and cells per month.

    Declared sections come first, in declaration order, and only when at
    least one of their cells has an item. Items without a section form a
    trailing unnamed row, again only when non-empty.
    """
    months = visible_months(reference, window_size)
    entries = [
        ItemWithIndex(index=i, item=item)
        for i, item in enumerate(roadmap.items)
        if any(_in_month(item, m) for m in months)
    ]

    rows: list[SectionRow] = []
    for name in roadmap.sections:
        if name == "":
            continue
        row = SectionRow(
            name=name,
            months=_cells([e for e in entries if e.item.section == name], months),
        )
        if not row.is_empty:
            rows.append(row)

    unsectioned = [e for e in entries if not e.item.section]
    if unsectioned:
        rows.append(SectionRow(name=None, months=_cells(unsectioned, months)))

    return rows
