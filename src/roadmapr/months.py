"""Month arithmetic used to lay out the roadmap columns."""

from __future__ import annotations

import calendar
from datetime import date, datetime

from roadmapr.models import parse_date

DateLike = datetime | date | str


def add_months(value: datetime, months: int) -> datetime:
    """Shift *value* by *months*, carrying the year in either direction.

    Day and time of day are kept; a day past the end of the target month is
    clamped to its last day.
    """
    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def subtract_months(value: datetime, months: int) -> datetime:
    return add_months(value, -months)


def _coerce(value: DateLike) -> date:
    if isinstance(value, str):
        return parse_date(value)
    return value


def same_month(a: DateLike, b: DateLike) -> bool:
    """True when both values fall in the same year and month."""
    a, b = _coerce(a), _coerce(b)
    return a.year == b.year and a.month == b.month


def month_start(value: DateLike) -> datetime:
    """Midnight on the first day of *value*'s month."""
    value = _coerce(value)
    return datetime(value.year, value.month, 1)


def parse_month(text: str) -> datetime:
    """Parse ``YYYY-MM`` (or any ISO date) into the first of that month."""
    text = text.strip()
    if len(text) == 7:
        text = f"{text}-01"
    return month_start(parse_date(text))
