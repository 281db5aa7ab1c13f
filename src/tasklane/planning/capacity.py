# src/tasklane/planning/capacity.py

"""
Capacity pre-filter for auto planning.

The window runs from today through the Sunday ending the second week after
the current one. A day is offered to the planning service only if it is a
weekday and currently holds fewer than `threshold` scheduled tasks.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable, Mapping
from typing import Any

from .models import AvailableDate

DEFAULT_DAY_THRESHOLD = 2

_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def planning_window(today: dt.date) -> tuple[dt.date, dt.date]:
    """(first_day, last_day), both inclusive."""
    end_of_week = today + dt.timedelta(days=6 - today.weekday())
    return today, end_of_week + dt.timedelta(weeks=2)


def iter_days(first: dt.date, last: dt.date) -> Iterable[dt.date]:
    day = first
    while day <= last:
        yield day
        day += dt.timedelta(days=1)


def counts_by_day(rows: Iterable[Mapping[str, Any]]) -> dict[dt.date, int]:
    out: dict[dt.date, int] = {}
    for row in rows:
        day = row["day"]
        if isinstance(day, str):
            day = dt.date.fromisoformat(day)
        out[day] = out.get(day, 0) + int(row["count"])
    return out


def available_days(
    first: dt.date,
    last: dt.date,
    counts: Mapping[dt.date, int],
    *,
    threshold: int = DEFAULT_DAY_THRESHOLD,
) -> list[AvailableDate]:
    return [
        AvailableDate(date=day, weekday=_WEEKDAYS[day.weekday()])
        for day in iter_days(first, last)
        if day.weekday() < 5 and counts.get(day, 0) < threshold
    ]
