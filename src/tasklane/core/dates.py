# src/tasklane/core/dates.py

"""
Day/instant helpers.

Stored dates are absolute instants (aware, UTC). Calendar days are always
computed in the viewer's timezone.
"""

from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

UTC = dt.timezone.utc


def resolve_tz(name: str | None) -> dt.tzinfo:
    if not name or name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return UTC


def ensure_aware(value: dt.datetime) -> dt.datetime:
    """Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def local_day(value: dt.datetime, tz: dt.tzinfo) -> dt.date:
    return ensure_aware(value).astimezone(tz).date()


def start_of_day(day: dt.date, tz: dt.tzinfo) -> dt.datetime:
    """Midnight of `day` in `tz`, returned as a UTC instant."""
    local = dt.datetime(day.year, day.month, day.day, tzinfo=tz)
    return local.astimezone(UTC)


def parse_day(token: str) -> dt.date | None:
    """Parse a `YYYY-MM-DD` column id; None if it is not a day."""
    try:
        return dt.date.fromisoformat(token.strip())
    except (AttributeError, ValueError):
        return None


def parse_instant(raw: str | dt.datetime | dt.date) -> dt.datetime:
    """Parse an ISO timestamp (`Z` suffix accepted) or a bare date into an aware datetime."""
    if isinstance(raw, dt.datetime):
        return ensure_aware(raw)
    if isinstance(raw, dt.date):
        return dt.datetime(raw.year, raw.month, raw.day, tzinfo=UTC)
    s = str(raw).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    if len(s) == 10:
        day = dt.date.fromisoformat(s)
        return dt.datetime(day.year, day.month, day.day, tzinfo=UTC)
    return ensure_aware(dt.datetime.fromisoformat(s))


def to_epoch(value: dt.datetime | None) -> float | None:
    if value is None:
        return None
    return ensure_aware(value).timestamp()


def from_epoch(value: float | None) -> dt.datetime | None:
    if value is None:
        return None
    return dt.datetime.fromtimestamp(float(value), tz=UTC)


def iso_utc(value: dt.datetime | None) -> str | None:
    if value is None:
        return None
    return ensure_aware(value).astimezone(UTC).isoformat().replace("+00:00", "Z")
