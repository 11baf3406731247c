"""Datetime helpers. All stored and compared datetimes are UTC."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: datetime | str | None) -> datetime | None:
    """Parse an ISO-8601 string or pass a datetime through, returning UTC or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def week_bounds(reference: datetime) -> tuple[datetime, datetime]:
    """Return Monday 00:00:00 and Sunday 23:59:59.999999 of the week containing reference."""
    monday = start_of_day(reference - timedelta(days=reference.weekday()))
    sunday_end = monday + timedelta(days=7) - timedelta(microseconds=1)
    return monday, sunday_end
