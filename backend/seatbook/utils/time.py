"""
Clock helpers.

Booking dates and slot clock-times are local to the libraries, which all
share the configured TIMEZONE. Instants are always aware UTC datetimes.
Services accept an explicit `now` so rules can be evaluated for any
instant; `utcnow()` is the default.
"""

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from seatbook.core.config import get_settings


@lru_cache()
def library_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("naive datetime passed where an aware instant is required")
    return value


def local_today(now: datetime) -> date:
    return ensure_aware(now).astimezone(library_zone()).date()


def local_instant(day: date, clock: time) -> datetime:
    """The aware instant at `clock` on `day` in the library timezone."""
    return datetime.combine(day, clock, tzinfo=library_zone())


def start_of_day(day: date) -> datetime:
    return local_instant(day, time.min)


def date_range(start: date, end: date):
    """Every calendar date from start to end, inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def days_inclusive(start: date, end: date) -> int:
    return (end - start).days + 1


def whole_minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)
