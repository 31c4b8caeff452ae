"""Calendar-day helpers for streaks and the weekly window.

All boundaries are local midnights in the configured zone; weeks start on Sunday.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_date(dt: datetime, tz: tzinfo) -> date:
    """Calendar date of dt as seen in tz."""
    return dt.astimezone(tz).date()


def local_midnight(d: date, tz: tzinfo) -> datetime:
    """Aware datetime for 00:00 of d in tz."""
    return datetime.combine(d, time.min, tzinfo=tz)


def get_sunday(d: date) -> date:
    """Get the Sunday starting the week containing d."""
    return d - timedelta(days=(d.weekday() + 1) % 7)


def start_of_week(now: datetime, tz: tzinfo) -> datetime:
    """Local Sunday 00:00 of the week containing now."""
    return local_midnight(get_sunday(local_date(now, tz)), tz)
