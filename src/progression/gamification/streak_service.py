"""Login streak: consecutive local days with a daily_login entry, ending today."""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo

from progression.gamification.activity_log import DAILY_LOGIN
from progression.gamification.calendar import local_date, local_midnight
from progression.repositories.base import ActivityLogRepo

STREAK_LOOKBACK_DAYS = 30


def count_consecutive_days(active_days: set[date], today: date) -> int:
    """Walk back from today until the first day with no activity."""
    streak = 0
    day = today
    while day in active_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


async def calculate_streak(
    activity: ActivityLogRepo,
    user_id: int,
    now: datetime,
    tz: tzinfo,
    lookback_days: int = STREAK_LOOKBACK_DAYS,
) -> int:
    """Recompute the streak from the log. No stored counter is consulted.

    Only today and the ``lookback_days`` local days before it are read, so the
    result is capped at ``lookback_days + 1``.
    """
    today = local_date(now, tz)
    since = local_midnight(today - timedelta(days=lookback_days), tz)
    entries = await activity.list_since(user_id, since, entry_type=DAILY_LOGIN)
    active_days = {local_date(e.timestamp, tz) for e in entries}
    return count_consecutive_days(active_days, today)
