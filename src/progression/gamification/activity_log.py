"""Activity log: append-only point events, recent feed and weekly totals."""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Any

from progression.gamification.calendar import start_of_week
from progression.repositories.base import ActivityEntry, ActivityLogRepo

ACHIEVEMENT_COMPLETED = "achievement_completed"
CHALLENGE_COMPLETED = "challenge_completed"
DAILY_LOGIN = "daily_login"

RECENT_ACTIVITY_LIMIT = 10


class ActivityLog:
    """Thin domain layer over ActivityLogRepo. Entries are never updated or deleted."""

    def __init__(self, repo: ActivityLogRepo) -> None:
        self.repo = repo

    async def record(
        self,
        user_id: int,
        entry_type: str,
        description: str,
        points: int,
        now: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityEntry:
        """Append one entry."""
        return await self.repo.append(
            ActivityEntry(
                user_id=user_id,
                type=entry_type,
                description=description,
                points=points,
                timestamp=now,
                metadata=metadata or {},
            )
        )

    async def recent(self, user_id: int, limit: int = RECENT_ACTIVITY_LIMIT) -> list[ActivityEntry]:
        """Most recent entries, newest first."""
        return await self.repo.recent(user_id, limit)

    async def weekly_progress(self, user_id: int, now: datetime, tz: tzinfo) -> int:
        """Points earned since local Sunday midnight."""
        return await self.repo.sum_points(user_id, since=start_of_week(now, tz))

    async def total_points(self, user_id: int) -> int:
        """Sum over the whole log; always equals the profile total."""
        return await self.repo.sum_points(user_id)
