"""Points ledger: lazy profile creation and log-backed point awards."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from progression.gamification.activity_log import ActivityLog
from progression.gamification.events import EventBatch
from progression.gamification.levels import compute_level, crossed_level
from progression.repositories.base import ProfileRepo

logger = logging.getLogger(__name__)


class PointsLedger:
    """Owns total_points. Every change goes through the log first."""

    def __init__(self, profiles: ProfileRepo, log: ActivityLog) -> None:
        self.profiles = profiles
        self.log = log

    async def ensure_profile(self, user_id: int, scope_id: int | None, now: datetime) -> bool:
        """Create the zero-point profile on first access. Returns True if it was created."""
        created = await self.profiles.create_if_absent(user_id, scope_id, now)
        if created:
            logger.info("Initialized progression profile for user %d", user_id)
        return created

    async def award(
        self,
        user_id: int,
        entry_type: str,
        description: str,
        points: int,
        now: datetime,
        events: EventBatch,
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Grant points to a user. Returns the new total.

        1. Append the activity entry
        2. Atomically add the points to total_points
        3. Queue level_up on ``events`` if a level boundary was crossed
        """
        await self.log.record(user_id, entry_type, description, points, now, metadata)
        new_total = await self.profiles.add_points(user_id, points, now)

        old_total = new_total - points
        if crossed_level(old_total, new_total):
            old_level = compute_level(old_total)["level"]
            new_level = compute_level(new_total)["level"]
            logger.info("User %d reached level %d", user_id, new_level)
            events.level_up(user_id, old_level, new_level, new_total)

        return new_total
