"""Achievement tracking: routed progress, exactly-once completion and bonus points."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from progression.gamification.activity_log import ACHIEVEMENT_COMPLETED
from progression.gamification.catalog import AchievementDefinition, Catalog
from progression.gamification.events import EventBatch
from progression.gamification.points_ledger import PointsLedger
from progression.repositories.base import AchievementProgress, AchievementProgressRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AchievementView:
    """Catalog definition merged with the user's stored progress."""

    definition: AchievementDefinition
    progress: int = 0
    completed: bool = False
    claimed: bool = False
    completed_at: datetime | None = None


@dataclass(frozen=True)
class Completion:
    id: str
    points: int
    total_points: int


class AchievementTracker:
    def __init__(
        self,
        repo: AchievementProgressRepo,
        catalog: Catalog,
        ledger: PointsLedger,
    ) -> None:
        self.repo = repo
        self.catalog = catalog
        self.ledger = ledger

    async def seed(self, user_id: int, role: str) -> None:
        """Create zero-progress rows for every achievement the role can earn."""
        await self.repo.seed(user_id, [a.id for a in self.catalog.achievements_for(role)])

    async def record_task(
        self, user_id: int, role: str, task_type: str, now: datetime, events: EventBatch
    ) -> list[Completion]:
        """Advance every achievement routed from this task type.

        Progress is clamped at the target. The bonus is granted only by the
        caller whose compare-and-set flips the row to completed.
        """
        routed = self.catalog.achievements_for_task(task_type, role)
        if not routed:
            return []
        # Covers entries added to the catalog after the user was initialized.
        await self.repo.seed(user_id, [d.id for d in routed])

        completions: list[Completion] = []
        for definition in routed:
            row = await self.repo.increment(user_id, definition.id, definition.target)
            if row is None:
                # already completed
                continue
            if row.progress < definition.target:
                continue
            completion = await self._complete(user_id, definition, now, events)
            if completion is not None:
                completions.append(completion)
        return completions

    async def _complete(
        self, user_id: int, definition: AchievementDefinition, now: datetime, events: EventBatch
    ) -> Completion | None:
        won = await self.repo.mark_completed(user_id, definition.id, now)
        if not won:
            logger.debug("Achievement %s for user %d already completed", definition.id, user_id)
            return None

        total = await self.ledger.award(
            user_id,
            ACHIEVEMENT_COMPLETED,
            f"Completed achievement: {definition.title}",
            definition.points,
            now,
            events,
            {"achievement_id": definition.id},
        )
        logger.info(
            "User %d completed achievement %s (+%d points)", user_id, definition.id, definition.points
        )
        events.achievement_completed(user_id, definition.id, definition.points)
        return Completion(definition.id, definition.points, total)

    async def progress_for(self, user_id: int, role: str) -> list[AchievementView]:
        """Every role achievement, in catalog order, with stored progress or zeros."""
        rows: dict[str, AchievementProgress] = {
            r.achievement_id: r for r in await self.repo.list_for_user(user_id)
        }
        views = []
        for definition in self.catalog.achievements_for(role):
            row = rows.get(definition.id)
            if row is None:
                views.append(AchievementView(definition))
                continue
            views.append(AchievementView(
                definition,
                progress=row.progress,
                completed=row.completed,
                claimed=row.claimed,
                completed_at=row.completed_at,
            ))
        return views
