"""Task event ingestion: the single write path into progression state."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from progression.exceptions import UserNotFoundError
from progression.gamification.achievement_tracker import AchievementTracker, Completion
from progression.gamification.catalog import Catalog
from progression.gamification.challenge_tracker import ChallengeTracker
from progression.gamification.events import EventBatch, EventPublisher
from progression.gamification.levels import compute_level
from progression.gamification.points_ledger import PointsLedger
from progression.gamification.schemas import TaskCompletionResponse
from progression.repositories.base import Repositories, UserAccount

logger = logging.getLogger(__name__)


class TaskIngestor:
    def __init__(
        self,
        repos: Repositories,
        catalog: Catalog,
        ledger: PointsLedger,
        achievements: AchievementTracker,
        challenges: ChallengeTracker,
        publisher: EventPublisher,
    ) -> None:
        self.repos = repos
        self.catalog = catalog
        self.ledger = ledger
        self.achievements = achievements
        self.challenges = challenges
        self.publisher = publisher

    async def complete_task(
        self,
        user_id: int,
        task_type: str,
        metadata: dict[str, Any] | None,
        now: datetime,
    ) -> TaskCompletionResponse:
        """Record one already-validated task for a user.

        1. Resolve the user (UserNotFoundError if unknown)
        2. Initialize the profile on first access
        3. Append the log entry and add the task points, then commit
        4. Run the achievement and challenge trackers, each in its own commit

        Storage errors in steps 1-3 propagate and nothing is kept. A tracker
        failure after step 3 is logged and published on the failure channel,
        and the points already recorded stay.
        """
        user = await self.repos.users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        points = self.catalog.points_for(task_type)
        events = EventBatch()
        try:
            if await self.ledger.ensure_profile(user.id, user.school_id, now):
                await self.achievements.seed(user.id, user.role)
            total = await self.ledger.award(
                user.id,
                task_type,
                self.catalog.describe_task(task_type, metadata),
                points,
                now,
                events,
                metadata,
            )
            await self.repos.commit()
        except Exception:
            await self.repos.rollback()
            raise
        await self.publisher.publish_batch(events)

        for completion in await self._run_trackers(user, task_type, now):
            total = max(total, completion.total_points)

        level = compute_level(total)
        return TaskCompletionResponse(
            points_earned=points,
            total_points=total,
            level=level["level"],
            level_progress=level["level_progress"],
            points_to_next_level=level["points_to_next_level"],
        )

    async def _run_trackers(self, user: UserAccount, task_type: str, now: datetime) -> list[Completion]:
        """Each stage commits on its own; its events go out only after that commit."""
        completions: list[Completion] = []
        stages = (
            ("achievements", self.achievements.record_task),
            ("challenges", self.challenges.record_task),
        )
        for stage, record_task in stages:
            events = EventBatch()
            try:
                stage_completions = await record_task(user.id, user.role, task_type, now, events)
                await self.repos.commit()
            except Exception as exc:
                await self.repos.rollback()
                logger.error(
                    "Progression %s update failed for user %d task %s; points were kept",
                    stage, user.id, task_type,
                    exc_info=True,
                )
                await self.publisher.progression_failure(user.id, task_type, stage, repr(exc))
                continue
            completions.extend(stage_completions)
            await self.publisher.publish_batch(events)
        return completions
