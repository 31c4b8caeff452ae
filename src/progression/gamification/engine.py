"""Progression engine: wires the components around one repository bundle."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone, tzinfo
from typing import Any

from progression.gamification.achievement_tracker import AchievementTracker
from progression.gamification.activity_log import ActivityLog
from progression.gamification.calendar import utc_now
from progression.gamification.catalog import DEFAULT_CATALOG, Catalog
from progression.gamification.challenge_tracker import ChallengeTracker
from progression.gamification.events import EventPublisher
from progression.gamification.points_ledger import PointsLedger
from progression.gamification.schemas import ProgressionStatsResponse, TaskCompletionResponse
from progression.gamification.stats_service import StatsAggregator
from progression.gamification.task_service import TaskIngestor
from progression.repositories.base import Repositories


class ProgressionEngine:
    """The two entry points: ``complete_task`` (write) and ``get_stats`` (read)."""

    def __init__(
        self,
        repos: Repositories,
        catalog: Catalog = DEFAULT_CATALOG,
        publisher: EventPublisher | None = None,
        clock: Callable[[], datetime] = utc_now,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.repos = repos
        self.catalog = catalog
        self.publisher = publisher or EventPublisher()
        self.clock = clock
        self.tz = tz

        self.log = ActivityLog(repos.activity)
        self.ledger = PointsLedger(repos.profiles, self.log)
        self.achievements = AchievementTracker(repos.achievements, catalog, self.ledger)
        self.challenges = ChallengeTracker(repos.challenges, catalog, self.ledger)
        self.ingestor = TaskIngestor(
            repos, catalog, self.ledger, self.achievements, self.challenges, self.publisher
        )
        self.stats = StatsAggregator(
            repos, self.ledger, self.log, self.achievements, self.challenges, tz
        )

    async def complete_task(
        self, user_id: int, task_type: str, metadata: dict[str, Any] | None = None
    ) -> TaskCompletionResponse:
        return await self.ingestor.complete_task(user_id, task_type, metadata, self.clock())

    async def get_stats(
        self, user_id: int, role: str, scope_id: int | None = None
    ) -> ProgressionStatsResponse:
        return await self.stats.get_stats(user_id, role, scope_id, self.clock())
