"""Challenge tracking: per-period progress with lazy re-issue after the deadline.

Each challenge row covers one period (a ``cycle``). When the latest cycle's
deadline has passed the next read or write creates ``cycle + 1`` with a fresh
deadline; expired rows are kept as history. Completion within a period is
exactly-once via compare-and-set on (user, challenge, cycle).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from progression.gamification.achievement_tracker import Completion
from progression.gamification.activity_log import CHALLENGE_COMPLETED
from progression.gamification.catalog import Catalog, ChallengeDefinition
from progression.gamification.events import EventBatch
from progression.gamification.points_ledger import PointsLedger
from progression.repositories.base import ChallengeProgress, ChallengeProgressRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeView:
    """Catalog definition merged with the user's active period."""

    definition: ChallengeDefinition
    cycle: int
    deadline: datetime
    progress: int = 0
    completed: bool = False


class ChallengeTracker:
    def __init__(
        self,
        repo: ChallengeProgressRepo,
        catalog: Catalog,
        ledger: PointsLedger,
    ) -> None:
        self.repo = repo
        self.catalog = catalog
        self.ledger = ledger

    async def ensure_active(self, user_id: int, role: str, now: datetime) -> int:
        """Issue a current period for every role challenge lacking one.

        Returns the number of cycles this call created.
        """
        issued = 0
        for definition in self.catalog.challenges_for(role):
            if await self._ensure_cycle(user_id, definition, now):
                issued += 1
        return issued

    async def _ensure_cycle(self, user_id: int, definition: ChallengeDefinition, now: datetime) -> bool:
        latest = await self.repo.get_latest(user_id, definition.id)
        if latest is not None and latest.is_active(now):
            return False
        cycle = 1 if latest is None else latest.cycle + 1
        created = await self.repo.create_cycle(
            user_id, definition.id, cycle, now + definition.duration, now
        )
        if created and cycle > 1:
            logger.info("Re-issued challenge %s for user %d (cycle %d)", definition.id, user_id, cycle)
        return created

    async def record_task(
        self, user_id: int, role: str, task_type: str, now: datetime, events: EventBatch
    ) -> list[Completion]:
        """Advance every active challenge routed from this task type."""
        completions: list[Completion] = []
        for definition in self.catalog.challenges_for_task(task_type, role):
            await self._ensure_cycle(user_id, definition, now)
            row = await self.repo.increment(user_id, definition.id, definition.target, now)
            if row is None:
                continue
            if row.progress < definition.target:
                continue
            completion = await self._complete(user_id, definition, row, now, events)
            if completion is not None:
                completions.append(completion)
        return completions

    async def _complete(
        self,
        user_id: int,
        definition: ChallengeDefinition,
        row: ChallengeProgress,
        now: datetime,
        events: EventBatch,
    ) -> Completion | None:
        won = await self.repo.mark_completed(user_id, definition.id, row.cycle, now)
        if not won:
            return None

        total = await self.ledger.award(
            user_id,
            CHALLENGE_COMPLETED,
            f"Completed challenge: {definition.title}",
            definition.points,
            now,
            events,
            {"challenge_id": definition.id, "cycle": row.cycle},
        )
        logger.info(
            "User %d completed challenge %s cycle %d (+%d points)",
            user_id, definition.id, row.cycle, definition.points,
        )
        events.challenge_completed(user_id, definition.id, row.cycle, definition.points)
        return Completion(definition.id, definition.points, total)

    async def active_for(self, user_id: int, role: str, now: datetime) -> list[ChallengeView]:
        """Current-period rows for the role's challenges, in catalog order."""
        rows = {r.challenge_id: r for r in await self.repo.list_active(user_id, now)}
        views = []
        for definition in self.catalog.challenges_for(role):
            row = rows.get(definition.id)
            if row is None:
                continue
            views.append(ChallengeView(
                definition,
                cycle=row.cycle,
                deadline=row.deadline,
                progress=row.progress,
                completed=row.completed,
            ))
        return views
