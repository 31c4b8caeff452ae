"""In-process repositories for tests and local runs.

Each call yields to the event loop once before touching state, standing in
for a storage round trip, and then applies its change without yielding again.
That keeps every single call atomic while letting concurrent callers interleave
between calls, which is exactly the hazard the engine has to survive.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from progression.repositories.base import (
    AchievementProgress,
    ActivityEntry,
    ChallengeProgress,
    EarnedBadge,
    ProgressionProfile,
    Repositories,
    UserAccount,
)


async def _round_trip() -> None:
    await asyncio.sleep(0)


class InMemoryUserDirectory:
    def __init__(self, users: Iterable[UserAccount] = ()) -> None:
        self._users = {u.id: u for u in users}

    def add(self, user: UserAccount) -> None:
        self._users[user.id] = user

    async def get_user(self, user_id: int) -> UserAccount | None:
        await _round_trip()
        return self._users.get(user_id)


class InMemoryProfileRepo:
    def __init__(self) -> None:
        self.rows: dict[int, ProgressionProfile] = {}

    async def get(self, user_id: int) -> ProgressionProfile | None:
        await _round_trip()
        row = self.rows.get(user_id)
        return replace(row) if row else None

    async def create_if_absent(self, user_id: int, scope_id: int | None, now: datetime) -> bool:
        await _round_trip()
        if user_id in self.rows:
            return False
        self.rows[user_id] = ProgressionProfile(
            user_id=user_id, scope_id=scope_id, last_activity=now, created_at=now,
        )
        return True

    async def add_points(self, user_id: int, amount: int, now: datetime) -> int:
        await _round_trip()
        row = self.rows[user_id]
        row.total_points += amount
        row.last_activity = now
        return row.total_points

    async def count_above(self, total_points: int, scope_id: int | None = None) -> int:
        await _round_trip()
        return sum(
            1
            for row in self.rows.values()
            if row.total_points > total_points
            and (scope_id is None or row.scope_id == scope_id)
        )


class InMemoryAchievementProgressRepo:
    def __init__(self) -> None:
        self.rows: dict[tuple[int, str], AchievementProgress] = {}

    async def list_for_user(self, user_id: int) -> list[AchievementProgress]:
        await _round_trip()
        return [replace(r) for (uid, _), r in self.rows.items() if uid == user_id]

    async def seed(self, user_id: int, achievement_ids: Iterable[str]) -> None:
        await _round_trip()
        for aid in achievement_ids:
            self.rows.setdefault((user_id, aid), AchievementProgress(user_id, aid))

    async def increment(
        self, user_id: int, achievement_id: str, target: int
    ) -> AchievementProgress | None:
        await _round_trip()
        row = self.rows.get((user_id, achievement_id))
        if row is None or row.completed:
            return None
        row.progress = min(row.progress + 1, target)
        return replace(row)

    async def mark_completed(self, user_id: int, achievement_id: str, now: datetime) -> bool:
        await _round_trip()
        row = self.rows.get((user_id, achievement_id))
        if row is None or row.completed:
            return False
        row.completed = True
        row.claimed = True
        row.completed_at = now
        return True


class InMemoryChallengeProgressRepo:
    def __init__(self) -> None:
        self.rows: dict[tuple[int, str, int], ChallengeProgress] = {}

    async def list_active(self, user_id: int, now: datetime) -> list[ChallengeProgress]:
        await _round_trip()
        return [
            replace(r)
            for (uid, _, _), r in self.rows.items()
            if uid == user_id and r.is_active(now)
        ]

    async def get_latest(self, user_id: int, challenge_id: str) -> ChallengeProgress | None:
        await _round_trip()
        cycles = [
            r for (uid, cid, _), r in self.rows.items() if uid == user_id and cid == challenge_id
        ]
        if not cycles:
            return None
        return replace(max(cycles, key=lambda r: r.cycle))

    async def create_cycle(
        self,
        user_id: int,
        challenge_id: str,
        cycle: int,
        deadline: datetime,
        now: datetime,
    ) -> bool:
        await _round_trip()
        key = (user_id, challenge_id, cycle)
        if key in self.rows:
            return False
        self.rows[key] = ChallengeProgress(
            user_id=user_id,
            challenge_id=challenge_id,
            cycle=cycle,
            deadline=deadline,
            created_at=now,
        )
        return True

    async def increment(
        self, user_id: int, challenge_id: str, target: int, now: datetime
    ) -> ChallengeProgress | None:
        await _round_trip()
        for (uid, cid, _), row in self.rows.items():
            if uid == user_id and cid == challenge_id and row.is_active(now) and not row.completed:
                row.progress = min(row.progress + 1, target)
                return replace(row)
        return None

    async def mark_completed(
        self, user_id: int, challenge_id: str, cycle: int, now: datetime
    ) -> bool:
        await _round_trip()
        row = self.rows.get((user_id, challenge_id, cycle))
        if row is None or row.completed:
            return False
        row.completed = True
        row.completed_at = now
        return True


class InMemoryActivityLogRepo:
    def __init__(self) -> None:
        self.entries: list[ActivityEntry] = []
        self._ids = itertools.count(1)

    async def append(self, entry: ActivityEntry) -> ActivityEntry:
        await _round_trip()
        stored = replace(
            entry, id=next(self._ids), description=entry.description[:256], metadata=dict(entry.metadata)
        )
        self.entries.append(stored)
        return replace(stored)

    def _for_user(self, user_id: int) -> list[ActivityEntry]:
        rows = [e for e in self.entries if e.user_id == user_id]
        return sorted(rows, key=lambda e: (e.timestamp, e.id or 0), reverse=True)

    async def recent(self, user_id: int, limit: int) -> list[ActivityEntry]:
        await _round_trip()
        return [replace(e) for e in self._for_user(user_id)[:limit]]

    async def list_since(
        self, user_id: int, since: datetime, entry_type: str | None = None
    ) -> list[ActivityEntry]:
        await _round_trip()
        return [
            replace(e)
            for e in self._for_user(user_id)
            if e.timestamp >= since and (entry_type is None or e.type == entry_type)
        ]

    async def sum_points(self, user_id: int, since: datetime | None = None) -> int:
        await _round_trip()
        return sum(
            e.points
            for e in self.entries
            if e.user_id == user_id and (since is None or e.timestamp >= since)
        )


class InMemoryBadgeRepo:
    def __init__(self) -> None:
        self.badges: dict[int, list[EarnedBadge]] = {}

    def add(self, user_id: int, badge: EarnedBadge) -> None:
        self.badges.setdefault(user_id, []).append(badge)

    async def list_for_user(self, user_id: int) -> list[EarnedBadge]:
        await _round_trip()
        return list(self.badges.get(user_id, []))


def build_memory_repositories(users: Iterable[UserAccount] = ()) -> Repositories:
    """Fresh, empty in-memory repository bundle."""
    return Repositories(
        users=InMemoryUserDirectory(users),
        profiles=InMemoryProfileRepo(),
        achievements=InMemoryAchievementProgressRepo(),
        challenges=InMemoryChallengeProgressRepo(),
        activity=InMemoryActivityLogRepo(),
        badges=InMemoryBadgeRepo(),
    )
