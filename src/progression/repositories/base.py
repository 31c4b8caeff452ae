"""Repository interfaces and the plain records they exchange with the engine.

Every mutation the engine needs is expressed as a single repository call so
that each one can be an atomic add or an atomic compare-and-set in storage.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserAccount:
    id: int
    role: str
    school_id: int | None = None


@dataclass
class ProgressionProfile:
    user_id: int
    total_points: int = 0
    scope_id: int | None = None
    last_activity: datetime | None = None
    created_at: datetime | None = None


@dataclass
class AchievementProgress:
    user_id: int
    achievement_id: str
    progress: int = 0
    completed: bool = False
    claimed: bool = False
    completed_at: datetime | None = None


@dataclass
class ChallengeProgress:
    user_id: int
    challenge_id: str
    cycle: int
    deadline: datetime
    progress: int = 0
    completed: bool = False
    completed_at: datetime | None = None
    created_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        return self.deadline > now


@dataclass
class ActivityEntry:
    user_id: int
    type: str
    description: str
    points: int
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None


@dataclass(frozen=True)
class EarnedBadge:
    id: str
    name: str
    rarity: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    earned_at: datetime | None = None


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class UserDirectory(Protocol):
    async def get_user(self, user_id: int) -> UserAccount | None: ...


class ProfileRepo(Protocol):
    async def get(self, user_id: int) -> ProgressionProfile | None: ...

    async def create_if_absent(self, user_id: int, scope_id: int | None, now: datetime) -> bool:
        """Insert a zero-point profile. Returns False if one already existed."""
        ...

    async def add_points(self, user_id: int, amount: int, now: datetime) -> int:
        """Atomically add points and touch last_activity. Returns the new total."""
        ...

    async def count_above(self, total_points: int, scope_id: int | None = None) -> int:
        """Count profiles with strictly more points, optionally within one scope."""
        ...


class AchievementProgressRepo(Protocol):
    async def list_for_user(self, user_id: int) -> list[AchievementProgress]: ...

    async def seed(self, user_id: int, achievement_ids: Iterable[str]) -> None:
        """Create zero-progress rows for any ids the user does not have yet."""
        ...

    async def increment(
        self, user_id: int, achievement_id: str, target: int
    ) -> AchievementProgress | None:
        """Atomically add 1 (clamped at target) to an incomplete row.

        Returns the updated row, or None when there is no incomplete row.
        """
        ...

    async def mark_completed(self, user_id: int, achievement_id: str, now: datetime) -> bool:
        """Set completed and claimed only if the row was not completed. True if this call won."""
        ...


class ChallengeProgressRepo(Protocol):
    async def list_active(self, user_id: int, now: datetime) -> list[ChallengeProgress]: ...

    async def get_latest(self, user_id: int, challenge_id: str) -> ChallengeProgress | None: ...

    async def create_cycle(
        self,
        user_id: int,
        challenge_id: str,
        cycle: int,
        deadline: datetime,
        now: datetime,
    ) -> bool:
        """Insert the row for one period. Returns False if that cycle already exists."""
        ...

    async def increment(
        self, user_id: int, challenge_id: str, target: int, now: datetime
    ) -> ChallengeProgress | None:
        """Atomically add 1 (clamped at target) to the active, incomplete row."""
        ...

    async def mark_completed(
        self, user_id: int, challenge_id: str, cycle: int, now: datetime
    ) -> bool:
        """Compare-and-set completion for one cycle. True if this call won."""
        ...


class ActivityLogRepo(Protocol):
    async def append(self, entry: ActivityEntry) -> ActivityEntry: ...

    async def recent(self, user_id: int, limit: int) -> list[ActivityEntry]:
        """Newest first."""
        ...

    async def list_since(
        self, user_id: int, since: datetime, entry_type: str | None = None
    ) -> list[ActivityEntry]:
        """Entries with timestamp >= since, newest first."""
        ...

    async def sum_points(self, user_id: int, since: datetime | None = None) -> int: ...


class BadgeRepo(Protocol):
    async def list_for_user(self, user_id: int) -> list[EarnedBadge]: ...


@dataclass
class Repositories:
    """Bundle of repositories sharing one storage transaction scope."""

    users: UserDirectory
    profiles: ProfileRepo
    achievements: AchievementProgressRepo
    challenges: ChallengeProgressRepo
    activity: ActivityLogRepo
    badges: BadgeRepo

    async def commit(self) -> None:
        """Make everything written so far durable."""

    async def rollback(self) -> None:
        """Discard uncommitted writes."""
