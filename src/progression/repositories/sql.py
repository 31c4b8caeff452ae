"""PostgreSQL repositories on SQLAlchemy async sessions.

Increments are single `UPDATE ... SET x = x + n RETURNING` statements and
completion is an `UPDATE ... WHERE completed = false RETURNING`, so both are
one round trip and safe under concurrent writers without explicit locks.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from progression.db.models import (
    ProgressionActivity,
    User,
    UserAchievementProgress,
    UserBadge,
    UserChallengeProgress,
    UserProgression,
)
from progression.repositories.base import (
    AchievementProgress,
    ActivityEntry,
    ChallengeProgress,
    EarnedBadge,
    ProgressionProfile,
    Repositories,
    UserAccount,
)

_NO_SYNC = {"synchronize_session": False}


class SqlUserDirectory:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_user(self, user_id: int) -> UserAccount | None:
        result = await self.db.execute(
            select(User.id, User.role, User.school_id).where(User.id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return UserAccount(id=row.id, role=row.role, school_id=row.school_id)


class SqlProfileRepo:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, user_id: int) -> ProgressionProfile | None:
        result = await self.db.execute(
            select(UserProgression).where(UserProgression.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return ProgressionProfile(
            user_id=row.user_id,
            total_points=row.total_points,
            scope_id=row.scope_id,
            last_activity=row.last_activity,
            created_at=row.created_at,
        )

    async def create_if_absent(self, user_id: int, scope_id: int | None, now: datetime) -> bool:
        stmt = (
            pg_insert(UserProgression)
            .values(
                user_id=user_id,
                total_points=0,
                scope_id=scope_id,
                last_activity=now,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
            .returning(UserProgression.user_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def add_points(self, user_id: int, amount: int, now: datetime) -> int:
        stmt = (
            update(UserProgression)
            .where(UserProgression.user_id == user_id)
            .values(
                total_points=UserProgression.total_points + amount,
                last_activity=now,
                updated_at=now,
            )
            .returning(UserProgression.total_points)
            .execution_options(**_NO_SYNC)
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def count_above(self, total_points: int, scope_id: int | None = None) -> int:
        stmt = select(func.count()).select_from(UserProgression).where(
            UserProgression.total_points > total_points
        )
        if scope_id is not None:
            stmt = stmt.where(UserProgression.scope_id == scope_id)
        result = await self.db.execute(stmt)
        return int(result.scalar_one())


def _achievement_from_row(row: object) -> AchievementProgress:
    return AchievementProgress(
        user_id=row.user_id,  # type: ignore[attr-defined]
        achievement_id=row.achievement_id,  # type: ignore[attr-defined]
        progress=row.progress,  # type: ignore[attr-defined]
        completed=row.completed,  # type: ignore[attr-defined]
        claimed=row.claimed,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
    )


_ACHIEVEMENT_COLUMNS = (
    UserAchievementProgress.user_id,
    UserAchievementProgress.achievement_id,
    UserAchievementProgress.progress,
    UserAchievementProgress.completed,
    UserAchievementProgress.claimed,
    UserAchievementProgress.completed_at,
)


class SqlAchievementProgressRepo:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_for_user(self, user_id: int) -> list[AchievementProgress]:
        result = await self.db.execute(
            select(*_ACHIEVEMENT_COLUMNS).where(UserAchievementProgress.user_id == user_id)
        )
        return [_achievement_from_row(row) for row in result]

    async def seed(self, user_id: int, achievement_ids: Iterable[str]) -> None:
        values = [{"user_id": user_id, "achievement_id": aid} for aid in achievement_ids]
        if not values:
            return
        stmt = pg_insert(UserAchievementProgress).values(values).on_conflict_do_nothing(
            constraint="user_achievement_progress_user_achievement_key"
        )
        await self.db.execute(stmt)

    async def increment(
        self, user_id: int, achievement_id: str, target: int
    ) -> AchievementProgress | None:
        stmt = (
            update(UserAchievementProgress)
            .where(
                UserAchievementProgress.user_id == user_id,
                UserAchievementProgress.achievement_id == achievement_id,
                UserAchievementProgress.completed.is_(False),
            )
            .values(progress=func.least(UserAchievementProgress.progress + 1, target))
            .returning(*_ACHIEVEMENT_COLUMNS)
            .execution_options(**_NO_SYNC)
        )
        result = await self.db.execute(stmt)
        row = result.one_or_none()
        return _achievement_from_row(row) if row is not None else None

    async def mark_completed(self, user_id: int, achievement_id: str, now: datetime) -> bool:
        stmt = (
            update(UserAchievementProgress)
            .where(
                UserAchievementProgress.user_id == user_id,
                UserAchievementProgress.achievement_id == achievement_id,
                UserAchievementProgress.completed.is_(False),
            )
            .values(completed=True, claimed=True, completed_at=now)
            .returning(UserAchievementProgress.id)
            .execution_options(**_NO_SYNC)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None


_CHALLENGE_COLUMNS = (
    UserChallengeProgress.user_id,
    UserChallengeProgress.challenge_id,
    UserChallengeProgress.cycle,
    UserChallengeProgress.deadline,
    UserChallengeProgress.progress,
    UserChallengeProgress.completed,
    UserChallengeProgress.completed_at,
    UserChallengeProgress.created_at,
)


def _challenge_from_row(row: object) -> ChallengeProgress:
    return ChallengeProgress(
        user_id=row.user_id,  # type: ignore[attr-defined]
        challenge_id=row.challenge_id,  # type: ignore[attr-defined]
        cycle=row.cycle,  # type: ignore[attr-defined]
        deadline=row.deadline,  # type: ignore[attr-defined]
        progress=row.progress,  # type: ignore[attr-defined]
        completed=row.completed,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class SqlChallengeProgressRepo:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_active(self, user_id: int, now: datetime) -> list[ChallengeProgress]:
        result = await self.db.execute(
            select(*_CHALLENGE_COLUMNS).where(
                UserChallengeProgress.user_id == user_id,
                UserChallengeProgress.deadline > now,
            )
        )
        return [_challenge_from_row(row) for row in result]

    async def get_latest(self, user_id: int, challenge_id: str) -> ChallengeProgress | None:
        result = await self.db.execute(
            select(*_CHALLENGE_COLUMNS)
            .where(
                UserChallengeProgress.user_id == user_id,
                UserChallengeProgress.challenge_id == challenge_id,
            )
            .order_by(UserChallengeProgress.cycle.desc())
            .limit(1)
        )
        row = result.one_or_none()
        return _challenge_from_row(row) if row is not None else None

    async def create_cycle(
        self,
        user_id: int,
        challenge_id: str,
        cycle: int,
        deadline: datetime,
        now: datetime,
    ) -> bool:
        stmt = (
            pg_insert(UserChallengeProgress)
            .values(
                user_id=user_id,
                challenge_id=challenge_id,
                cycle=cycle,
                deadline=deadline,
                created_at=now,
            )
            .on_conflict_do_nothing(constraint="user_challenge_progress_cycle_key")
            .returning(UserChallengeProgress.id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def increment(
        self, user_id: int, challenge_id: str, target: int, now: datetime
    ) -> ChallengeProgress | None:
        stmt = (
            update(UserChallengeProgress)
            .where(
                UserChallengeProgress.user_id == user_id,
                UserChallengeProgress.challenge_id == challenge_id,
                UserChallengeProgress.completed.is_(False),
                UserChallengeProgress.deadline > now,
            )
            .values(progress=func.least(UserChallengeProgress.progress + 1, target))
            .returning(*_CHALLENGE_COLUMNS)
            .execution_options(**_NO_SYNC)
        )
        result = await self.db.execute(stmt)
        row = result.first()
        return _challenge_from_row(row) if row is not None else None

    async def mark_completed(
        self, user_id: int, challenge_id: str, cycle: int, now: datetime
    ) -> bool:
        stmt = (
            update(UserChallengeProgress)
            .where(
                UserChallengeProgress.user_id == user_id,
                UserChallengeProgress.challenge_id == challenge_id,
                UserChallengeProgress.cycle == cycle,
                UserChallengeProgress.completed.is_(False),
            )
            .values(completed=True, completed_at=now)
            .returning(UserChallengeProgress.id)
            .execution_options(**_NO_SYNC)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None


def _entry_from_row(row: ProgressionActivity) -> ActivityEntry:
    return ActivityEntry(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        description=row.description,
        points=row.points,
        timestamp=row.timestamp,
        metadata=dict(row.activity_metadata or {}),
    )


class SqlActivityLogRepo:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def append(self, entry: ActivityEntry) -> ActivityEntry:
        row = ProgressionActivity(
            user_id=entry.user_id,
            type=entry.type,
            description=entry.description[:256],
            points=entry.points,
            timestamp=entry.timestamp,
            activity_metadata=entry.metadata or {},
        )
        self.db.add(row)
        await self.db.flush()
        return _entry_from_row(row)

    async def recent(self, user_id: int, limit: int) -> list[ActivityEntry]:
        result = await self.db.execute(
            select(ProgressionActivity)
            .where(ProgressionActivity.user_id == user_id)
            .order_by(ProgressionActivity.timestamp.desc(), ProgressionActivity.id.desc())
            .limit(limit)
        )
        return [_entry_from_row(row) for row in result.scalars()]

    async def list_since(
        self, user_id: int, since: datetime, entry_type: str | None = None
    ) -> list[ActivityEntry]:
        stmt = select(ProgressionActivity).where(
            ProgressionActivity.user_id == user_id,
            ProgressionActivity.timestamp >= since,
        )
        if entry_type is not None:
            stmt = stmt.where(ProgressionActivity.type == entry_type)
        result = await self.db.execute(
            stmt.order_by(ProgressionActivity.timestamp.desc(), ProgressionActivity.id.desc())
        )
        return [_entry_from_row(row) for row in result.scalars()]

    async def sum_points(self, user_id: int, since: datetime | None = None) -> int:
        stmt = select(func.coalesce(func.sum(ProgressionActivity.points), 0)).where(
            ProgressionActivity.user_id == user_id
        )
        if since is not None:
            stmt = stmt.where(ProgressionActivity.timestamp >= since)
        result = await self.db.execute(stmt)
        return int(result.scalar_one())


class SqlBadgeRepo:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_for_user(self, user_id: int) -> list[EarnedBadge]:
        result = await self.db.execute(
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc())
        )
        return [
            EarnedBadge(
                id=str(b.id),
                name=b.name,
                rarity=b.rarity,
                description=b.description,
                icon=b.icon,
                color=b.color,
                earned_at=b.earned_at,
            )
            for b in result.scalars()
        ]


@dataclass
class SqlRepositories(Repositories):
    """Repositories bound to one AsyncSession; commit/rollback act on it."""

    session: AsyncSession | None = None

    async def commit(self) -> None:
        if self.session is not None:
            await self.session.commit()

    async def rollback(self) -> None:
        if self.session is not None:
            await self.session.rollback()


def build_sql_repositories(db: AsyncSession) -> SqlRepositories:
    """Repository bundle sharing the given session."""
    return SqlRepositories(
        users=SqlUserDirectory(db),
        profiles=SqlProfileRepo(db),
        achievements=SqlAchievementProgressRepo(db),
        challenges=SqlChallengeProgressRepo(db),
        activity=SqlActivityLogRepo(db),
        badges=SqlBadgeRepo(db),
        session=db,
    )
