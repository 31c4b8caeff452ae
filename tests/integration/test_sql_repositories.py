"""PostgreSQL repository tests. Skipped when the configured database is unreachable."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from progression.config import get_settings
from progression.database import build_session_factory
from progression.db import models  # noqa: F401
from progression.db.base import Base
from progression.gamification.engine import ProgressionEngine
from progression.repositories.base import ActivityEntry
from progression.repositories.sql import build_sql_repositories

NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)

_TABLES = (
    "progression_activity",
    "user_challenge_progress",
    "user_achievement_progress",
    "user_progression",
    "user_badges",
    "users",
)


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema with users 1-3 in school 100 and user 4 in school 200."""
    engine = create_async_engine(get_settings().database_url, poolclass=NullPool)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:  # noqa: BLE001
        await engine.dispose()
        pytest.skip(f"PostgreSQL not available: {exc}")

    async with engine.begin() as conn:
        await conn.execute(text(f"TRUNCATE TABLE {', '.join(_TABLES)} RESTART IDENTITY CASCADE"))
        await conn.execute(text(
            "INSERT INTO users (id, role, school_id) VALUES "
            "(1, 'school', 100), (2, 'school', 100), (3, 'eca', 100), (4, 'school', 200)"
        ))

    yield build_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


class TestSqlProfileRepo:
    @pytest.mark.asyncio
    async def test_create_if_absent_once(self, db):
        repos = build_sql_repositories(db)
        assert await repos.profiles.create_if_absent(1, 100, NOW) is True
        assert await repos.profiles.create_if_absent(1, 100, NOW) is False
        profile = await repos.profiles.get(1)
        assert profile.total_points == 0
        assert profile.scope_id == 100

    @pytest.mark.asyncio
    async def test_add_points_returns_new_total(self, db):
        repos = build_sql_repositories(db)
        await repos.profiles.create_if_absent(1, 100, NOW)
        assert await repos.profiles.add_points(1, 30, NOW) == 30
        assert await repos.profiles.add_points(1, 20, NOW + timedelta(hours=1)) == 50
        assert (await repos.profiles.get(1)).last_activity == NOW + timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_count_above_with_scope(self, db):
        repos = build_sql_repositories(db)
        for user_id, points, scope in [(1, 500, 100), (2, 500, 100), (3, 300, 100), (4, 900, 200)]:
            await repos.profiles.create_if_absent(user_id, scope, NOW)
            await repos.profiles.add_points(user_id, points, NOW)

        assert await repos.profiles.count_above(500, 100) == 0
        assert await repos.profiles.count_above(300, 100) == 2
        assert await repos.profiles.count_above(500) == 1


class TestSqlAchievementRepo:
    @pytest.mark.asyncio
    async def test_increment_clamps_and_completion_is_single_winner(self, db):
        repos = build_sql_repositories(db)
        await repos.achievements.seed(1, ["club_joiner"])
        await repos.achievements.seed(1, ["club_joiner"])

        for _ in range(5):
            row = await repos.achievements.increment(1, "club_joiner", 3)
        assert row.progress == 3

        assert await repos.achievements.mark_completed(1, "club_joiner", NOW) is True
        assert await repos.achievements.mark_completed(1, "club_joiner", NOW + timedelta(days=1)) is False
        assert await repos.achievements.increment(1, "club_joiner", 3) is None

        [stored] = await repos.achievements.list_for_user(1)
        assert stored.completed and stored.claimed
        assert stored.completed_at == NOW


class TestSqlChallengeRepo:
    @pytest.mark.asyncio
    async def test_cycles(self, db):
        repos = build_sql_repositories(db)
        assert await repos.challenges.create_cycle(1, "weekly_downloads", 1, NOW + timedelta(days=7), NOW)
        assert not await repos.challenges.create_cycle(1, "weekly_downloads", 1, NOW + timedelta(days=7), NOW)

        row = await repos.challenges.increment(1, "weekly_downloads", 5, NOW)
        assert row.progress == 1

        later = NOW + timedelta(days=8)
        assert await repos.challenges.increment(1, "weekly_downloads", 5, later) is None
        assert await repos.challenges.list_active(1, later) == []

        await repos.challenges.create_cycle(1, "weekly_downloads", 2, later + timedelta(days=7), later)
        latest = await repos.challenges.get_latest(1, "weekly_downloads")
        assert latest.cycle == 2
        assert latest.progress == 0


class TestSqlActivityRepo:
    @pytest.mark.asyncio
    async def test_recent_order_and_sums(self, db):
        repos = build_sql_repositories(db)
        for hours, points, kind in [(48, 10, "daily_login"), (1, 5, "document_download"), (0, 50, "achievement_completed")]:
            await repos.activity.append(ActivityEntry(
                user_id=1, type=kind, description=kind, points=points,
                timestamp=NOW - timedelta(hours=hours), metadata={"k": "v"},
            ))

        recent = await repos.activity.recent(1, 2)
        assert [e.type for e in recent] == ["achievement_completed", "document_download"]
        assert recent[0].metadata == {"k": "v"}
        assert await repos.activity.sum_points(1) == 65
        assert await repos.activity.sum_points(1, since=NOW - timedelta(hours=2)) == 55
        logins = await repos.activity.list_since(1, NOW - timedelta(days=30), entry_type="daily_login")
        assert len(logins) == 1


class TestSqlEngine:
    @pytest.mark.asyncio
    async def test_invariants_hold_end_to_end(self, session_factory):
        async with session_factory() as session:
            engine = ProgressionEngine(build_sql_repositories(session), clock=lambda: NOW)
            for task in ["login", "profile_update", "document_download", "mystery"]:
                await engine.complete_task(1, task)
            stats = await engine.get_stats(1, "school", 100)

        async with session_factory() as session:
            repos = build_sql_repositories(session)
            assert stats.total_points == await repos.activity.sum_points(1)
            for row in await repos.achievements.list_for_user(1):
                assert row.claimed == row.completed

    @pytest.mark.asyncio
    async def test_concurrent_sessions_award_bonus_once(self, session_factory):
        """Two transactions both reach the target; the row lock serializes the transition."""
        async with session_factory() as session:
            engine = ProgressionEngine(build_sql_repositories(session), clock=lambda: NOW)
            for _ in range(2):
                await engine.complete_task(3, "club_join")

        async def _join() -> None:
            async with session_factory() as session:
                engine = ProgressionEngine(build_sql_repositories(session), clock=lambda: NOW)
                await engine.complete_task(3, "club_join")

        await asyncio.gather(_join(), _join())

        async with session_factory() as session:
            result = await session.execute(text(
                "SELECT COUNT(*) FROM progression_activity "
                "WHERE user_id = 3 AND type = 'achievement_completed'"
            ))
            assert result.scalar_one() == 1
            repos = build_sql_repositories(session)
            profile = await repos.profiles.get(3)
            assert profile.total_points == 4 * 20 + 200
            assert profile.total_points == await repos.activity.sum_points(3)
