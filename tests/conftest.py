"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from progression.dependencies import get_progression_engine
from progression.gamification.catalog import Catalog
from progression.gamification.engine import ProgressionEngine
from progression.gamification.events import EventPublisher
from progression.main import create_app
from progression.repositories.base import Repositories, UserAccount
from progression.repositories.memory import build_memory_repositories

# Wednesday; the week started Sunday 2026-03-01.
NOW = datetime(2026, 3, 4, 12, 0, 0, tzinfo=timezone.utc)

SCHOOL_ID = 100
OTHER_SCHOOL_ID = 200

SCHOOL_ADMIN = UserAccount(id=1, role="school", school_id=SCHOOL_ID)
SCHOOL_ADMIN_2 = UserAccount(id=2, role="school", school_id=SCHOOL_ID)
COORDINATOR = UserAccount(id=3, role="eca", school_id=SCHOOL_ID)
OTHER_SCHOOL_ADMIN = UserAccount(id=4, role="school", school_id=OTHER_SCHOOL_ID)

ALL_USERS = (SCHOOL_ADMIN, SCHOOL_ADMIN_2, COORDINATOR, OTHER_SCHOOL_ADMIN)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def points_only_catalog(task_points: dict[str, int]) -> Catalog:
    """Catalog with the given task points and no achievements or challenges."""
    return Catalog(
        task_points=MappingProxyType(task_points),
        common_achievements=(),
        role_achievements=MappingProxyType({}),
        achievement_routes=MappingProxyType({}),
        common_challenges=(),
        role_challenges=MappingProxyType({}),
        challenge_routes=MappingProxyType({}),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repos() -> Repositories:
    return build_memory_repositories(ALL_USERS)


@pytest.fixture
def redis_mock() -> AsyncMock:
    """Stand-in Redis client; inspect ``publish.await_args_list``."""
    mock = AsyncMock()
    mock.publish = AsyncMock(return_value=1)
    return mock


@pytest.fixture
def publisher(redis_mock: AsyncMock) -> EventPublisher:
    return EventPublisher(redis_mock)


@pytest.fixture
def engine(repos: Repositories, publisher: EventPublisher, clock: FakeClock) -> ProgressionEngine:
    return ProgressionEngine(repos, publisher=publisher, clock=clock)


def published_channels(redis_mock: AsyncMock) -> list[str]:
    return [c.args[0] for c in redis_mock.publish.await_args_list]


@pytest_asyncio.fixture
async def client(engine: ProgressionEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the engine backed by in-memory repositories."""
    app = create_app()
    app.dependency_overrides[get_progression_engine] = lambda: engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
