"""Rank tests: ties share a rank and the next distinct total skips."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from progression.gamification.rank_service import calculate_rank
from progression.repositories.memory import InMemoryProfileRepo

NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def profiles() -> InMemoryProfileRepo:
    repo = InMemoryProfileRepo()
    # (user_id, points, school)
    for user_id, points, scope in [(1, 500, 100), (2, 500, 100), (3, 300, 100), (4, 900, 200)]:
        await repo.create_if_absent(user_id, scope, NOW)
        await repo.add_points(user_id, points, NOW)
    return repo


class TestCalculateRank:
    @pytest.mark.asyncio
    async def test_ties_within_school(self, profiles):
        """{500, 500, 300} in one school rank as {1, 1, 3}."""
        ranks = [await calculate_rank(profiles, uid, scope_id=100) for uid in (1, 2, 3)]
        assert ranks == [1, 1, 3]

    @pytest.mark.asyncio
    async def test_unscoped_rank_includes_everyone(self, profiles):
        assert await calculate_rank(profiles, 4) == 1
        assert await calculate_rank(profiles, 1) == 2
        assert await calculate_rank(profiles, 3) == 4

    @pytest.mark.asyncio
    async def test_top_of_own_scope(self, profiles):
        assert await calculate_rank(profiles, 4, scope_id=200) == 1

    @pytest.mark.asyncio
    async def test_missing_profile_counts_as_zero(self, profiles):
        assert await calculate_rank(profiles, 99, scope_id=100) == 4
