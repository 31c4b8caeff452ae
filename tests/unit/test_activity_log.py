"""Activity log tests: recent feed ordering and the Sunday-start weekly window."""

from datetime import datetime, timedelta, timezone

import pytest

from progression.gamification.activity_log import RECENT_ACTIVITY_LIMIT, ActivityLog
from progression.repositories.memory import InMemoryActivityLogRepo

NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)  # Wednesday
WEEK_START = datetime(2026, 3, 1, 0, 0, tzinfo=timezone.utc)  # Sunday


@pytest.fixture
def log() -> ActivityLog:
    return ActivityLog(InMemoryActivityLogRepo())


class TestRecord:
    @pytest.mark.asyncio
    async def test_record_assigns_id_and_keeps_metadata(self, log):
        entry = await log.record(1, "document_download", "Downloaded document: A", 5, NOW, {"documentName": "A"})
        assert entry.id is not None
        assert entry.metadata == {"documentName": "A"}

    @pytest.mark.asyncio
    async def test_missing_metadata_becomes_empty(self, log):
        entry = await log.record(1, "login", "Logged into the system", 10, NOW)
        assert entry.metadata == {}


class TestRecent:
    @pytest.mark.asyncio
    async def test_newest_first_and_limited(self, log):
        for i in range(15):
            await log.record(1, "login", f"entry {i}", 10, NOW - timedelta(hours=15 - i))

        recent = await log.recent(1)
        assert len(recent) == RECENT_ACTIVITY_LIMIT == 10
        assert recent[0].description == "entry 14"
        timestamps = [e.timestamp for e in recent]
        assert timestamps == sorted(timestamps, reverse=True)


class TestWeeklyProgress:
    @pytest.mark.asyncio
    async def test_sums_since_sunday_midnight(self, log):
        await log.record(1, "login", "before", 100, WEEK_START - timedelta(seconds=1))
        await log.record(1, "login", "at boundary", 10, WEEK_START)
        await log.record(1, "achievement_completed", "bonus", 50, NOW)
        await log.record(2, "login", "other user", 999, NOW)

        assert await log.weekly_progress(1, NOW, timezone.utc) == 60

    @pytest.mark.asyncio
    async def test_empty_week(self, log):
        assert await log.weekly_progress(1, NOW, timezone.utc) == 0

    @pytest.mark.asyncio
    async def test_total_points_covers_everything(self, log):
        await log.record(1, "login", "old", 100, NOW - timedelta(days=60))
        await log.record(1, "login", "new", 10, NOW)
        assert await log.total_points(1) == 110
