"""Shared FastAPI dependencies: one repository bundle and engine per request."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from progression.config import Settings, get_settings
from progression.database import get_session
from progression.gamification.catalog import Catalog, get_catalog
from progression.gamification.engine import ProgressionEngine
from progression.gamification.events import EventPublisher
from progression.redis_client import get_redis_or_none
from progression.repositories.base import Repositories
from progression.repositories.sql import build_sql_repositories


async def get_repositories(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> Repositories:
    return build_sql_repositories(db)


def get_publisher(settings: Settings = Depends(get_settings)) -> EventPublisher:  # noqa: B008
    """Publisher bound to the shared Redis pool, or a no-op one when events are off."""
    if not settings.publish_events:
        return EventPublisher()
    return EventPublisher(get_redis_or_none())


def get_progression_engine(
    repos: Repositories = Depends(get_repositories),  # noqa: B008
    catalog: Catalog = Depends(get_catalog),  # noqa: B008
    publisher: EventPublisher = Depends(get_publisher),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> ProgressionEngine:
    return ProgressionEngine(repos, catalog=catalog, publisher=publisher, tz=settings.tzinfo)
