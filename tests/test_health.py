"""Health endpoint tests."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from progression.database import get_session
from progression.main import create_app


def _app_with_session(session: AsyncMock):
    app = create_app()

    async def _session() -> AsyncGenerator[AsyncMock, None]:
        yield session

    app.dependency_overrides[get_session] = _session
    return app


@pytest_asyncio.fixture
async def db_mock() -> AsyncMock:
    return AsyncMock()


@pytest_asyncio.fixture
async def health_client(db_mock: AsyncMock) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=_app_with_session(db_mock))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health(health_client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status."""
    response = await health_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness_without_redis(health_client: AsyncClient) -> None:
    """Redis is optional, so an unstarted pool reports disabled and stays ready."""
    response = await health_client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"database": "ok", "redis": "disabled"}


@pytest.mark.asyncio
async def test_readiness_database_down(health_client: AsyncClient, db_mock: AsyncMock) -> None:
    db_mock.execute.side_effect = ConnectionError("connection refused")
    response = await health_client.get("/ready")
    data = response.json()
    assert data["status"] == "degraded"
    assert data["checks"]["database"].startswith("error:")


@pytest.mark.asyncio
async def test_version(health_client: AsyncClient) -> None:
    response = await health_client.get("/version")
    assert response.status_code == 200
    data = response.json()
    assert data["version"] == "0.1.0"
    assert "environment" in data
