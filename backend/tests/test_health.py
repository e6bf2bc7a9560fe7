from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from leave_ledger.db import get_session
from leave_ledger.main import app
from support import SOLDIER_HEADERS, SOLDIER_ID, balance_url

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


async def test_health_returns_200(async_client: AsyncClient) -> None:
    response = await async_client.get("/health")
    assert response.status_code == 200


async def test_health_response_body(async_client: AsyncClient) -> None:
    data = (await async_client.get("/health")).json()
    assert data["status"] == "ok"
    assert data["app"] == "Leave Ledger"
    assert data["version"] == "0.1.0"
    assert data["database"] == "ok"
    assert data["cached_balances"] == 0


async def test_health_reports_cached_balances(async_client: AsyncClient) -> None:
    await async_client.get(balance_url(SOLDIER_ID), headers=SOLDIER_HEADERS)
    data = (await async_client.get("/health")).json()
    assert data["cached_balances"] == 1


async def test_health_needs_no_auth(async_client: AsyncClient) -> None:
    response = await async_client.get("/health", headers={})
    assert response.status_code == 200


async def test_health_degraded_on_db_failure() -> None:
    """GET /health returns degraded status when the ledger store is unreachable."""
    mock_session = AsyncMock(spec=AsyncSession)
    mock_session.execute.side_effect = ConnectionError("DB unreachable")

    async def _broken_session() -> AsyncIterator[AsyncSession]:
        yield mock_session

    app.dependency_overrides[get_session] = _broken_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        data = response.json()
        assert response.status_code == 200
        assert data["status"] == "degraded"
        assert data["database"] == "unreachable"
    finally:
        app.dependency_overrides.clear()
