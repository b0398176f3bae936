from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from wclogs.api.routes.health import router, set_health_deps
from wclogs.wcl.auth import WCLAuthError


@pytest.fixture(autouse=True)
def _reset_health_deps():
    """Reset module-level globals before each test."""
    set_health_deps(wcl_factory=None)
    yield
    set_health_deps(wcl_factory=None)


@pytest.fixture
def app():
    return FastAPI(routes=router.routes)


async def _get_health(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get("/health")


async def test_health_ok(app):
    factory = MagicMock()
    factory.check = AsyncMock()
    set_health_deps(wcl_factory=factory)

    resp = await _get_health(app)

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": "0.1.0", "wcl": "ok"}
    factory.check.assert_awaited_once()


async def test_health_not_configured(app):
    resp = await _get_health(app)

    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "degraded"
    assert body["wcl"] == "not configured"


@pytest.mark.parametrize("error", [
    WCLAuthError("authentication failed with status 401"),
    httpx.ConnectError("refused"),
])
async def test_health_token_failure(app, error):
    factory = MagicMock()
    factory.check = AsyncMock(side_effect=error)
    set_health_deps(wcl_factory=factory)

    resp = await _get_health(app)

    assert resp.status_code == 503
    assert resp.json()["wcl"] == "error"
