"""Shared fixtures for API route tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from tests.fakes import FakeWCL
from wclogs.api.app import create_app
from wclogs.api.deps import get_wcl_factory, verify_api_key


class FakeFactory:
    """Stands in for WCLFactory: every call hands out the same fake client."""

    def __init__(self, wcl):
        self.wcl = wcl
        self.opened = 0

    def __call__(self):
        return self

    async def __aenter__(self):
        self.opened += 1
        return self.wcl

    async def __aexit__(self, *exc):
        return None


@pytest.fixture
def fake_wcl():
    return FakeWCL()


@pytest.fixture
def factory(fake_wcl):
    return FakeFactory(fake_wcl)


@pytest.fixture
async def client(factory):
    """Test client with DI overrides for the WCL factory and auth."""
    app = create_app()
    app.dependency_overrides[get_wcl_factory] = lambda: factory
    app.dependency_overrides[verify_api_key] = lambda: None
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
