"""Shared WCL client factory: one auth token, one httpx pool per process."""

import httpx

from wclogs.wcl.auth import WCLAuth
from wclogs.wcl.client import WCLClient


class WCLFactory:
    """Creates WCLClient instances that share auth and the HTTP pool."""

    def __init__(self, settings) -> None:
        self._auth = WCLAuth(
            settings.wcl.client_id,
            settings.wcl.client_secret.get_secret_value(),
            settings.wcl.oauth_url,
        )
        self._api_url = settings.wcl.api_url
        self._timeout = settings.wcl.timeout
        self._pool: httpx.AsyncClient | None = None

    async def start(self) -> None:
        self._pool = httpx.AsyncClient(timeout=self._timeout)

    async def stop(self) -> None:
        if self._pool:
            await self._pool.aclose()
            self._pool = None

    def __call__(self) -> WCLClient:
        """Return a client on the shared pool, or one owning its own pool before start()."""
        return WCLClient(
            self._auth,
            api_url=self._api_url,
            timeout=self._timeout,
            http_client=self._pool,
        )

    async def check(self) -> None:
        """Make sure a token can be obtained; raises on failure."""
        if self._pool is None:
            raise RuntimeError("WCLFactory not started")
        await self._auth.get_token(self._pool)
