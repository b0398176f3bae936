import asyncio
import logging
import time

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# Refresh this many seconds before the token actually expires
EXPIRY_MARGIN_SECONDS = 60


class WCLAuthError(Exception):
    """Raised when the OAuth2 client-credentials exchange fails."""


def _is_server_error(response: httpx.Response) -> bool:
    return response.status_code >= 500


class WCLAuth:
    """Client-credentials token holder shared by every WCLClient of a run.

    Concurrent callers that find the token expired wait on one refresh
    instead of each posting to the token endpoint.
    """

    def __init__(self, client_id: str, client_secret: str, oauth_url: str) -> None:
        if not client_id or not client_secret:
            raise WCLAuthError("client_id and client_secret are required")
        self._client_id = client_id
        self._client_secret = client_secret
        self._oauth_url = oauth_url
        self._token: str | None = None
        self._expires_at: float = 0
        self._refresh_lock = asyncio.Lock()

    @property
    def is_valid(self) -> bool:
        return self._token is not None and time.monotonic() < self._expires_at

    async def get_token(self, client: httpx.AsyncClient) -> str:
        if self.is_valid:
            return self._token

        async with self._refresh_lock:
            # Another task may have refreshed while we waited
            if self.is_valid:
                return self._token

            response = await self._request_token(client)
            if response.status_code >= 400:
                raise WCLAuthError(
                    f"authentication failed with status {response.status_code}: "
                    f"{response.text}"
                )

            try:
                data = response.json()
                token = data["access_token"]
                expires_in = int(data["expires_in"])
            except (ValueError, KeyError) as exc:
                raise WCLAuthError(f"malformed token response: {exc}") from exc

            self._token = token
            self._expires_at = (
                time.monotonic() + expires_in - EXPIRY_MARGIN_SECONDS
            )
            logger.info("Obtained new WCL access token, expires in %ds", expires_in)
            return self._token

    def invalidate(self) -> None:
        """Forget the cached token so the next request fetches a new one."""
        self._token = None
        self._expires_at = 0

    @retry(
        retry=(
            retry_if_result(_is_server_error)
            | retry_if_exception_type((httpx.ConnectError, httpx.ReadTimeout))
        ),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    async def _request_token(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            self._oauth_url,
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
        )
