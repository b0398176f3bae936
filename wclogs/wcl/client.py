import asyncio
import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from wclogs.wcl.auth import WCLAuth

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.warcraftlogs.com/api/v2/client"

MAX_ATTEMPTS = 5
MAX_RETRY_AFTER_SECONDS = 3600
RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})
NETWORK_ERRORS = (httpx.ConnectError, httpx.ReadTimeout)

_backoff = wait_exponential(multiplier=2, min=2, max=120)


class WCLAPIError(Exception):
    """Raised when the WCL GraphQL API answers with errors or no data."""


class RetryableStatusError(httpx.HTTPStatusError):
    """HTTP status the client retries: 429 throttling or a 5xx gateway error."""

    def __init__(self, response: httpx.Response, retry_after: int | None = None):
        super().__init__(
            f"Server returned {response.status_code}",
            request=response.request,
            response=response,
        )
        self.retry_after = retry_after


def _parse_retry_after(response: httpx.Response) -> int | None:
    """Extract Retry-After header as integer seconds, or None."""
    raw = response.headers.get("Retry-After")
    if raw and raw.isdigit():
        return int(raw)
    return None


def _wait_for_retry(retry_state: RetryCallState) -> float:
    exc = retry_state.outcome.exception()
    if isinstance(exc, RetryableStatusError) and exc.retry_after is not None:
        return min(exc.retry_after, MAX_RETRY_AFTER_SECONDS)
    return _backoff(retry_state)


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        "WCL request failed (attempt %d/%d), retrying in %.0fs: %s",
        retry_state.attempt_number,
        MAX_ATTEMPTS,
        retry_state.next_action.sleep if retry_state.next_action else 0,
        retry_state.outcome.exception(),
    )


async def _sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


class WCLClient:
    """Async GraphQL client for the Warcraft Logs v2 API."""

    def __init__(
        self,
        auth: WCLAuth,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self._auth = auth
        self._api_url = api_url
        self._timeout = timeout
        self._http = http_client
        self._owns_http = http_client is None
        self._max_attempts = max_attempts
        self.rate_limit: dict[str, Any] | None = None

    async def __aenter__(self) -> "WCLClient":
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
            self._owns_http = True
        return self

    async def __aexit__(self, *exc: object) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    async def query(
        self,
        graphql_query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute a GraphQL query and return its ``data`` member.

        429 waits for Retry-After (capped at an hour); 502/503/504 and
        connect/read timeouts back off exponentially. A 401 drops the
        cached token so the next attempt re-authenticates.
        """
        if self._http is None:
            raise RuntimeError("Use WCLClient as an async context manager")

        body: dict[str, Any] = {"query": graphql_query}
        if variables:
            body["variables"] = variables

        retrying = AsyncRetrying(
            retry=retry_if_exception_type((RetryableStatusError, *NETWORK_ERRORS)),
            stop=stop_after_attempt(self._max_attempts),
            wait=_wait_for_retry,
            before_sleep=_log_retry,
            sleep=_sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._post(body)

        result = response.json()

        rate_limit = (result.get("extensions") or {}).get("rateLimitData")
        if rate_limit:
            self.rate_limit = rate_limit
            logger.debug(
                "Rate limit: %s/%s points used, resets in %ss",
                rate_limit.get("pointsSpentThisHour"),
                rate_limit.get("limitPerHour"),
                rate_limit.get("pointsResetIn"),
            )

        if result.get("errors"):
            messages = "; ".join(
                e.get("message", "unknown error") for e in result["errors"]
            )
            raise WCLAPIError(f"GraphQL error: {messages}")

        data = result.get("data")
        if data is None:
            raise WCLAPIError("GraphQL response contained no data")
        return data

    async def _post(self, body: dict[str, Any]) -> httpx.Response:
        token = await self._auth.get_token(self._http)
        response = await self._http.post(
            self._api_url,
            json=body,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )

        if response.status_code == 401:
            self._auth.invalidate()
            raise RetryableStatusError(response, retry_after=0)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableStatusError(response, _parse_retry_after(response))
        response.raise_for_status()
        return response
