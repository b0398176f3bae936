"""Dependencies shared by the analysis routes."""

import hmac

from fastapi import Depends, HTTPException
from fastapi.security import APIKeyHeader, APIKeyQuery

from wclogs.config import AnalysisConfig, get_settings

# Installed by the app lifespan; None when WCL credentials are missing
_wcl_factory = None

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
_api_key_query = APIKeyQuery(name="api_key", auto_error=False)


def set_wcl_factory(factory) -> None:
    global _wcl_factory
    _wcl_factory = factory


def get_wcl_factory():
    """The shared WCLFactory; 503 while the service runs without credentials."""
    if _wcl_factory is None:
        raise HTTPException(status_code=503, detail="WCL credentials not configured")
    return _wcl_factory


def get_analysis_config() -> AnalysisConfig:
    return get_settings().analysis


async def verify_api_key(
    header_key: str | None = Depends(_api_key_header),
    query_key: str | None = Depends(_api_key_query),
) -> None:
    """Require ``API_KEY`` (header or query) when one is configured."""
    expected = get_settings().api_key
    if not expected:
        return
    supplied = header_key or query_key or ""
    if not hmac.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
