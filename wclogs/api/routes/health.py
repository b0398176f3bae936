import logging

import httpx
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from wclogs.wcl.auth import WCLAuthError

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "0.1.0"

_wcl_factory = None


def set_health_deps(wcl_factory=None) -> None:
    global _wcl_factory
    _wcl_factory = wcl_factory


@router.get("/health")
async def health():
    wcl_status = "ok"
    healthy = True

    if _wcl_factory:
        try:
            await _wcl_factory.check()
        except (WCLAuthError, httpx.HTTPError) as e:
            logger.warning("Health check: WCL token unavailable: %s", e)
            wcl_status = "error"
            healthy = False
    else:
        wcl_status = "not configured"
        healthy = False

    body = {
        "status": "ok" if healthy else "degraded",
        "version": VERSION,
        "wcl": wcl_status,
    }
    status_code = 200 if healthy else 503
    return JSONResponse(content=body, status_code=status_code)
