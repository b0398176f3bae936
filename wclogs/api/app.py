import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wclogs.api.deps import set_wcl_factory, verify_api_key
from wclogs.api.routes.health import VERSION, set_health_deps
from wclogs.config import get_settings
from wclogs.wcl.factory import WCLFactory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    settings = get_settings()

    # Shared WCL client factory (one auth token + HTTP pool)
    wcl_factory = None
    if settings.has_credentials:
        wcl_factory = WCLFactory(settings)
        await wcl_factory.start()
        logger.info("WCL factory started (shared auth + HTTP pool)")
    else:
        logger.warning(
            "WCL__CLIENT_ID / WCL__CLIENT_SECRET not set; analysis endpoints disabled"
        )
    set_wcl_factory(wcl_factory)
    set_health_deps(wcl_factory=wcl_factory)

    yield

    # Shutdown
    set_wcl_factory(None)
    set_health_deps(wcl_factory=None)
    if wcl_factory is not None:
        await wcl_factory.stop()
        logger.info("WCL factory stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="wclogs combat log analyzer",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:8000"],
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["X-API-Key", "Content-Type"],
    )

    from wclogs.api.routes.analysis import router as analysis_router
    from wclogs.api.routes.health import router as health_router

    # Health router has no auth
    app.include_router(health_router)
    # Protected routers require API key (when configured)
    app.include_router(analysis_router, dependencies=[Depends(verify_api_key)])

    return app
