"""
FastAPI Application Factory

Wires the cache lifecycle into an application: logging setup and
init_cache() on startup, close_cache() on shutdown, request-id correlation
for every request, the 429 handler, and the health/admin routers.

Usage:
    uvicorn gamehub_cache.api.app:create_app --factory
"""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from gamehub_cache.api.admin_routes import router as admin_router
from gamehub_cache.api.health_routes import router as health_router
from gamehub_cache.core.config.constants import HEADER_REQUEST_ID
from gamehub_cache.core.config.settings import get_settings
from gamehub_cache.core.logging.logger import (
    clear_request_id,
    get_logger,
    set_request_id,
    setup_logging,
)
from gamehub_cache.infrastructure.cache.cache_facade import close_cache, init_cache
from gamehub_cache.rate_limiting.dependencies import setup_rate_limiting

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage the cache lifecycle (startup and shutdown).
    """
    settings = get_settings()
    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    try:
        cache = await init_cache()
        app.state.cache = cache
        logger.info("Application startup complete", backend=cache.backend_name)

        yield

    finally:
        await close_cache()
        logger.info("Application shutdown complete")


async def request_id_middleware(request: Request, call_next):
    """
    Inject request ID into all requests for correlation.
    """
    request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
    set_request_id(request_id)

    try:
        response = await call_next(request)
        response.headers[HEADER_REQUEST_ID] = request_id
        return response

    finally:
        clear_request_id()


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    app = FastAPI(title="GameHub Cache", lifespan=lifespan)

    app.middleware("http")(request_id_middleware)
    setup_rate_limiting(app)

    app.include_router(health_router)
    app.include_router(admin_router)

    return app
