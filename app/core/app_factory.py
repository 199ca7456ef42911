"""Application factory for the FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) so tests can build fresh instances.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import editor_router, health_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import RateLimitTicker, get_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the rate limit ticker for the lifetime of the app."""
    ticker = RateLimitTicker(
        get_rate_limiter(),
        interval_seconds=settings.app.rate_limit_tick_seconds,
    )
    app.state.rate_limit_ticker = ticker
    await ticker.start()
    logger.info("app.started", extra={"app_env": settings.app_env})
    try:
        yield
    finally:
        await ticker.stop()
        logger.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Image Editor API",
        description=(
            "Stage up to three images, describe the image you want or the edit "
            "to apply, and get back an image generated by a Gemini image model. "
            "Generations are rate limited per rolling window; the budget is "
            "persisted across restarts."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(editor_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
