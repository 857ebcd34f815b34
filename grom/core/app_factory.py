"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
rate limiter) so tests can build isolated apps with their own settings.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from grom.api.routes import health_router, toolkit_router
from grom.core.config import Settings, settings as default_settings
from grom.core.exception_handlers import setup_exception_handlers
from grom.core.logging import configure_logging
from grom.core.middleware import request_id_middleware
from grom.core.openapi import apply_openapi_customizations
from grom.core.rate_limit import RateLimit, build_rate_limit, run_reaper

logger = logging.getLogger(__name__)


def _build_lifespan(rate_limit: RateLimit, sweep_interval_seconds: float):
    """Return a lifespan that runs the idle-client sweeper while the app is up."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        reaper: asyncio.Task | None = None
        if rate_limit.enabled and sweep_interval_seconds > 0:
            reaper = asyncio.create_task(run_reaper([rate_limit], sweep_interval_seconds))
            logger.info(
                "rate_limit.reaper_started",
                extra={"interval_s": sweep_interval_seconds},
            )
        try:
            yield
        finally:
            if reaper is not None:
                reaper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await reaper

    return lifespan


def create_app(
    app_settings: Settings | None = None,
    *,
    rate_limit: RateLimit | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; the global settings by default.
        rate_limit: Pre-built limiter (e.g., with a fake clock in tests);
            built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.

    Raises:
        ValueError: If the rate limit configuration is invalid.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    limiter = rate_limit or build_rate_limit(cfg.app)

    app = FastAPI(
        title="Grom",
        description=(
            "Request-processing toolkit for HTTP services: per-client "
            "sliding-window rate limiting, standard response/error envelopes, "
            "payload type checks and correlated JSON logging."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=_build_lifespan(limiter, cfg.app.rate_limit_sweep_interval_seconds),
    )
    app.state.rate_limit = limiter

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(toolkit_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
