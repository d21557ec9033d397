# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the CounselTrack API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from counseltrack import __version__
from counseltrack.api.errors import register_exception_handlers
from counseltrack.api.middleware.rate_limit import limiter
from counseltrack.api.routes import health
from counseltrack.api.v1 import router as v1_router
from counseltrack.core.config import get_settings
from counseltrack.core.intelligence.llm import LLMClient
from counseltrack.infrastructure.background import start_scheduler, stop_scheduler
from counseltrack.infrastructure.database.connection import (
    close_database,
    get_session,
    get_sessionmaker,
    init_database,
)
from counseltrack.infrastructure.database.seeds import seed_notification_templates
from counseltrack.infrastructure.notifications.delivery import (
    close_delivery_confirmer,
    init_delivery_confirmer,
)
from counseltrack.utils.logging import bind_context, clear_context, setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup order: logging, database, template seed, delivery confirmer,
    LLM client, scheduler. Shutdown runs in reverse. A failing step is
    logged and the next one still runs.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting CounselTrack API",
        extra={"environment": settings.environment, "debug": settings.debug},
    )

    # =========================================================================
    # Startup
    # =========================================================================

    try:
        await init_database(settings)
        logger.info("Database initialized")
    except Exception as e:
        logger.warning("Failed to initialize database: %s", str(e))

    try:
        async with get_session() as session:
            await seed_notification_templates(session)
    except Exception as e:
        logger.warning("Failed to seed notification templates: %s", str(e))

    try:
        init_delivery_confirmer(
            get_sessionmaker(),
            settings.notification.delivery_confirm_delay_seconds,
        )
    except Exception as e:
        logger.warning("Failed to start delivery confirmer: %s", str(e))

    try:
        app.state.llm_client = LLMClient(llm_settings=settings.llm)
    except Exception as e:
        app.state.llm_client = None
        logger.warning("Failed to create LLM client: %s", str(e))

    try:
        await start_scheduler(settings)
        logger.info("Scheduler started")
    except Exception as e:
        logger.warning("Failed to start scheduler: %s", str(e))

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    # Stop the scheduler first so no sweep runs against a closed pool
    try:
        await stop_scheduler()
        logger.info("Scheduler stopped")
    except Exception as e:
        logger.warning("Error stopping scheduler: %s", str(e))

    try:
        await close_delivery_confirmer()
    except Exception as e:
        logger.warning("Error stopping delivery confirmer: %s", str(e))

    try:
        await close_database()
        logger.info("Database connections closed")
    except Exception as e:
        logger.warning("Error closing database connections: %s", str(e))

    logger.info("Shutting down CounselTrack API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="CounselTrack API",
        description="Escalation ladder and intervention effectiveness tracking",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        redirect_slashes=False,
    )

    # =========================================================================
    # State
    # =========================================================================
    app.state.limiter = limiter
    app.state.llm_client = None

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    # =========================================================================
    # Middleware (order matters - last added is first executed)
    # =========================================================================
    @app.middleware("http")
    async def request_context(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        bind_context(request_id=request_id, path=request.url.path)
        try:
            response = await call_next(request)
        finally:
            clear_context()
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=settings.cors.allow_methods,
        allow_headers=settings.cors.allow_headers,
    )

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
