# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Health check endpoint."""

import logging
import time
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from counseltrack import __version__
from counseltrack.core.config import get_settings
from counseltrack.infrastructure.background.scheduler import get_scheduler
from counseltrack.infrastructure.database.connection import check_database_connection
from counseltrack.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

# Track server start time for uptime calculation
_server_start_time = time.time()


class ComponentHealth(BaseModel):
    """Individual component health status."""
    status: str = Field(description="Component status")
    latency_ms: float | None = Field(None, description="Response latency in ms")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(description="Overall health status")
    version: str = Field(description="API version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: int = Field(description="Server uptime in seconds")
    checked_at: datetime = Field(description="When health was checked")
    database: ComponentHealth
    llm_available: bool = Field(description="Whether narrative generation can use the LLM")
    scheduler: dict[str, Any] = Field(default_factory=dict)


async def check_database() -> ComponentHealth:
    """Check the database connection."""
    start = time.time()
    reachable = await check_database_connection()
    latency = (time.time() - start) * 1000
    if not reachable:
        return ComponentHealth(status="unhealthy")
    return ComponentHealth(status="healthy", latency_ms=round(latency, 2))


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Report service health.

    Overall status is "degraded" when the database is unreachable.
    """
    settings = get_settings()
    database = await check_database()

    llm_client = getattr(request.app.state, "llm_client", None)
    stats = get_scheduler().get_stats()

    return HealthResponse(
        status="healthy" if database.status == "healthy" else "degraded",
        version=__version__,
        environment=settings.environment,
        uptime_seconds=int(time.time() - _server_start_time),
        checked_at=utc_now(),
        database=database,
        llm_available=bool(llm_client and llm_client.is_available()),
        scheduler={
            "is_running": stats["is_running"],
            "job_count": stats["job_count"],
            "total_errors": stats["total_errors"],
        },
    )
