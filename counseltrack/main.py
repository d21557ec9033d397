# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Command-line entry point for the CounselTrack API server."""

import uvicorn

from counseltrack.core.config import get_settings
from counseltrack.utils.logging import get_logger

logger = get_logger(__name__)


def run() -> None:
    """Serve the API with uvicorn using the API settings."""
    settings = get_settings()
    logger.info(
        "Starting API server",
        host=settings.api.host,
        port=settings.api.port,
        environment=settings.environment,
    )
    uvicorn.run(
        "counseltrack.api.app:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        workers=settings.api.workers,
        reload=settings.api.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
