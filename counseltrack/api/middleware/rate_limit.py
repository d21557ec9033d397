# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rate limiting using slowapi.

Limits are applied per client IP address. The default limit comes from
RATE_LIMIT_REQUESTS_PER_MINUTE and is enforced by SlowAPIMiddleware.

Example:
    @limiter.limit("10/minute")
    async def send_bulk(request: Request, ...):
        ...
"""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from counseltrack.core.config import get_settings

logger = logging.getLogger(__name__)


def get_client_identifier(request: Request) -> str:
    """Identify the client by IP address."""
    return f"ip:{get_remote_address(request)}"


def create_limiter() -> Limiter:
    """Create a limiter from the current settings."""
    settings = get_settings()
    return Limiter(
        key_func=get_client_identifier,
        default_limits=[f"{settings.rate_limit.requests_per_minute}/minute"],
        storage_uri=settings.rate_limit.storage_uri,
    )


limiter = create_limiter()
