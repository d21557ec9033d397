# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware."""

from counseltrack.api.middleware.rate_limit import create_limiter, limiter

__all__ = ["create_limiter", "limiter"]
