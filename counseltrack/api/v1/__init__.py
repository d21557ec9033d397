# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    interventions: Intervention effectiveness tracking and analysis.
    escalations: Escalation ladder, responses and sweeps.
    notifications: Notification dispatch, status and templates.
"""

from fastapi import APIRouter

from counseltrack.api.v1 import escalations, interventions, notifications

router = APIRouter(prefix="/api/v1")

router.include_router(interventions.router, prefix="/interventions", tags=["Interventions"])
router.include_router(escalations.router, prefix="/escalations", tags=["Escalations"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

__all__ = ["router"]
