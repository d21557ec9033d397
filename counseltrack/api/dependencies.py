# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

Each request gets its own database session. Services built from the
same request share that session.

Example:
    @router.get("/escalations/active")
    async def list_active(
        service: EscalationService = Depends(get_escalation_service),
    ):
        ...
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from counseltrack.core.intelligence.llm.client import TextGenerator
from counseltrack.domains.escalation.service import EscalationService
from counseltrack.domains.intervention.feedback import ParentFeedbackService
from counseltrack.domains.intervention.narrative import AnalysisNarrativeGenerator
from counseltrack.domains.intervention.service import InterventionEffectivenessService
from counseltrack.infrastructure.database.connection import get_session
from counseltrack.infrastructure.notifications.delivery import get_delivery_confirmer
from counseltrack.infrastructure.notifications.rules import NotificationRulesService
from counseltrack.infrastructure.notifications.service import NotificationDispatcher


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request.

    Yields:
        AsyncSession committed on success, rolled back on error.
    """
    async with get_session() as session:
        yield session


def get_text_generator(request: Request) -> TextGenerator | None:
    """LLM client created at startup, if any."""
    return getattr(request.app.state, "llm_client", None)


def get_narrative_generator(
    text_generator: TextGenerator | None = Depends(get_text_generator),
) -> AnalysisNarrativeGenerator:
    return AnalysisNarrativeGenerator(text_generator)


def get_dispatcher(db: AsyncSession = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db, delivery_confirmer=get_delivery_confirmer())


def get_intervention_service(
    db: AsyncSession = Depends(get_db),
    narrative_generator: AnalysisNarrativeGenerator = Depends(get_narrative_generator),
) -> InterventionEffectivenessService:
    return InterventionEffectivenessService(db, narrative_generator=narrative_generator)


def get_escalation_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> EscalationService:
    return EscalationService(db, dispatcher=dispatcher)


def get_notification_rules(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationRulesService:
    return NotificationRulesService(db, dispatcher)


def get_feedback_service(db: AsyncSession = Depends(get_db)) -> ParentFeedbackService:
    return ParentFeedbackService(db)
