# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Escalation API endpoints.

Example:
    POST /api/v1/escalations
    POST /api/v1/escalations/{escalation_id}/respond
    POST /api/v1/escalations/check-unresponded
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, status

from counseltrack.api.dependencies import get_escalation_service
from counseltrack.api.schemas import ApiResponse, ok
from counseltrack.domains.escalation.schemas import (
    CloseEscalationRequest,
    EscalationResponse,
    RespondEscalationRequest,
    TriggerEscalationRequest,
    TriggerEscalationResponse,
)
from counseltrack.domains.escalation.service import EscalationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[TriggerEscalationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def trigger_escalation(
    request: TriggerEscalationRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """Open an escalation and notify the first rung."""
    escalation_id = await service.trigger_escalation(
        student_id=request.student_id,
        escalation_type=request.escalation_type,
        trigger_reason=request.trigger_reason,
        risk_level=request.risk_level,
        alert_id=request.alert_id,
        intervention_id=request.intervention_id,
        escalated_by=request.escalated_by,
    )
    return ok(TriggerEscalationResponse(escalation_id=escalation_id))


@router.post("/{escalation_id}/respond", response_model=ApiResponse[EscalationResponse])
async def respond_to_escalation(
    escalation_id: str,
    request: RespondEscalationRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """Acknowledge an escalation, optionally resolving it."""
    record = await service.respond_to_escalation(
        escalation_id,
        responded_by=request.responded_by,
        action_taken=request.action_taken,
        resolved=request.resolved,
    )
    return ok(EscalationResponse.model_validate(record))


@router.post("/{escalation_id}/close", response_model=ApiResponse[EscalationResponse])
async def close_escalation(
    escalation_id: str,
    request: CloseEscalationRequest,
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """Close an escalation administratively."""
    record = await service.close_escalation(
        escalation_id,
        closed_by=request.closed_by,
        resolution=request.resolution,
    )
    return ok(EscalationResponse.model_validate(record))


@router.get("/active", response_model=ApiResponse[list[EscalationResponse]])
async def active_escalations(
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """OPEN and IN_PROGRESS escalations."""
    records = await service.get_active_escalations()
    return ok([EscalationResponse.model_validate(r) for r in records])


@router.get("/student/{student_id}", response_model=ApiResponse[list[EscalationResponse]])
async def student_escalations(
    student_id: str,
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """All escalations of one student."""
    records = await service.get_escalations_by_student(student_id)
    return ok([EscalationResponse.model_validate(r) for r in records])


@router.get("/metrics", response_model=ApiResponse[dict[str, Any]])
async def escalation_metrics(
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """Workload and response-time statistics."""
    return ok(await service.get_escalation_metrics())


@router.post("/check-unresponded", response_model=ApiResponse[dict[str, int]])
async def check_unresponded(
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """Run the escalation sweep now."""
    return ok(await service.check_and_escalate_unresponded())


@router.get("/{escalation_id}", response_model=ApiResponse[EscalationResponse])
async def get_escalation(
    escalation_id: str,
    service: EscalationService = Depends(get_escalation_service),
) -> dict[str, Any]:
    """Get one escalation."""
    return ok(EscalationResponse.model_validate(await service.get_escalation(escalation_id)))
