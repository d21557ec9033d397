# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention effectiveness API endpoints.

Example:
    POST /api/v1/interventions/start
    POST /api/v1/interventions/{intervention_id}/evaluate
    GET /api/v1/interventions/lessons/ACADEMIC
    POST /api/v1/interventions/feedback
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from counseltrack.api.dependencies import get_feedback_service, get_intervention_service
from counseltrack.api.schemas import ApiResponse, ok
from counseltrack.domains.intervention.feedback import ParentFeedbackService
from counseltrack.domains.intervention.schemas import (
    EvaluateInterventionRequest,
    InterventionEffectivenessResponse,
    ParentFeedbackResponse,
    SubmitFeedbackRequest,
    TrackInterventionRequest,
    TrackInterventionResponse,
    UpdateFeedbackStatusRequest,
)
from counseltrack.domains.intervention.service import InterventionEffectivenessService
from counseltrack.infrastructure.database.models.intervention import (
    EffectivenessLevel,
    InterventionType,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _records(records: list[Any]) -> list[InterventionEffectivenessResponse]:
    return [InterventionEffectivenessResponse.model_validate(r) for r in records]


@router.post(
    "/start",
    response_model=ApiResponse[TrackInterventionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def start_intervention(
    request: TrackInterventionRequest,
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """Start tracking an intervention and capture baseline metrics."""
    record_id = await service.track_intervention_start(
        intervention_id=request.intervention_id,
        student_id=request.student_id,
        intervention_type=request.intervention_type,
        title=request.title,
        start_date=request.start_date,
    )
    return ok(TrackInterventionResponse(record_id=record_id, intervention_id=request.intervention_id))


@router.post("/{intervention_id}/evaluate", response_model=ApiResponse[dict[str, Any]])
async def evaluate_intervention(
    intervention_id: str,
    request: EvaluateInterventionRequest,
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """End an intervention and compute its effectiveness."""
    analysis = await service.evaluate_intervention_end(
        intervention_id,
        end_date=request.end_date,
        evaluated_by=request.evaluated_by,
    )
    return ok(analysis.to_dict())


@router.post("/{intervention_id}/reevaluate", response_model=ApiResponse[dict[str, Any]])
async def reevaluate_intervention(
    intervention_id: str,
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """Recompute the impact figures from the stored snapshots."""
    impact = await service.reevaluate(intervention_id)
    return ok({"intervention_id": intervention_id, **impact.to_dict()})


@router.get(
    "/effectiveness",
    response_model=ApiResponse[list[InterventionEffectivenessResponse]],
)
async def list_effectiveness(
    student_id: str | None = Query(default=None),
    intervention_id: str | None = Query(default=None),
    level: EffectivenessLevel | None = Query(default=None),
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """List tracking records with optional filters."""
    records = await service.get_effectiveness(
        student_id=student_id,
        intervention_id=intervention_id,
        level=level,
    )
    return ok(_records(records))


@router.get("/effectiveness/stats", response_model=ApiResponse[dict[str, Any]])
async def effectiveness_stats(
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """Aggregate effectiveness statistics."""
    return ok(await service.get_effectiveness_stats())


@router.get(
    "/student/{student_id}",
    response_model=ApiResponse[list[InterventionEffectivenessResponse]],
)
async def student_interventions(
    student_id: str,
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """All tracked interventions of one student."""
    return ok(_records(await service.get_effectiveness(student_id=student_id)))


@router.get(
    "/successful",
    response_model=ApiResponse[list[InterventionEffectivenessResponse]],
)
async def successful_interventions(
    min_effectiveness: float = Query(default=70.0, ge=0, le=100),
    limit: int = Query(default=50, ge=1, le=500),
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """Evaluated interventions at or above a score."""
    records = await service.get_successful_interventions(
        min_effectiveness=min_effectiveness,
        limit=limit,
    )
    return ok(_records(records))


@router.get("/lessons/{intervention_type}", response_model=ApiResponse[dict[str, Any]])
async def lessons_learned(
    intervention_type: InterventionType,
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """What worked and what did not for one intervention type."""
    return ok(await service.get_lessons_learned(intervention_type))


@router.get("/similar/{intervention_type}", response_model=ApiResponse[list[dict[str, Any]]])
async def similar_successes(
    intervention_type: InterventionType,
    limit: int = Query(default=5, ge=1, le=50),
    service: InterventionEffectivenessService = Depends(get_intervention_service),
) -> dict[str, Any]:
    """Best successful interventions of one type."""
    return ok(await service.find_similar_successful_interventions(intervention_type, limit=limit))


# =============================================================================
# Parent feedback
# =============================================================================


def _feedback(records: list[Any]) -> list[ParentFeedbackResponse]:
    return [ParentFeedbackResponse.model_validate(r) for r in records]


@router.post(
    "/feedback",
    response_model=ApiResponse[ParentFeedbackResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_feedback(
    request: SubmitFeedbackRequest,
    service: ParentFeedbackService = Depends(get_feedback_service),
) -> dict[str, Any]:
    """Store feedback from a parent."""
    feedback = await service.create_feedback(request.to_submission())
    return ok(ParentFeedbackResponse.model_validate(feedback))


@router.get(
    "/feedback/student/{student_id}",
    response_model=ApiResponse[list[ParentFeedbackResponse]],
)
async def student_feedback(
    student_id: str,
    service: ParentFeedbackService = Depends(get_feedback_service),
) -> dict[str, Any]:
    """Feedback about one student, newest first."""
    return ok(_feedback(await service.get_feedback_by_student(student_id)))


@router.get("/feedback/pending", response_model=ApiResponse[list[ParentFeedbackResponse]])
async def pending_feedback(
    service: ParentFeedbackService = Depends(get_feedback_service),
) -> dict[str, Any]:
    """Feedback still waiting for staff, oldest first."""
    return ok(_feedback(await service.get_pending_feedback()))


@router.patch(
    "/feedback/{feedback_id}/status",
    response_model=ApiResponse[ParentFeedbackResponse],
)
async def update_feedback_status(
    feedback_id: str,
    request: UpdateFeedbackStatusRequest,
    service: ParentFeedbackService = Depends(get_feedback_service),
) -> dict[str, Any]:
    """Move feedback forward in review."""
    feedback = await service.update_feedback_status(
        feedback_id,
        request.status,
        responded_by=request.responded_by,
        follow_up_notes=request.follow_up_notes,
    )
    return ok(ParentFeedbackResponse.model_validate(feedback))
