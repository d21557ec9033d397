# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from counseltrack.domains.intervention.feedback import FeedbackSubmission
from counseltrack.infrastructure.database.models.feedback import FeedbackStatus, FeedbackType
from counseltrack.infrastructure.database.models.intervention import (
    EffectivenessLevel,
    InterventionType,
)


class TrackInterventionRequest(BaseModel):
    """Start tracking an intervention."""

    intervention_id: str = Field(min_length=1, max_length=64)
    student_id: str = Field(min_length=1, max_length=64)
    intervention_type: InterventionType
    title: str = Field(min_length=1, max_length=255)
    start_date: datetime | None = Field(
        default=None,
        description="When the intervention started. Defaults to now.",
    )


class TrackInterventionResponse(BaseModel):
    """Identifiers of a newly tracked intervention."""

    record_id: str
    intervention_id: str


class EvaluateInterventionRequest(BaseModel):
    """End an intervention and measure its effect."""

    end_date: datetime | None = Field(
        default=None,
        description="When the intervention ended. Defaults to now.",
    )
    evaluated_by: str | None = Field(default=None, max_length=255)


class InterventionEffectivenessResponse(BaseModel):
    """Tracking record of one intervention."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    intervention_id: str
    student_id: str
    intervention_type: InterventionType
    title: str
    start_date: datetime
    end_date: datetime | None = None
    duration_days: int | None = None
    pre_metrics: dict[str, Any]
    post_metrics: dict[str, Any] | None = None
    academic_impact: float | None = None
    behavioral_impact: float | None = None
    attendance_impact: float | None = None
    social_emotional_impact: float | None = None
    overall_effectiveness: float | None = None
    effectiveness_level: EffectivenessLevel
    undefined_impacts: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    success_factors: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)
    lessons_learned: str | None = None
    evaluated_by: str | None = None
    evaluated_at: datetime | None = None
    created_at: datetime | None = None


class SubmitFeedbackRequest(BaseModel):
    """Feedback from a parent."""

    student_id: str = Field(min_length=1, max_length=64)
    feedback_type: FeedbackType
    feedback_text: str = Field(min_length=1)
    parent_name: str | None = Field(default=None, max_length=255)
    parent_contact: str | None = Field(default=None, max_length=255)
    related_id: str | None = Field(
        default=None,
        max_length=64,
        description="Intervention or report the feedback is about.",
    )
    rating: int | None = Field(default=None, ge=1, le=5)
    concerns: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    appreciations: list[str] = Field(default_factory=list)
    follow_up_required: bool = False
    follow_up_notes: str | None = None

    def to_submission(self) -> FeedbackSubmission:
        return FeedbackSubmission(**self.model_dump())


class UpdateFeedbackStatusRequest(BaseModel):
    """Move feedback forward in review."""

    status: FeedbackStatus
    responded_by: str | None = Field(default=None, max_length=255)
    follow_up_notes: str | None = None


class ParentFeedbackResponse(BaseModel):
    """One piece of parent feedback."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    parent_name: str | None = None
    parent_contact: str | None = None
    feedback_type: FeedbackType
    related_id: str | None = None
    rating: int | None = None
    feedback_text: str
    concerns: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    appreciations: list[str] = Field(default_factory=list)
    follow_up_required: bool
    follow_up_notes: str | None = None
    status: FeedbackStatus
    responded_by: str | None = None
    responded_at: datetime | None = None
    created_at: datetime | None = None
