# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Escalation API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from counseltrack.infrastructure.database.models.escalation import (
    EscalationRole,
    EscalationStatus,
    EscalationType,
)
from counseltrack.infrastructure.database.models.student import RiskLevel


class TriggerEscalationRequest(BaseModel):
    """Open a new escalation."""

    student_id: str = Field(min_length=1, max_length=64)
    escalation_type: EscalationType
    trigger_reason: str = Field(min_length=1)
    risk_level: RiskLevel | None = None
    alert_id: str | None = Field(default=None, max_length=64)
    intervention_id: str | None = Field(default=None, max_length=64)
    escalated_by: str = Field(default="system", max_length=255)


class TriggerEscalationResponse(BaseModel):
    escalation_id: str


class RespondEscalationRequest(BaseModel):
    """Acknowledge an escalation, optionally resolving it."""

    responded_by: str = Field(min_length=1, max_length=255)
    action_taken: str = Field(min_length=1)
    resolved: bool = False


class CloseEscalationRequest(BaseModel):
    """Close an escalation administratively."""

    closed_by: str = Field(min_length=1, max_length=255)
    resolution: str | None = None


class EscalationResponse(BaseModel):
    """One escalation and its ladder position."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    alert_id: str | None = None
    intervention_id: str | None = None
    escalation_type: EscalationType
    current_level: EscalationRole
    escalated_to: str
    trigger_reason: str
    risk_level: RiskLevel | None = None
    escalated_by: str
    escalated_at: datetime
    level_escalated_at: datetime
    responded_by: str | None = None
    responded_at: datetime | None = None
    response_time_minutes: int | None = None
    action_taken: str | None = None
    resolution: str | None = None
    status: EscalationStatus
    notifications_sent: list[str] = Field(default_factory=list)
