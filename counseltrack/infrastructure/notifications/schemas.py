# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification API schemas."""

from datetime import date, datetime
from typing import Any, Self

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from counseltrack.infrastructure.database.models.notification import (
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    RecipientType,
    TemplateCategory,
    TemplateChannel,
)
from counseltrack.infrastructure.database.models.student import RiskLevel
from counseltrack.infrastructure.notifications.rules import AlertNotice
from counseltrack.infrastructure.notifications.service import NotificationRequest


class SendNotificationRequest(BaseModel):
    """Send one notification."""

    recipient_type: RecipientType
    recipient_contact: str = Field(min_length=1, max_length=255)
    channel: NotificationChannel
    message: str = Field(min_length=1)
    subject: str | None = Field(default=None, max_length=500)
    recipient_name: str | None = Field(default=None, max_length=255)
    priority: NotificationPriority = NotificationPriority.NORMAL
    student_id: str | None = Field(default=None, max_length=64)
    alert_id: str | None = Field(default=None, max_length=64)
    intervention_id: str | None = Field(default=None, max_length=64)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_request(self) -> NotificationRequest:
        """Convert to the dispatcher's request type."""
        return NotificationRequest(
            recipient_type=self.recipient_type,
            recipient_contact=self.recipient_contact,
            channel=self.channel,
            message=self.message,
            subject=self.subject,
            recipient_name=self.recipient_name,
            priority=self.priority,
            student_id=self.student_id,
            alert_id=self.alert_id,
            intervention_id=self.intervention_id,
            metadata=dict(self.metadata),
        )


class SendBulkRequest(BaseModel):
    """Send several notifications in order."""

    notifications: list[SendNotificationRequest] = Field(min_length=1)


class SendTemplatedRequest(BaseModel):
    """Send a notification rendered from a stored template."""

    template_name: str = Field(min_length=1, max_length=100)
    recipient_contact: str = Field(min_length=1, max_length=255)
    recipient_type: RecipientType
    variables: dict[str, Any] = Field(default_factory=dict)
    recipient_name: str | None = Field(default=None, max_length=255)
    priority: NotificationPriority = NotificationPriority.NORMAL
    student_id: str | None = Field(default=None, max_length=64)
    alert_id: str | None = Field(default=None, max_length=64)
    intervention_id: str | None = Field(default=None, max_length=64)
    metadata: dict[str, Any] = Field(default_factory=dict)


class UpdateStatusRequest(BaseModel):
    """Move a notification forward in its lifecycle."""

    status: NotificationStatus
    failure_reason: str | None = None


class NotificationResponse(BaseModel):
    """One notification record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient_type: RecipientType
    recipient_contact: str
    recipient_name: str | None = None
    channel: NotificationChannel
    subject: str | None = None
    message: str
    student_id: str | None = None
    alert_id: str | None = None
    intervention_id: str | None = None
    template_id: str | None = None
    metadata: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("extra_data", "metadata"),
    )
    status: NotificationStatus
    priority: NotificationPriority
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    failure_reason: str | None = None
    retry_count: int = 0
    created_at: datetime | None = None


class TemplateResponse(BaseModel):
    """One notification template."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    template_name: str
    category: TemplateCategory
    channel: TemplateChannel
    subject_template: str | None = None
    message_template: str
    description: str | None = None
    is_active: bool


CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ParentContactFields(BaseModel):
    """Optional parent name and contact overriding the stored preference."""

    parent_name: str | None = Field(default=None, max_length=255)
    parent_contact: str | None = Field(default=None, max_length=255)


class AlertNotificationRequest(ParentContactFields):
    """A raised alert to apply the notification rules to."""

    alert_id: str = Field(min_length=1, max_length=64)
    student_id: str = Field(min_length=1, max_length=64)
    student_name: str = Field(min_length=1, max_length=255)
    alert_level: RiskLevel
    alert_type: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=255)
    description: str = ""

    def to_notice(self) -> AlertNotice:
        return AlertNotice(**self.model_dump())


class InterventionNotificationRequest(ParentContactFields):
    """An intervention that has just started."""

    intervention_id: str = Field(min_length=1, max_length=64)
    student_id: str = Field(min_length=1, max_length=64)
    student_name: str = Field(min_length=1, max_length=255)
    intervention_title: str = Field(min_length=1, max_length=255)
    start_date: date
    counselor_name: str | None = Field(default=None, max_length=255)


class WeeklyDigestRequest(ParentContactFields):
    """Progress summary for one student's weekly digest."""

    student_name: str = Field(min_length=1, max_length=255)
    progress_summary: str = Field(min_length=1)


class MeetingInvitationRequest(ParentContactFields):
    """Invite a parent to a meeting."""

    student_id: str = Field(min_length=1, max_length=64)
    student_name: str = Field(min_length=1, max_length=255)
    meeting_date: date
    meeting_time: str = Field(pattern=CLOCK_PATTERN, description="HH:MM")
    meeting_topic: str = Field(min_length=1, max_length=255)


class PreferenceRequest(BaseModel):
    """Create or update a notification preference.

    Fields left out keep their stored value.
    """

    user_id: str = Field(min_length=1, max_length=64)
    user_type: RecipientType
    student_id: str | None = Field(default=None, max_length=64)
    email_enabled: bool = True
    sms_enabled: bool = False
    push_enabled: bool = False
    in_app_enabled: bool = True
    email_address: str | None = Field(default=None, max_length=255)
    phone_number: str | None = Field(default=None, max_length=32)
    alert_types: list[str] = Field(default_factory=list)
    risk_levels: list[RiskLevel] = Field(default_factory=list)
    quiet_hours_start: str | None = Field(default=None, pattern=CLOCK_PATTERN)
    quiet_hours_end: str | None = Field(default=None, pattern=CLOCK_PATTERN)
    weekly_digest: bool = True
    monthly_report: bool = True
    language: str = Field(default="en", min_length=2, max_length=8)

    @model_validator(mode="after")
    def check_owner(self) -> Self:
        if self.user_type == RecipientType.PARENT and not self.student_id:
            raise ValueError("A parent preference needs student_id")
        if (self.quiet_hours_start is None) != (self.quiet_hours_end is None):
            raise ValueError("quiet_hours_start and quiet_hours_end go together")
        return self

    def changes(self) -> dict[str, Any]:
        """Fields the caller set, as stored values."""
        return self.model_dump(
            mode="json",
            exclude_unset=True,
            exclude={"user_id", "user_type", "student_id"},
        )


class PreferenceResponse(BaseModel):
    """One stored notification preference."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    user_type: RecipientType
    student_id: str | None = None
    email_enabled: bool
    sms_enabled: bool
    push_enabled: bool
    in_app_enabled: bool
    email_address: str | None = None
    phone_number: str | None = None
    alert_types: list[str]
    risk_levels: list[str]
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None
    weekly_digest: bool
    monthly_report: bool
    language: str
    updated_at: datetime | None = None
