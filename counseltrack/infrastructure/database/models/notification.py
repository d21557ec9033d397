# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification log and template models.

Status lifecycle of a NotificationRecord:

    PENDING -> SENT -> DELIVERED -> READ
        \\         \\
         -> FAILED  -> FAILED

FAILED -> SENT is only taken by an explicit retry.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from counseltrack.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    enum_column,
)


class RecipientType(str, Enum):
    """Who a notification is addressed to."""

    PARENT = "PARENT"
    TEACHER = "TEACHER"
    COUNSELOR = "COUNSELOR"
    ADMIN = "ADMIN"


class NotificationChannel(str, Enum):
    """Delivery medium of a notification."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"
    IN_APP = "IN_APP"


class TemplateChannel(str, Enum):
    """Template channel; ALL resolves to EMAIL when sending."""

    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"
    IN_APP = "IN_APP"
    ALL = "ALL"

    def resolve(self) -> NotificationChannel:
        """Concrete channel used to send with this template."""
        if self is TemplateChannel.ALL:
            return NotificationChannel.EMAIL
        return NotificationChannel(self.value)


class NotificationStatus(str, Enum):
    """Delivery status of a notification record."""

    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    READ = "READ"


class NotificationPriority(str, Enum):
    """Notification urgency."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TemplateCategory(str, Enum):
    """Template grouping."""

    RISK_ALERT = "RISK_ALERT"
    INTERVENTION = "INTERVENTION"
    PROGRESS = "PROGRESS"
    MEETING = "MEETING"
    DIGEST = "DIGEST"
    CUSTOM = "CUSTOM"


# Forward-only transitions. FAILED -> SENT is handled by retry, not here.
ALLOWED_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.PENDING: frozenset({NotificationStatus.SENT, NotificationStatus.FAILED}),
    NotificationStatus.SENT: frozenset({NotificationStatus.DELIVERED, NotificationStatus.FAILED}),
    NotificationStatus.DELIVERED: frozenset({NotificationStatus.READ}),
    NotificationStatus.FAILED: frozenset(),
    NotificationStatus.READ: frozenset(),
}


class NotificationRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One send attempt of a notification."""

    __tablename__ = "notification_logs"

    recipient_type: Mapped[RecipientType] = mapped_column(
        enum_column(RecipientType), nullable=False
    )
    recipient_contact: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    channel: Mapped[NotificationChannel] = mapped_column(
        enum_column(NotificationChannel), nullable=False
    )
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    student_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    alert_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    intervention_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    template_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    extra_data: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )

    status: Mapped[NotificationStatus] = mapped_column(
        enum_column(NotificationStatus),
        default=NotificationStatus.PENDING,
        index=True,
        nullable=False,
    )
    priority: Mapped[NotificationPriority] = mapped_column(
        enum_column(NotificationPriority),
        default=NotificationPriority.NORMAL,
        nullable=False,
    )

    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def can_transition_to(self, status: NotificationStatus) -> bool:
        """Check a forward status transition against the lifecycle."""
        return status in ALLOWED_TRANSITIONS[NotificationStatus(self.status)]


class NotificationTemplate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Reusable subject/message pair with {{placeholder}} variables."""

    __tablename__ = "notification_templates"

    template_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    category: Mapped[TemplateCategory] = mapped_column(
        enum_column(TemplateCategory), nullable=False
    )
    channel: Mapped[TemplateChannel] = mapped_column(enum_column(TemplateChannel), nullable=False)
    subject_template: Mapped[str | None] = mapped_column(String(500), nullable=True)
    message_template: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
