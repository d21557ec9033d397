# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent feedback model.

Feedback moves forward only:

    NEW -> REVIEWED -> RESPONDED -> CLOSED

Steps may be skipped. CLOSED is final.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from counseltrack.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    enum_column,
)


class FeedbackType(str, Enum):
    """What the feedback is about."""

    INTERVENTION = "INTERVENTION"
    REPORT = "REPORT"
    COMMUNICATION = "COMMUNICATION"
    GENERAL = "GENERAL"
    CONCERN = "CONCERN"
    APPRECIATION = "APPRECIATION"


class FeedbackStatus(str, Enum):
    """Handling state of a piece of feedback."""

    NEW = "NEW"
    REVIEWED = "REVIEWED"
    RESPONDED = "RESPONDED"
    CLOSED = "CLOSED"

    @property
    def rank(self) -> int:
        return list(FeedbackStatus).index(self)


class ParentFeedback(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Feedback a parent gave about their child's support."""

    __tablename__ = "parent_feedback"

    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    parent_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    parent_contact: Mapped[str | None] = mapped_column(String(255), nullable=True)

    feedback_type: Mapped[FeedbackType] = mapped_column(enum_column(FeedbackType), nullable=False)
    related_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_text: Mapped[str] = mapped_column(Text, nullable=False)

    concerns: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    suggestions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    appreciations: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    follow_up_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    follow_up_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[FeedbackStatus] = mapped_column(
        enum_column(FeedbackStatus),
        default=FeedbackStatus.NEW,
        index=True,
        nullable=False,
    )
    responded_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
