# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification preference model.

Staff preferences are keyed by (user_type, user_id). A parent's row is
keyed by the student it covers, so the rules engine can find the parent
of a student without a separate family directory.
"""

from sqlalchemy import JSON, Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from counseltrack.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    enum_column,
)
from counseltrack.infrastructure.database.models.notification import RecipientType


class NotificationPreference(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """How and when one user wants to be notified.

    Empty alert_types or risk_levels mean "all". quiet_hours_start and
    quiet_hours_end are "HH:MM" in the school timezone; a window whose
    start is after its end spans midnight.
    """

    __tablename__ = "notification_preferences"
    __table_args__ = (
        UniqueConstraint("user_type", "user_id", "student_id", name="uq_notification_preference_owner"),
    )

    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    user_type: Mapped[RecipientType] = mapped_column(enum_column(RecipientType), nullable=False)
    student_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)

    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    push_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    in_app_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    email_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)

    alert_types: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    risk_levels: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    quiet_hours_start: Mapped[str | None] = mapped_column(String(5), nullable=True)
    quiet_hours_end: Mapped[str | None] = mapped_column(String(5), nullable=True)

    weekly_digest: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    monthly_report: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    language: Mapped[str] = mapped_column(String(8), default="en", nullable=False)
