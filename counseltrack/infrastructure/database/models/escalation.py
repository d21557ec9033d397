# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Escalation log model.

An escalation walks an unresolved situation up a chain of staff roles.
notifications_sent lists every role notified so far, in order; its last
entry always equals current_level.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from counseltrack.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    enum_column,
)
from counseltrack.infrastructure.database.models.student import RiskLevel
from counseltrack.utils.datetime import utc_now


class EscalationType(str, Enum):
    """What caused the escalation."""

    RISK_INCREASE = "RISK_INCREASE"
    INTERVENTION_FAILURE = "INTERVENTION_FAILURE"
    URGENT_SITUATION = "URGENT_SITUATION"
    NO_RESPONSE = "NO_RESPONSE"
    PARENT_REQUEST = "PARENT_REQUEST"


class EscalationStatus(str, Enum):
    """Escalation lifecycle state."""

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    @property
    def is_terminal(self) -> bool:
        """RESOLVED and CLOSED accept no further transitions."""
        return self in (EscalationStatus.RESOLVED, EscalationStatus.CLOSED)


class EscalationRole(str, Enum):
    """Staff roles on the escalation ladder."""

    COUNSELOR = "Counselor"
    ASSISTANT_PRINCIPAL = "Assistant Principal"
    PRINCIPAL = "Principal"


class EscalationRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One escalated situation and its position on the ladder.

    The version column enables optimistic locking: a concurrent update
    from the sweep and a responder cannot both succeed.
    """

    __tablename__ = "escalation_logs"

    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    alert_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    intervention_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    escalation_type: Mapped[EscalationType] = mapped_column(
        enum_column(EscalationType), nullable=False
    )

    current_level: Mapped[EscalationRole] = mapped_column(
        enum_column(EscalationRole), nullable=False
    )
    escalated_to: Mapped[str] = mapped_column(String(255), nullable=False)
    trigger_reason: Mapped[str] = mapped_column(Text, nullable=False)
    risk_level: Mapped[RiskLevel | None] = mapped_column(enum_column(RiskLevel), nullable=True)
    escalated_by: Mapped[str] = mapped_column(String(255), default="system", nullable=False)

    escalated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    level_escalated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    responded_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action_taken: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[EscalationStatus] = mapped_column(
        enum_column(EscalationStatus),
        default=EscalationStatus.OPEN,
        index=True,
        nullable=False,
    )
    notifications_sent: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
