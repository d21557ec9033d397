# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention effectiveness model."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from counseltrack.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    enum_column,
)


class InterventionType(str, Enum):
    """Kinds of student-support intervention."""

    ACADEMIC = "ACADEMIC"
    BEHAVIORAL = "BEHAVIORAL"
    ATTENDANCE = "ATTENDANCE"
    SOCIAL_EMOTIONAL = "SOCIAL_EMOTIONAL"
    FAMILY = "FAMILY"
    HEALTH = "HEALTH"
    CAREER = "CAREER"
    OTHER = "OTHER"


class EffectivenessLevel(str, Enum):
    """Categorical effectiveness derived from the composite score."""

    VERY_EFFECTIVE = "VERY_EFFECTIVE"
    EFFECTIVE = "EFFECTIVE"
    PARTIALLY_EFFECTIVE = "PARTIALLY_EFFECTIVE"
    NOT_EFFECTIVE = "NOT_EFFECTIVE"
    PENDING = "PENDING"


class InterventionEffectiveness(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Before/after tracking of one intervention.

    end_date stays NULL while the intervention is open. Once set it is
    never changed; only the derived impact fields may be recomputed.
    """

    __tablename__ = "intervention_effectiveness"

    intervention_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    intervention_type: Mapped[InterventionType] = mapped_column(
        enum_column(InterventionType), index=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_days: Mapped[int | None] = mapped_column(Integer, nullable=True)

    pre_metrics: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    post_metrics: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    academic_impact: Mapped[float | None] = mapped_column(Float, nullable=True)
    behavioral_impact: Mapped[float | None] = mapped_column(Float, nullable=True)
    attendance_impact: Mapped[float | None] = mapped_column(Float, nullable=True)
    social_emotional_impact: Mapped[float | None] = mapped_column(Float, nullable=True)
    overall_effectiveness: Mapped[float | None] = mapped_column(Float, nullable=True)
    effectiveness_level: Mapped[EffectivenessLevel] = mapped_column(
        enum_column(EffectivenessLevel),
        default=EffectivenessLevel.PENDING,
        index=True,
        nullable=False,
    )
    undefined_impacts: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    insights: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    recommendations: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    success_factors: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    challenges: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    lessons_learned: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_analysis: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    evaluated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    evaluated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_open(self) -> bool:
        """Whether the intervention has not ended yet."""
        return self.end_date is None
