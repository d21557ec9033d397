# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student metrics snapshots.

A snapshot condenses a student's current standing into four 0-100
scores plus a risk level:

- academic: mean GPA of the three most recent terms, scaled x25
- behavior: 100 - 10 per incident in the trailing 30 days, floor 0
- attendance: share of non-absent days in the trailing 30 days
- social-emotional: 100 - latest overall risk score

Missing data falls back to a neutral value (50, or 100% attendance).
Reading never fails the caller: a database error in one dimension is
logged and that dimension uses its neutral value.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from counseltrack.infrastructure.database.models.student import (
    AcademicRecord,
    AttendanceRecord,
    AttendanceStatus,
    BehaviorIncident,
    RiskAssessment,
    RiskLevel,
)
from counseltrack.utils.datetime import days_ago, ensure_utc, format_iso, to_date, utc_now

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0
FULL_ATTENDANCE = 100.0
ACADEMIC_TERMS = 3
GPA_TO_SCORE = 25.0
INCIDENT_PENALTY = 10.0
TRAILING_WINDOW_DAYS = 30


def _clamp_score(value: float) -> float:
    return max(0.0, min(100.0, value))


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time student metrics. Immutable once captured.

    Attributes:
        academic_score: 0-100.
        behavior_score: 0-100.
        attendance_rate: 0-100 (percent).
        social_emotional_score: 0-100.
        risk_level: Latest risk level.
        captured_at: When the snapshot was taken.
    """

    academic_score: float
    behavior_score: float
    attendance_rate: float
    social_emotional_score: float
    risk_level: RiskLevel = RiskLevel.MEDIUM
    captured_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON storage."""
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        data["captured_at"] = format_iso(self.captured_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetricsSnapshot":
        """Rebuild a snapshot stored with to_dict()."""
        captured_at = data.get("captured_at")
        return cls(
            academic_score=float(data["academic_score"]),
            behavior_score=float(data["behavior_score"]),
            attendance_rate=float(data["attendance_rate"]),
            social_emotional_score=float(data["social_emotional_score"]),
            risk_level=RiskLevel(data.get("risk_level", RiskLevel.MEDIUM.value)),
            captured_at=ensure_utc(datetime.fromisoformat(captured_at)) if captured_at else None,
        )


class MetricsSnapshotReader:
    """Reads the student source tables into a MetricsSnapshot.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_student_metrics(
        self,
        student_id: str,
        as_of: datetime | None = None,
    ) -> MetricsSnapshot:
        """Capture a snapshot for one student.

        Args:
            student_id: Student to read.
            as_of: End of the trailing windows (default: now).

        Returns:
            MetricsSnapshot. Never raises for missing or unreadable data.
        """
        as_of = ensure_utc(as_of) or utc_now()

        academic = await self._read(
            "academic", student_id, NEUTRAL_SCORE, self._academic_score(student_id)
        )
        behavior = await self._read(
            "behavior", student_id, 100.0, self._behavior_score(student_id, as_of)
        )
        attendance = await self._read(
            "attendance", student_id, FULL_ATTENDANCE, self._attendance_rate(student_id, as_of)
        )
        social_emotional, risk_level = await self._read(
            "risk",
            student_id,
            (NEUTRAL_SCORE, RiskLevel.MEDIUM),
            self._risk_profile(student_id, as_of),
        )

        return MetricsSnapshot(
            academic_score=academic,
            behavior_score=behavior,
            attendance_rate=attendance,
            social_emotional_score=social_emotional,
            risk_level=risk_level,
            captured_at=as_of,
        )

    async def _read(self, dimension: str, student_id: str, default: Any, query: Any) -> Any:
        try:
            return await query
        except SQLAlchemyError as e:
            logger.warning(
                "Could not read %s metrics for student %s, using default: %s",
                dimension,
                student_id,
                str(e),
            )
            return default

    async def _academic_score(self, student_id: str) -> float:
        result = await self.db.execute(
            select(AcademicRecord.gpa)
            .where(
                AcademicRecord.student_id == student_id,
                AcademicRecord.gpa.is_not(None),
            )
            .order_by(AcademicRecord.year.desc(), AcademicRecord.semester.desc())
            .limit(ACADEMIC_TERMS)
        )
        gpas = list(result.scalars().all())
        if not gpas:
            return NEUTRAL_SCORE
        return _clamp_score(sum(gpas) / len(gpas) * GPA_TO_SCORE)

    async def _behavior_score(self, student_id: str, as_of: datetime) -> float:
        window_start = to_date(days_ago(TRAILING_WINDOW_DAYS, as_of))
        result = await self.db.execute(
            select(func.count(BehaviorIncident.id)).where(
                BehaviorIncident.student_id == student_id,
                BehaviorIncident.incident_date >= window_start,
                BehaviorIncident.incident_date <= to_date(as_of),
            )
        )
        incidents = result.scalar() or 0
        return max(0.0, 100.0 - incidents * INCIDENT_PENALTY)

    async def _attendance_rate(self, student_id: str, as_of: datetime) -> float:
        window_start = to_date(days_ago(TRAILING_WINDOW_DAYS, as_of))
        result = await self.db.execute(
            select(AttendanceRecord.status, func.count(AttendanceRecord.id))
            .where(
                AttendanceRecord.student_id == student_id,
                AttendanceRecord.attendance_date >= window_start,
                AttendanceRecord.attendance_date <= to_date(as_of),
            )
            .group_by(AttendanceRecord.status)
        )
        counts = {AttendanceStatus(status): count for status, count in result.all()}
        total = sum(counts.values())
        if total == 0:
            return FULL_ATTENDANCE
        absent = counts.get(AttendanceStatus.ABSENT, 0)
        return (total - absent) / total * 100

    async def _risk_profile(self, student_id: str, as_of: datetime) -> tuple[float, RiskLevel]:
        result = await self.db.execute(
            select(RiskAssessment)
            .where(
                RiskAssessment.student_id == student_id,
                RiskAssessment.assessment_date <= as_of,
            )
            .order_by(RiskAssessment.assessment_date.desc())
            .limit(1)
        )
        assessment = result.scalar_one_or_none()
        if assessment is None:
            return NEUTRAL_SCORE, RiskLevel.MEDIUM

        if assessment.overall_risk_score is None:
            score = NEUTRAL_SCORE
        else:
            score = _clamp_score(100.0 - assessment.overall_risk_score)
        return score, RiskLevel(assessment.risk_level)
