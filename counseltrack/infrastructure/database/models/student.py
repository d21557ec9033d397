# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student source tables read by the metrics snapshot reader.

These tables are owned by the wider student-records system; this
package only reads them (tests and seeds write them directly).
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from counseltrack.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    enum_column,
)
from counseltrack.utils.datetime import utc_now


class RiskLevel(str, Enum):
    """Student risk severity."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AttendanceStatus(str, Enum):
    """Daily attendance status."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"


class AcademicRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Term grade point average for a student (0-4 scale)."""

    __tablename__ = "academic_records"

    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    gpa: Mapped[float | None] = mapped_column(Float, nullable=True)


class BehaviorIncident(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A recorded behavior incident."""

    __tablename__ = "behavior_incidents"

    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    incident_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class AttendanceRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One day of attendance for a student."""

    __tablename__ = "attendance_records"

    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        enum_column(AttendanceStatus),
        nullable=False,
    )


class RiskAssessment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A stored early-warning risk assessment."""

    __tablename__ = "risk_assessments"

    student_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    assessment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    risk_level: Mapped[RiskLevel] = mapped_column(enum_column(RiskLevel), nullable=False)
    overall_risk_score: Mapped[float | None] = mapped_column(Float, nullable=True)
