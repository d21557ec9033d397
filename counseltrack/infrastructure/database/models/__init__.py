# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models.

Importing this package registers every table on Base.metadata.
"""

from counseltrack.infrastructure.database.models.base import Base, TimestampMixin, generate_uuid
from counseltrack.infrastructure.database.models.escalation import (
    EscalationRecord,
    EscalationRole,
    EscalationStatus,
    EscalationType,
)
from counseltrack.infrastructure.database.models.feedback import (
    FeedbackStatus,
    FeedbackType,
    ParentFeedback,
)
from counseltrack.infrastructure.database.models.intervention import (
    EffectivenessLevel,
    InterventionEffectiveness,
    InterventionType,
)
from counseltrack.infrastructure.database.models.notification import (
    ALLOWED_TRANSITIONS,
    NotificationChannel,
    NotificationPriority,
    NotificationRecord,
    NotificationStatus,
    NotificationTemplate,
    RecipientType,
    TemplateCategory,
    TemplateChannel,
)
from counseltrack.infrastructure.database.models.preference import NotificationPreference
from counseltrack.infrastructure.database.models.student import (
    AcademicRecord,
    AttendanceRecord,
    AttendanceStatus,
    BehaviorIncident,
    RiskAssessment,
    RiskLevel,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # Escalation
    "EscalationRecord",
    "EscalationRole",
    "EscalationStatus",
    "EscalationType",
    # Parent feedback
    "FeedbackStatus",
    "FeedbackType",
    "ParentFeedback",
    # Intervention
    "EffectivenessLevel",
    "InterventionEffectiveness",
    "InterventionType",
    # Notification
    "ALLOWED_TRANSITIONS",
    "NotificationChannel",
    "NotificationPreference",
    "NotificationPriority",
    "NotificationRecord",
    "NotificationStatus",
    "NotificationTemplate",
    "RecipientType",
    "TemplateCategory",
    "TemplateChannel",
    # Student source tables
    "AcademicRecord",
    "AttendanceRecord",
    "AttendanceStatus",
    "BehaviorIncident",
    "RiskAssessment",
    "RiskLevel",
]
