# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention effectiveness domain.

Captures before/after metrics for student-support interventions, scores
their effect and explains it. Also collects parent feedback.
"""

from counseltrack.domains.intervention.effectiveness import (
    EffectivenessCalculator,
    ImpactResult,
)
from counseltrack.domains.intervention.feedback import (
    FeedbackNotFoundError,
    FeedbackSubmission,
    InvalidFeedbackTransitionError,
    ParentFeedbackService,
)
from counseltrack.domains.intervention.metrics import MetricsSnapshot, MetricsSnapshotReader
from counseltrack.domains.intervention.narrative import (
    AnalysisNarrative,
    AnalysisNarrativeGenerator,
    InterventionContext,
)
from counseltrack.domains.intervention.service import (
    EffectivenessAnalysis,
    InterventionAlreadyEvaluatedError,
    InterventionAlreadyTrackedError,
    InterventionEffectivenessService,
    InterventionNotEvaluatedError,
    InterventionNotFoundError,
    InterventionServiceError,
    InvalidInterventionDatesError,
)

__all__ = [
    "AnalysisNarrative",
    "AnalysisNarrativeGenerator",
    "EffectivenessAnalysis",
    "EffectivenessCalculator",
    "FeedbackNotFoundError",
    "FeedbackSubmission",
    "ImpactResult",
    "InterventionAlreadyEvaluatedError",
    "InterventionAlreadyTrackedError",
    "InterventionContext",
    "InterventionEffectivenessService",
    "InterventionNotEvaluatedError",
    "InterventionNotFoundError",
    "InterventionServiceError",
    "InvalidFeedbackTransitionError",
    "InvalidInterventionDatesError",
    "MetricsSnapshot",
    "MetricsSnapshotReader",
    "ParentFeedbackService",
]
