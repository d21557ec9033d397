# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Effectiveness calculation from pre/post metrics snapshots.

Per-dimension impact is the signed percent change from the baseline:

    impact = (post - pre) / pre * 100

A zero baseline has no defined percent change. Such a dimension counts
as 0% and is listed in ImpactResult.undefined_dimensions.

The composite score weights the four impacts (academic 30%, behavioral
25%, attendance 25%, social-emotional 20%), halves the weighted sum and
centres it on 50, clamped to [0, 100]. No change at all scores 50.
"""

from dataclasses import dataclass, field
from typing import Any

from counseltrack.domains.intervention.metrics import MetricsSnapshot
from counseltrack.infrastructure.database.models.intervention import EffectivenessLevel

ACADEMIC = "academic"
BEHAVIORAL = "behavioral"
ATTENDANCE = "attendance"
SOCIAL_EMOTIONAL = "social_emotional"

# Dimension -> snapshot attribute
DIMENSION_FIELDS: dict[str, str] = {
    ACADEMIC: "academic_score",
    BEHAVIORAL: "behavior_score",
    ATTENDANCE: "attendance_rate",
    SOCIAL_EMOTIONAL: "social_emotional_score",
}

IMPACT_WEIGHTS: dict[str, float] = {
    ACADEMIC: 0.30,
    BEHAVIORAL: 0.25,
    ATTENDANCE: 0.25,
    SOCIAL_EMOTIONAL: 0.20,
}

# Checked top-down; first threshold met wins.
LEVEL_THRESHOLDS: tuple[tuple[float, EffectivenessLevel], ...] = (
    (85.0, EffectivenessLevel.VERY_EFFECTIVE),
    (70.0, EffectivenessLevel.EFFECTIVE),
    (50.0, EffectivenessLevel.PARTIALLY_EFFECTIVE),
)

NEUTRAL_COMPOSITE = 50.0


@dataclass(frozen=True)
class ImpactResult:
    """Computed impacts, composite score and level.

    Attributes:
        academic: Percent change of the academic score.
        behavioral: Percent change of the behavior score.
        attendance: Percent change of the attendance rate.
        social_emotional: Percent change of the social-emotional score.
        overall_effectiveness: Composite score in [0, 100].
        effectiveness_level: Level derived from the composite.
        undefined_dimensions: Dimensions whose baseline was zero.
    """

    academic: float
    behavioral: float
    attendance: float
    social_emotional: float
    overall_effectiveness: float
    effectiveness_level: EffectivenessLevel
    undefined_dimensions: tuple[str, ...] = field(default_factory=tuple)

    @property
    def impacts(self) -> dict[str, float]:
        """Impact per dimension."""
        return {
            ACADEMIC: self.academic,
            BEHAVIORAL: self.behavioral,
            ATTENDANCE: self.attendance,
            SOCIAL_EMOTIONAL: self.social_emotional,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses."""
        return {
            "impacts": self.impacts,
            "overall_effectiveness": self.overall_effectiveness,
            "effectiveness_level": self.effectiveness_level.value,
            "undefined_dimensions": list(self.undefined_dimensions),
        }


def percent_change(pre: float, post: float) -> float | None:
    """Signed percent change, or None when the baseline is zero."""
    if pre == 0:
        return None
    return (post - pre) / pre * 100


def composite_score(impacts: dict[str, float]) -> float:
    """Weighted, centred and clamped composite of the four impacts."""
    weighted = sum(impacts[dimension] * weight for dimension, weight in IMPACT_WEIGHTS.items())
    return max(0.0, min(100.0, NEUTRAL_COMPOSITE + weighted / 2))


def classify(score: float) -> EffectivenessLevel:
    """Map a composite score to its effectiveness level."""
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return EffectivenessLevel.NOT_EFFECTIVE


class EffectivenessCalculator:
    """Turns two snapshots into an ImpactResult. Stateless."""

    def evaluate(self, pre: MetricsSnapshot, post: MetricsSnapshot) -> ImpactResult:
        """Compare pre and post snapshots.

        Args:
            pre: Snapshot taken when the intervention started.
            post: Snapshot taken when it ended.

        Returns:
            ImpactResult. The snapshots are not modified.
        """
        impacts: dict[str, float] = {}
        undefined: list[str] = []

        for dimension, attribute in DIMENSION_FIELDS.items():
            change = percent_change(getattr(pre, attribute), getattr(post, attribute))
            if change is None:
                undefined.append(dimension)
                change = 0.0
            impacts[dimension] = change

        score = composite_score(impacts)

        return ImpactResult(
            academic=impacts[ACADEMIC],
            behavioral=impacts[BEHAVIORAL],
            attendance=impacts[ATTENDANCE],
            social_emotional=impacts[SOCIAL_EMOTIONAL],
            overall_effectiveness=score,
            effectiveness_level=classify(score),
            undefined_dimensions=tuple(undefined),
        )
