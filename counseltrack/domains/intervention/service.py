# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Intervention effectiveness service.

Tracks an intervention from start to end and measures its effect:

1. track_intervention_start() captures the "pre" metrics snapshot
2. evaluate_intervention_end() captures "post", computes impacts and the
   composite score, asks for a narrative and stores everything
3. reevaluate() recomputes the derived figures from the stored snapshots

Once an intervention has an end date it is never reopened or re-ended.

Usage:
    from counseltrack.domains.intervention import InterventionEffectivenessService

    service = InterventionEffectivenessService(db=db_session)

    record_id = await service.track_intervention_start(
        intervention_id="int-42",
        student_id="stu-7",
        intervention_type=InterventionType.ACADEMIC,
        title="After-school math tutoring",
    )

    analysis = await service.evaluate_intervention_end("int-42", evaluated_by="counselor-1")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from counseltrack.domains.intervention.effectiveness import EffectivenessCalculator, ImpactResult
from counseltrack.domains.intervention.metrics import MetricsSnapshot, MetricsSnapshotReader
from counseltrack.domains.intervention.narrative import (
    AnalysisNarrative,
    AnalysisNarrativeGenerator,
    InterventionContext,
)
from counseltrack.infrastructure.database.models.intervention import (
    EffectivenessLevel,
    InterventionEffectiveness,
    InterventionType,
)
from counseltrack.utils.datetime import ensure_utc, utc_now, whole_days_between

logger = logging.getLogger(__name__)

SUCCESS_THRESHOLD = 70.0
SIMILAR_SUCCESS_LIMIT = 5

SUCCESSFUL_LEVELS = (EffectivenessLevel.VERY_EFFECTIVE, EffectivenessLevel.EFFECTIVE)


class InterventionServiceError(Exception):
    """Base exception for intervention tracking."""

    pass


class InterventionNotFoundError(InterventionServiceError):
    """No intervention is tracked under the given ID."""

    pass


class InterventionAlreadyTrackedError(InterventionServiceError):
    """The intervention ID is already being tracked."""

    pass


class InterventionAlreadyEvaluatedError(InterventionServiceError):
    """The intervention already has an end date."""

    pass


class InterventionNotEvaluatedError(InterventionServiceError):
    """The intervention has not ended yet, so there is nothing to recompute."""

    pass


class InvalidInterventionDatesError(InterventionServiceError):
    """End date precedes start date."""

    pass


@dataclass
class EffectivenessAnalysis:
    """Outcome of evaluating an intervention."""

    intervention_id: str
    record_id: str
    impact: ImpactResult
    narrative: AnalysisNarrative
    duration_days: int
    similar_successes: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API response."""
        return {
            "intervention_id": self.intervention_id,
            "record_id": self.record_id,
            **self.impact.to_dict(),
            "duration_days": self.duration_days,
            "analysis": self.narrative.to_dict(),
            "similar_successes": self.similar_successes,
        }


def _lessons_summary(narrative: AnalysisNarrative) -> str | None:
    lines = narrative.insights + narrative.recommendations
    if not lines:
        return None
    return "\n".join(f"- {line}" for line in lines)


def _impacts_of(record: InterventionEffectiveness) -> dict[str, float | None]:
    return {
        "academic": record.academic_impact,
        "behavioral": record.behavioral_impact,
        "attendance": record.attendance_impact,
        "social_emotional": record.social_emotional_impact,
    }


class InterventionEffectivenessService:
    """Service for tracking and evaluating interventions.

    Attributes:
        db: Async database session.
    """

    def __init__(
        self,
        db: AsyncSession,
        narrative_generator: AnalysisNarrativeGenerator | None = None,
        reader: MetricsSnapshotReader | None = None,
        calculator: EffectivenessCalculator | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            db: Async database session.
            narrative_generator: Produces the analysis prose. Defaults to
                a generator without a text collaborator (rule table only).
            reader: Metrics reader. Defaults to one bound to db.
            calculator: Effectiveness calculator.
        """
        self.db = db
        self._narrative = narrative_generator or AnalysisNarrativeGenerator()
        self._reader = reader or MetricsSnapshotReader(db)
        self._calculator = calculator or EffectivenessCalculator()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def track_intervention_start(
        self,
        intervention_id: str,
        student_id: str,
        intervention_type: InterventionType,
        title: str,
        start_date: datetime | None = None,
    ) -> str:
        """Start tracking an intervention and capture baseline metrics.

        Args:
            intervention_id: External intervention ID.
            student_id: Student receiving the intervention.
            intervention_type: Kind of intervention.
            title: Short description.
            start_date: When it started (default: now).

        Returns:
            ID of the tracking record.

        Raises:
            InterventionAlreadyTrackedError: If the ID is already tracked.
        """
        existing = await self._find(intervention_id)
        if existing is not None:
            raise InterventionAlreadyTrackedError(
                f"Intervention {intervention_id} is already being tracked"
            )

        pre = await self._reader.get_student_metrics(student_id)

        record = InterventionEffectiveness(
            intervention_id=intervention_id,
            student_id=student_id,
            intervention_type=InterventionType(intervention_type),
            title=title,
            start_date=ensure_utc(start_date) or utc_now(),
            pre_metrics=pre.to_dict(),
            effectiveness_level=EffectivenessLevel.PENDING,
            undefined_impacts=[],
            insights=[],
            recommendations=[],
            success_factors=[],
            challenges=[],
        )

        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise InterventionAlreadyTrackedError(
                f"Intervention {intervention_id} is already being tracked"
            ) from e

        logger.info(
            "Tracking intervention %s for student %s (record %s)",
            intervention_id,
            student_id,
            record.id,
        )
        return record.id

    async def evaluate_intervention_end(
        self,
        intervention_id: str,
        end_date: datetime | None = None,
        evaluated_by: str | None = None,
    ) -> EffectivenessAnalysis:
        """End an intervention and measure its effect.

        Args:
            intervention_id: External intervention ID.
            end_date: When it ended (default: now).
            evaluated_by: Who performed the evaluation.

        Returns:
            EffectivenessAnalysis with impacts, narrative and similar
            successful interventions of the same type.

        Raises:
            InterventionNotFoundError: If the intervention is not tracked.
            InterventionAlreadyEvaluatedError: If it already ended.
            InvalidInterventionDatesError: If end_date precedes start_date.
        """
        record = await self._get(intervention_id)
        if not record.is_open:
            raise InterventionAlreadyEvaluatedError(
                f"Intervention {intervention_id} was already evaluated"
            )

        start = ensure_utc(record.start_date)
        end = ensure_utc(end_date) or utc_now()
        if end < start:
            raise InvalidInterventionDatesError(
                f"End date {end.isoformat()} is before start date {start.isoformat()}"
            )

        pre = MetricsSnapshot.from_dict(record.pre_metrics)
        post = await self._reader.get_student_metrics(record.student_id)
        impact = self._calculator.evaluate(pre, post)
        duration = whole_days_between(start, end)

        narrative = await self._narrative.generate(
            InterventionContext(
                title=record.title,
                intervention_type=InterventionType(record.intervention_type).value,
                duration_days=duration,
            ),
            pre,
            post,
            impact,
        )

        record.end_date = end
        record.duration_days = duration
        record.post_metrics = post.to_dict()
        self._apply_impact(record, impact)
        record.insights = list(narrative.insights)
        record.recommendations = list(narrative.recommendations)
        record.success_factors = list(narrative.success_factors)
        record.challenges = list(narrative.challenges)
        record.lessons_learned = _lessons_summary(narrative)
        record.ai_analysis = narrative.to_dict()
        record.evaluated_by = evaluated_by
        record.evaluated_at = utc_now()

        await self.db.commit()

        logger.info(
            "Evaluated intervention %s: %.1f (%s)",
            intervention_id,
            impact.overall_effectiveness,
            impact.effectiveness_level.value,
        )

        similar = await self.find_similar_successful_interventions(
            InterventionType(record.intervention_type),
            exclude_intervention_id=intervention_id,
        )

        return EffectivenessAnalysis(
            intervention_id=intervention_id,
            record_id=record.id,
            impact=impact,
            narrative=narrative,
            duration_days=duration,
            similar_successes=similar,
        )

    async def reevaluate(self, intervention_id: str) -> ImpactResult:
        """Recompute impact fields from the stored snapshots.

        Dates, snapshots and narrative are left untouched.

        Raises:
            InterventionNotFoundError: If the intervention is not tracked.
            InterventionNotEvaluatedError: If it has not ended yet.
        """
        record = await self._get(intervention_id)
        if record.is_open or record.post_metrics is None:
            raise InterventionNotEvaluatedError(
                f"Intervention {intervention_id} has not been evaluated yet"
            )

        impact = self._calculator.evaluate(
            MetricsSnapshot.from_dict(record.pre_metrics),
            MetricsSnapshot.from_dict(record.post_metrics),
        )
        self._apply_impact(record, impact)
        await self.db.commit()

        logger.info("Re-evaluated intervention %s: %.1f", intervention_id, impact.overall_effectiveness)
        return impact

    def _apply_impact(self, record: InterventionEffectiveness, impact: ImpactResult) -> None:
        record.academic_impact = impact.academic
        record.behavioral_impact = impact.behavioral
        record.attendance_impact = impact.attendance
        record.social_emotional_impact = impact.social_emotional
        record.overall_effectiveness = impact.overall_effectiveness
        record.effectiveness_level = impact.effectiveness_level
        record.undefined_impacts = list(impact.undefined_dimensions)

    # =========================================================================
    # Queries
    # =========================================================================

    async def _find(self, intervention_id: str) -> InterventionEffectiveness | None:
        result = await self.db.execute(
            select(InterventionEffectiveness).where(
                InterventionEffectiveness.intervention_id == intervention_id
            )
        )
        return result.scalar_one_or_none()

    async def _get(self, intervention_id: str) -> InterventionEffectiveness:
        record = await self._find(intervention_id)
        if record is None:
            raise InterventionNotFoundError(f"Intervention {intervention_id} is not tracked")
        return record

    async def get_intervention(self, intervention_id: str) -> InterventionEffectiveness:
        """Get the tracking record of one intervention.

        Raises:
            InterventionNotFoundError: If the intervention is not tracked.
        """
        return await self._get(intervention_id)

    async def find_similar_successful_interventions(
        self,
        intervention_type: InterventionType,
        limit: int = SIMILAR_SUCCESS_LIMIT,
        exclude_intervention_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Best evaluated interventions of a type scoring at least 70.

        Returns:
            Summaries ordered by overall effectiveness, best first.
        """
        query = select(InterventionEffectiveness).where(
            InterventionEffectiveness.intervention_type == InterventionType(intervention_type),
            InterventionEffectiveness.overall_effectiveness >= SUCCESS_THRESHOLD,
            InterventionEffectiveness.end_date.is_not(None),
        )
        if exclude_intervention_id is not None:
            query = query.where(InterventionEffectiveness.intervention_id != exclude_intervention_id)

        result = await self.db.execute(
            query.order_by(InterventionEffectiveness.overall_effectiveness.desc()).limit(limit)
        )

        return [
            {
                "intervention_id": record.intervention_id,
                "title": record.title,
                "effectiveness": record.overall_effectiveness,
                "success_factors": list(record.success_factors or []),
                "duration_days": record.duration_days,
                "impacts": _impacts_of(record),
            }
            for record in result.scalars().all()
        ]

    async def get_lessons_learned(self, intervention_type: InterventionType) -> dict[str, Any]:
        """Collect what worked and what did not for one intervention type.

        Returns:
            Dict with success_patterns (EFFECTIVE or better),
            failure_patterns (NOT_EFFECTIVE), avg_effectiveness over the
            successful ones and success_rate over all evaluated ones.
        """
        result = await self.db.execute(
            select(InterventionEffectiveness)
            .where(
                InterventionEffectiveness.intervention_type == InterventionType(intervention_type),
                InterventionEffectiveness.end_date.is_not(None),
            )
            .order_by(InterventionEffectiveness.overall_effectiveness.desc())
        )
        records = list(result.scalars().all())

        successful = [r for r in records if r.effectiveness_level in SUCCESSFUL_LEVELS]
        failed = [r for r in records if r.effectiveness_level == EffectivenessLevel.NOT_EFFECTIVE]

        success_scores = [r.overall_effectiveness for r in successful if r.overall_effectiveness is not None]
        avg_effectiveness = sum(success_scores) / len(success_scores) if success_scores else 0.0
        success_rate = len(successful) / len(records) * 100 if records else 0.0

        return {
            "intervention_type": InterventionType(intervention_type).value,
            "total_evaluated": len(records),
            "success_patterns": [
                {
                    "title": r.title,
                    "success_factors": list(r.success_factors or []),
                    "effectiveness": r.overall_effectiveness,
                }
                for r in successful
            ],
            "failure_patterns": [
                {
                    "title": r.title,
                    "challenges": list(r.challenges or []),
                    "lessons_learned": r.lessons_learned,
                }
                for r in failed
            ],
            "avg_effectiveness": round(avg_effectiveness, 2),
            "success_rate": round(success_rate, 2),
        }

    async def get_effectiveness(
        self,
        student_id: str | None = None,
        intervention_id: str | None = None,
        level: EffectivenessLevel | None = None,
    ) -> list[InterventionEffectiveness]:
        """List tracking records, newest first, with optional filters."""
        query = select(InterventionEffectiveness)
        if student_id is not None:
            query = query.where(InterventionEffectiveness.student_id == student_id)
        if intervention_id is not None:
            query = query.where(InterventionEffectiveness.intervention_id == intervention_id)
        if level is not None:
            query = query.where(InterventionEffectiveness.effectiveness_level == level)

        result = await self.db.execute(query.order_by(InterventionEffectiveness.start_date.desc()))
        return list(result.scalars().all())

    async def get_effectiveness_stats(self) -> dict[str, Any]:
        """Aggregate counts and averages across all tracked interventions."""
        level_rows = await self.db.execute(
            select(InterventionEffectiveness.effectiveness_level, func.count()).group_by(
                InterventionEffectiveness.effectiveness_level
            )
        )
        by_level = {level.value: 0 for level in EffectivenessLevel}
        for level, count in level_rows.all():
            by_level[EffectivenessLevel(level).value] = count

        type_rows = await self.db.execute(
            select(
                InterventionEffectiveness.intervention_type,
                func.count(),
                func.avg(InterventionEffectiveness.overall_effectiveness),
            )
            .where(InterventionEffectiveness.end_date.is_not(None))
            .group_by(InterventionEffectiveness.intervention_type)
        )
        by_type = {
            InterventionType(kind).value: {
                "count": count,
                "avg_effectiveness": round(avg, 2) if avg is not None else None,
            }
            for kind, count, avg in type_rows.all()
        }

        avg_row = await self.db.execute(
            select(func.avg(InterventionEffectiveness.overall_effectiveness)).where(
                InterventionEffectiveness.end_date.is_not(None)
            )
        )
        overall_avg = avg_row.scalar()

        total = sum(by_level.values())
        pending = by_level[EffectivenessLevel.PENDING.value]
        successful = sum(by_level[level.value] for level in SUCCESSFUL_LEVELS)
        evaluated = total - pending

        return {
            "total": total,
            "evaluated": evaluated,
            "pending": pending,
            "avg_effectiveness": round(overall_avg, 2) if overall_avg is not None else None,
            "success_rate": round(successful / evaluated * 100, 2) if evaluated else 0.0,
            "by_level": by_level,
            "by_type": by_type,
        }

    async def get_successful_interventions(
        self,
        min_effectiveness: float = SUCCESS_THRESHOLD,
        limit: int = 50,
    ) -> list[InterventionEffectiveness]:
        """Evaluated interventions scoring at least min_effectiveness, best first."""
        result = await self.db.execute(
            select(InterventionEffectiveness)
            .where(
                InterventionEffectiveness.end_date.is_not(None),
                InterventionEffectiveness.overall_effectiveness >= min_effectiveness,
            )
            .order_by(InterventionEffectiveness.overall_effectiveness.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
