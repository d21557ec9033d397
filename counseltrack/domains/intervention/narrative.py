# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analysis narrative for evaluated interventions.

Asks the injected text generator for insights, recommendations, success
factors and challenges as a JSON object. When the generator is missing,
unavailable, fails, or replies with something that is not the expected
JSON shape, a small deterministic rule table is used instead. generate()
never raises.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from counseltrack.core.intelligence.llm.client import TextGenerator
from counseltrack.domains.intervention.effectiveness import ImpactResult
from counseltrack.domains.intervention.metrics import MetricsSnapshot

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.3

# The model is asked for camelCase keys; both spellings are accepted.
_KEY_ALIASES = {
    "insights": "insights",
    "recommendations": "recommendations",
    "successFactors": "success_factors",
    "success_factors": "success_factors",
    "challenges": "challenges",
}

SYSTEM_PROMPT = (
    "You are an education specialist who analyses the effectiveness of "
    "student-support interventions and reports concise, practical findings."
)


@dataclass
class InterventionContext:
    """Descriptive facts about the intervention being analysed."""

    title: str
    intervention_type: str
    duration_days: int | None = None


@dataclass
class AnalysisNarrative:
    """Human-readable analysis.

    Attributes:
        insights: Observations about what changed.
        recommendations: Suggested next steps.
        success_factors: What likely contributed to success.
        challenges: What held progress back.
        source: "llm" or "fallback".
    """

    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    success_factors: list[str] = field(default_factory=list)
    challenges: list[str] = field(default_factory=list)
    source: str = "fallback"

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage and API responses."""
        return {
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "success_factors": list(self.success_factors),
            "challenges": list(self.challenges),
            "source": self.source,
        }


def fallback_narrative(impact: ImpactResult) -> AnalysisNarrative:
    """Rule-based narrative used whenever the text generator cannot help."""
    insights: list[str] = []
    recommendations: list[str] = []

    if impact.academic > 10:
        insights.append("Academic performance improved notably")
    if impact.behavioral > 10:
        insights.append("Behavioral development was recorded")
    if impact.attendance > 5:
        insights.append("Attendance rate increased")

    if impact.academic < 0:
        recommendations.append("Review the academic support strategies")
    if impact.behavioral < 0:
        recommendations.append("Reassess the behavior management approach")

    return AnalysisNarrative(
        insights=insights,
        recommendations=recommendations,
        source="fallback",
    )


def parse_narrative(reply: str) -> AnalysisNarrative | None:
    """Parse a generator reply into a narrative.

    Accepts a bare JSON object or one wrapped in prose or a code fence.

    Returns:
        AnalysisNarrative, or None when the reply is not a JSON object
        with at least one list-of-strings narrative field.
    """
    if not reply:
        return None

    start = reply.find("{")
    end = reply.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        data = json.loads(reply[start : end + 1])
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None

    fields: dict[str, list[str]] = {}
    for key, value in data.items():
        target = _KEY_ALIASES.get(key)
        if target is None:
            continue
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            return None
        fields[target] = [item.strip() for item in value if item.strip()]

    if not fields:
        return None

    return AnalysisNarrative(source="llm", **fields)


def build_analysis_prompt(
    context: InterventionContext,
    pre: MetricsSnapshot,
    post: MetricsSnapshot,
    impact: ImpactResult,
) -> str:
    """Render the user prompt describing the intervention outcome."""
    duration = f"{context.duration_days} days" if context.duration_days is not None else "ongoing"
    return f"""Intervention effectiveness analysis

Intervention: {context.title}
Type: {context.intervention_type}
Duration: {duration}

Before:
- Academic score: {pre.academic_score:.1f}
- Behavior score: {pre.behavior_score:.1f}
- Attendance rate: {pre.attendance_rate:.1f}%
- Social-emotional: {pre.social_emotional_score:.1f}

After:
- Academic score: {post.academic_score:.1f}
- Behavior score: {post.behavior_score:.1f}
- Attendance rate: {post.attendance_rate:.1f}%
- Social-emotional: {post.social_emotional_score:.1f}

Impact:
- Academic: {impact.academic:.1f}%
- Behavioral: {impact.behavioral:.1f}%
- Attendance: {impact.attendance:.1f}%
- Social-emotional: {impact.social_emotional:.1f}%
- Overall effectiveness: {impact.overall_effectiveness:.1f}/100 ({impact.effectiveness_level.value})

Reply with JSON only:
{{
  "insights": ["..."],
  "recommendations": ["..."],
  "successFactors": ["..."],
  "challenges": ["..."]
}}"""


class AnalysisNarrativeGenerator:
    """Produces an AnalysisNarrative, preferring the text generator.

    Attributes:
        temperature: Sampling temperature passed to the generator.
    """

    def __init__(
        self,
        text_generator: TextGenerator | None = None,
        temperature: float = ANALYSIS_TEMPERATURE,
    ) -> None:
        """Initialize the generator.

        Args:
            text_generator: Collaborator used for prose; None means always
                use the rule table.
            temperature: Sampling temperature.
        """
        self._text_generator = text_generator
        self.temperature = temperature

    async def generate(
        self,
        context: InterventionContext,
        pre: MetricsSnapshot,
        post: MetricsSnapshot,
        impact: ImpactResult,
    ) -> AnalysisNarrative:
        """Build the narrative for an evaluated intervention.

        Args:
            context: Intervention description.
            pre: Baseline snapshot.
            post: Outcome snapshot.
            impact: Computed impacts.

        Returns:
            AnalysisNarrative from the generator or the rule table.
        """
        if self._text_generator is None:
            return fallback_narrative(impact)

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_analysis_prompt(context, pre, post, impact)},
        ]

        try:
            if not self._text_generator.is_available():
                logger.debug("Text generator unavailable, using fallback analysis")
                return fallback_narrative(impact)
            reply = await self._text_generator.chat(messages, temperature=self.temperature)
        except Exception as e:
            logger.warning("Narrative generation failed, using fallback analysis: %s", str(e))
            return fallback_narrative(impact)

        narrative = parse_narrative(reply)
        if narrative is None:
            logger.warning("Narrative reply was not valid JSON, using fallback analysis")
            return fallback_narrative(impact)

        return narrative
