# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the effectiveness calculator."""

import pytest

from counseltrack.domains.intervention.effectiveness import (
    EffectivenessCalculator,
    classify,
    composite_score,
    percent_change,
)
from counseltrack.domains.intervention.metrics import MetricsSnapshot
from counseltrack.infrastructure.database.models.intervention import EffectivenessLevel


def snapshot(academic=60.0, behavior=70.0, attendance=80.0, social=50.0) -> MetricsSnapshot:
    return MetricsSnapshot(
        academic_score=academic,
        behavior_score=behavior,
        attendance_rate=attendance,
        social_emotional_score=social,
    )


@pytest.fixture
def calculator() -> EffectivenessCalculator:
    return EffectivenessCalculator()


class TestPercentChange:
    """Tests for percent_change."""

    def test_increase(self):
        assert percent_change(50.0, 75.0) == pytest.approx(50.0)

    def test_decrease(self):
        assert percent_change(80.0, 60.0) == pytest.approx(-25.0)

    def test_zero_baseline_is_undefined(self):
        assert percent_change(0.0, 40.0) is None


class TestClassify:
    """Tests for level thresholds."""

    @pytest.mark.parametrize(
        ("score", "level"),
        [
            (90.0, EffectivenessLevel.VERY_EFFECTIVE),
            (85.0, EffectivenessLevel.VERY_EFFECTIVE),
            (75.0, EffectivenessLevel.EFFECTIVE),
            (70.0, EffectivenessLevel.EFFECTIVE),
            (55.0, EffectivenessLevel.PARTIALLY_EFFECTIVE),
            (50.0, EffectivenessLevel.PARTIALLY_EFFECTIVE),
            (49.9, EffectivenessLevel.NOT_EFFECTIVE),
            (20.0, EffectivenessLevel.NOT_EFFECTIVE),
        ],
    )
    def test_thresholds(self, score, level):
        """Each score maps to exactly one level."""
        assert classify(score) == level


class TestCompositeScore:
    """Tests for the weighted composite."""

    def test_no_change_scores_fifty(self):
        impacts = {"academic": 0.0, "behavioral": 0.0, "attendance": 0.0, "social_emotional": 0.0}
        assert composite_score(impacts) == 50.0

    def test_single_dimension_weighted_and_halved(self):
        impacts = {"academic": 50.0, "behavioral": 0.0, "attendance": 0.0, "social_emotional": 0.0}
        assert composite_score(impacts) == pytest.approx(57.5)

    def test_clamped_to_upper_bound(self):
        impacts = {"academic": 200.0, "behavioral": 200.0, "attendance": 200.0, "social_emotional": 200.0}
        assert composite_score(impacts) == 100.0

    def test_clamped_to_lower_bound(self):
        impacts = {"academic": -300.0, "behavioral": -300.0, "attendance": -300.0, "social_emotional": -300.0}
        assert composite_score(impacts) == 0.0


class TestEffectivenessCalculator:
    """Tests for EffectivenessCalculator.evaluate."""

    def test_identical_snapshots_are_neutral(self, calculator):
        """No change gives zero impacts and a composite of 50."""
        result = calculator.evaluate(snapshot(), snapshot())

        assert result.impacts == {
            "academic": 0.0,
            "behavioral": 0.0,
            "attendance": 0.0,
            "social_emotional": 0.0,
        }
        assert result.overall_effectiveness == 50.0
        assert result.effectiveness_level == EffectivenessLevel.PARTIALLY_EFFECTIVE
        assert result.undefined_dimensions == ()

    def test_doubled_metrics_are_very_effective(self, calculator):
        """Every metric doubling means +100% each and a composite of 100."""
        result = calculator.evaluate(snapshot(), snapshot(120.0, 140.0, 160.0, 100.0))

        assert result.academic == pytest.approx(100.0)
        assert result.behavioral == pytest.approx(100.0)
        assert result.attendance == pytest.approx(100.0)
        assert result.social_emotional == pytest.approx(100.0)
        assert result.overall_effectiveness == pytest.approx(100.0)
        assert result.effectiveness_level == EffectivenessLevel.VERY_EFFECTIVE

    def test_halved_metrics_are_not_effective(self, calculator):
        result = calculator.evaluate(snapshot(), snapshot(30.0, 35.0, 40.0, 25.0))

        assert result.overall_effectiveness == pytest.approx(25.0)
        assert result.effectiveness_level == EffectivenessLevel.NOT_EFFECTIVE

    def test_impacts_are_not_clamped(self, calculator):
        """Per-dimension impacts may exceed 100 while the composite is clamped."""
        result = calculator.evaluate(snapshot(), snapshot(academic=240.0))

        assert result.academic == pytest.approx(300.0)
        assert result.overall_effectiveness == 95.0

    def test_zero_baseline_counts_as_no_change(self, calculator):
        """A zero baseline is reported as undefined and contributes 0%."""
        result = calculator.evaluate(snapshot(academic=0.0), snapshot(academic=40.0))

        assert result.academic == 0.0
        assert result.undefined_dimensions == ("academic",)
        assert result.overall_effectiveness == 50.0

    def test_snapshots_are_not_modified(self, calculator):
        pre = snapshot()
        post = snapshot(90.0, 70.0, 80.0, 50.0)
        pre_before = pre.to_dict()
        post_before = post.to_dict()

        calculator.evaluate(pre, post)

        assert pre.to_dict() == pre_before
        assert post.to_dict() == post_before

    def test_result_is_deterministic(self, calculator):
        pre = snapshot()
        post = snapshot(75.0, 60.0, 90.0, 55.0)

        assert calculator.evaluate(pre, post) == calculator.evaluate(pre, post)

    def test_to_dict_shape(self, calculator):
        data = calculator.evaluate(snapshot(academic=0.0), snapshot()).to_dict()

        assert set(data) == {
            "impacts",
            "overall_effectiveness",
            "effectiveness_level",
            "undefined_dimensions",
        }
        assert data["effectiveness_level"] == "PARTIALLY_EFFECTIVE"
        assert data["undefined_dimensions"] == ["academic"]
