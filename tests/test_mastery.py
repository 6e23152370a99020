"""
Tests for mastery score updates and practice recency.
"""

from datetime import timedelta

import pytest

from adaptive_tutor.core.errors import InvalidParameterError
from adaptive_tutor.learning_engine.constants import Difficulty
from adaptive_tutor.learning_engine.mastery.core import (
    accuracy_pct,
    apply_response,
    calculate_learning_gain,
    calculate_multi_topic_mastery_updates,
    estimate_difficulty,
    has_met_mastery_requirements,
    practice_recency,
    update_mastery,
)
from tests.helpers import NOW, make_mastery


class TestLearningGain:
    @pytest.mark.parametrize("confidence,rate", [(5, 0.4), (4, 0.4), (3, 0.3), (2, 0.25), (1, 0.25)])
    def test_rate_by_confidence(self, confidence, rate):
        assert calculate_learning_gain(50.0, True, confidence) == pytest.approx(rate * 50.0)

    def test_incorrect_moves_toward_zero(self):
        assert calculate_learning_gain(60.0, False, 5) == pytest.approx(-24.0)

    def test_invalid_confidence_raises(self):
        with pytest.raises(InvalidParameterError):
            calculate_learning_gain(50.0, True, 0)


class TestUpdateMastery:
    def test_clamped_to_range(self):
        assert update_mastery(95.0, 20.0) == 100.0
        assert update_mastery(5.0, -20.0) == 0.0

    def test_weight_scales_gain(self):
        assert update_mastery(50.0, 20.0, weight=0.1) == pytest.approx(52.0)


class TestMasteryRequirements:
    def test_met(self):
        assert has_met_mastery_requirements(80.0, 3) is True

    def test_needs_both_score_and_correct_count(self):
        assert has_met_mastery_requirements(79.9, 10) is False
        assert has_met_mastery_requirements(95.0, 2) is False

    def test_custom_thresholds(self):
        assert has_met_mastery_requirements(60.0, 1, threshold=60.0, min_correct=1) is True


class TestApplyResponse:
    def test_updates_counters_and_timestamp(self):
        record = make_mastery("cells", mastery_score=50.0, attempted=4, correct=2, days_ago=3)

        updated, update = apply_response(record, True, 5, NOW)

        assert updated.mastery_score == pytest.approx(70.0)
        assert updated.questions_attempted == 5
        assert updated.questions_correct == 3
        assert updated.last_practiced_at == NOW
        assert update.old_mastery == 50.0
        assert update.new_mastery == pytest.approx(70.0)
        assert "clamp(50.00 + 20.00, 0, 100) = 70.00" in update.formula

    def test_input_record_not_mutated(self):
        record = make_mastery("cells", mastery_score=50.0)
        apply_response(record, False, 1, NOW)
        assert record.mastery_score == 50.0
        assert record.questions_attempted == 0


class TestMultiTopicUpdates:
    def test_secondary_topics_use_default_weight(self):
        updates = calculate_multi_topic_mastery_updates(
            primary_topic="cells",
            secondary_topics=["membranes"],
            current_mastery={("cells", 1): 50.0, ("membranes", 1): 30.0},
            level=1,
            is_correct=True,
            confidence=5,
        )

        primary, secondary = updates
        assert primary.new_mastery == pytest.approx(70.0)
        assert secondary.weight == pytest.approx(0.1)
        assert secondary.new_mastery == pytest.approx(32.0)

    def test_explicit_secondary_weights(self):
        updates = calculate_multi_topic_mastery_updates(
            "cells", ["membranes"], {}, 2, True, 3, secondary_weights=[0.5]
        )
        assert updates[1].learning_gain == pytest.approx(0.3 * 100.0 * 0.5)


class TestPracticeRecency:
    def test_never(self):
        assert practice_recency(None, NOW).never_practiced is True

    def test_whole_days_floored(self):
        recency = practice_recency(NOW - timedelta(days=2, hours=23), NOW)
        assert recency.days_ago == 2

    def test_practiced_today_is_not_never(self):
        recency = practice_recency(NOW - timedelta(minutes=5), NOW)
        assert recency.never_practiced is False
        assert recency.days_ago == 0

    def test_future_timestamp_counts_as_today(self):
        assert practice_recency(NOW + timedelta(hours=2), NOW).days_ago == 0


class TestHelpers:
    def test_accuracy_pct(self):
        assert accuracy_pct(3, 4) == pytest.approx(75.0)
        assert accuracy_pct(0, 0) == 0.0

    @pytest.mark.parametrize(
        "mastery,level,expected",
        [
            (80.0, 2, Difficulty.EASY),
            (80.0, 5, Difficulty.MEDIUM),
            (50.0, 2, Difficulty.MEDIUM),
            (50.0, 4, Difficulty.HARD),
            (10.0, 1, Difficulty.MEDIUM),
            (10.0, 3, Difficulty.HARD),
        ],
    )
    def test_estimate_difficulty(self, mastery, level, expected):
        assert estimate_difficulty(mastery, level) == expected
