"""
Tests for confidence calibration scoring.
"""

from dataclasses import dataclass

import pytest

from adaptive_tutor.core.errors import InvalidParameterError
from adaptive_tutor.learning_engine.calibration.core import (
    calculate_brier_score,
    calculate_calibration_reward,
    calculate_overall_calibration_error,
    detect_confidence_bias,
    evaluate_confidence_calibration,
    get_calibration_curve,
    get_calibration_improvement_suggestions,
)
from adaptive_tutor.learning_engine.constants import ConfidenceBias


@dataclass
class Answer:
    confidence_level: int
    is_correct: bool


class TestEvaluateConfidenceCalibration:
    def test_confident_and_wrong(self):
        """Confidence 5 on a wrong answer is maximally miscalibrated."""
        result = evaluate_confidence_calibration(5, False)

        assert result.calibration_error == pytest.approx(1.0)
        assert result.is_well_calibrated is False
        assert calculate_calibration_reward(5, False) == pytest.approx(-0.8)

    def test_confident_and_right(self):
        result = evaluate_confidence_calibration(5, True)
        assert result.calibration_error == 0.0
        assert result.is_well_calibrated is True
        assert "Perfect" in result.feedback

    def test_boundary_is_well_calibrated(self):
        """Error of exactly 0.2 still counts as well calibrated."""
        assert evaluate_confidence_calibration(4, True).is_well_calibrated is True
        assert evaluate_confidence_calibration(1, False).is_well_calibrated is True

    def test_underconfident_feedback(self):
        result = evaluate_confidence_calibration(1, True)
        assert result.is_well_calibrated is False
        assert "not confident" in result.feedback

    @pytest.mark.parametrize("confidence", [0, 6, -1])
    def test_out_of_range_confidence_raises(self, confidence):
        with pytest.raises(InvalidParameterError):
            evaluate_confidence_calibration(confidence, True)


class TestCalibrationReward:
    @pytest.mark.parametrize(
        "confidence,expected", [(1, 0.3), (2, -0.2), (3, -0.4), (4, -0.6), (5, -0.8)]
    )
    def test_incorrect_table(self, confidence, expected):
        assert calculate_calibration_reward(confidence, False) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "confidence,expected", [(1, -0.3), (2, -0.2), (3, -0.1), (4, 0.3), (5, 0.5)]
    )
    def test_correct_table(self, confidence, expected):
        assert calculate_calibration_reward(confidence, True) == pytest.approx(expected)

    def test_monotone_in_confidence(self):
        correct = [calculate_calibration_reward(c, True) for c in range(1, 6)]
        incorrect = [calculate_calibration_reward(c, False) for c in range(1, 6)]

        assert all(a < b for a, b in zip(correct, correct[1:]))
        assert all(a > b for a, b in zip(incorrect, incorrect[1:]))

    def test_range(self):
        values = [calculate_calibration_reward(c, ok) for c in range(1, 6) for ok in (True, False)]
        assert min(values) == pytest.approx(-0.8)
        assert max(values) == pytest.approx(0.5)


class TestAggregates:
    def test_empty_inputs(self):
        assert calculate_overall_calibration_error([]) == 0.0
        assert calculate_brier_score([]) == 0.0

    def test_overall_error_is_mean(self):
        answers = [Answer(5, True), Answer(5, False)]
        assert calculate_overall_calibration_error(answers) == pytest.approx(0.5)

    def test_brier_score(self):
        # (1.0 - 1)^2 = 0 and (0.6 - 0)^2 = 0.36
        answers = [Answer(5, True), Answer(3, False)]
        assert calculate_brier_score(answers) == pytest.approx(0.18)


class TestDetectConfidenceBias:
    def test_empty_is_well_calibrated(self):
        report = detect_confidence_bias([])
        assert report.bias == ConfidenceBias.WELL_CALIBRATED
        assert report.magnitude == 0.0

    def test_overconfident(self):
        answers = [Answer(5, False)] * 3 + [Answer(5, True)]
        report = detect_confidence_bias(answers)
        assert report.bias == ConfidenceBias.OVERCONFIDENT
        assert report.magnitude == pytest.approx(0.75)

    def test_underconfident(self):
        answers = [Answer(1, True)] * 4
        report = detect_confidence_bias(answers)
        assert report.bias == ConfidenceBias.UNDERCONFIDENT
        assert report.magnitude == pytest.approx(0.8)

    def test_gap_at_threshold_is_well_calibrated(self):
        # mean confidence 0.6, accuracy 0.5 -> gap exactly 0.1
        answers = [Answer(3, True), Answer(3, False)]
        assert detect_confidence_bias(answers).bias == ConfidenceBias.WELL_CALIBRATED


class TestCalibrationCurve:
    def test_buckets_per_confidence(self):
        answers = [Answer(5, True), Answer(5, False), Answer(2, True)]
        curve = {p.confidence_level: p for p in get_calibration_curve(answers)}

        assert len(curve) == 5
        assert curve[5].count == 2
        assert curve[5].actual_accuracy == pytest.approx(0.5)
        assert curve[5].expected_accuracy == pytest.approx(1.0)
        assert curve[2].actual_accuracy == pytest.approx(1.0)
        assert curve[3].count == 0


class TestImprovementSuggestions:
    def test_overconfident_learner(self):
        answers = [Answer(5, False)] * 5
        suggestions = get_calibration_improvement_suggestions(answers)
        assert any("double-check" in s for s in suggestions)
        assert any("overconfident on 5" in s for s in suggestions)

    def test_well_calibrated_learner(self):
        answers = [Answer(5, True)] * 4 + [Answer(1, False)] * 4
        suggestions = get_calibration_improvement_suggestions(answers)
        assert len(suggestions) == 1
        assert "on track" in suggestions[0]
