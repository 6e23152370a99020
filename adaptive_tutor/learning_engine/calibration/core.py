"""
Confidence calibration scoring.

A learner states confidence on a 1-5 scale before seeing the result. Confidence
maps to a forecast probability p = confidence / 5, and calibration error is
|p - outcome| where outcome is 1 for a correct answer and 0 otherwise.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from adaptive_tutor.core.errors import require
from adaptive_tutor.learning_engine.config import (
    CALIBRATION_SUGGESTION_BRIER,
    CALIBRATION_SUGGESTION_PATTERN_SHARE,
    get_calibration_defaults,
)
from adaptive_tutor.learning_engine.constants import ConfidenceBias

logger = logging.getLogger(__name__)

# Float noise guard for comparisons against the 0.1 / 0.2 / 0.3 tiers
_ERROR_PRECISION = 10


class ConfidenceResponse(Protocol):
    confidence_level: int
    is_correct: bool


@dataclass
class CalibrationResult:
    confidence_level: int
    was_correct: bool
    calibration_error: float
    is_well_calibrated: bool
    feedback: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence_level": self.confidence_level,
            "was_correct": self.was_correct,
            "calibration_error": round(self.calibration_error, 4),
            "is_well_calibrated": self.is_well_calibrated,
            "feedback": self.feedback,
        }


@dataclass
class BiasReport:
    bias: ConfidenceBias
    magnitude: float
    recommendation: str


@dataclass
class CalibrationCurvePoint:
    confidence_level: int
    expected_accuracy: float
    actual_accuracy: float
    count: int


def _check_confidence(confidence: int) -> None:
    require(
        1 <= confidence <= 5,
        f"Confidence level must be between 1 and 5, got {confidence}",
        confidence_level=confidence,
    )


def calibration_error(confidence: int, was_correct: bool) -> float:
    _check_confidence(confidence)
    forecast = confidence / get_calibration_defaults()["confidence_scale"]
    outcome = 1.0 if was_correct else 0.0
    return round(abs(forecast - outcome), _ERROR_PRECISION)


def _feedback(confidence: int, was_correct: bool, error: float, well_calibrated_error: float) -> str:
    if was_correct and confidence == 5:
        return "Perfect! You were very confident and got it right."
    if was_correct and confidence >= 4:
        return "Well calibrated! Your confidence matched your performance."
    if was_correct and confidence <= 2:
        return (
            "You got it right but were not confident. You may know more than you think, "
            "so build confidence in areas you actually understand."
        )
    if not was_correct and confidence >= 4:
        return (
            "Overconfident. You were very sure but got it wrong, which points to a gap "
            "between perceived and actual knowledge. Review this topic carefully."
        )
    if not was_correct and confidence <= 2:
        return "You correctly identified that you were uncertain. Focus on learning this concept."
    if error <= well_calibrated_error:
        return "Good calibration! Your confidence level matched your actual performance."
    return "Your confidence and performance don't quite match. Try to assess your knowledge more accurately."


def evaluate_confidence_calibration(confidence: int, was_correct: bool) -> CalibrationResult:
    """
    Score a single response's calibration.

    Raises:
        InvalidParameterError: If confidence is outside 1-5
    """
    threshold = get_calibration_defaults()["well_calibrated_error"]
    error = calibration_error(confidence, was_correct)
    return CalibrationResult(
        confidence_level=confidence,
        was_correct=was_correct,
        calibration_error=error,
        is_well_calibrated=error <= threshold,
        feedback=_feedback(confidence, was_correct, error, threshold),
    )


def calculate_overall_calibration_error(responses: Iterable[ConfidenceResponse]) -> float:
    """Mean calibration error across responses; 0 when there are none."""
    errors = [calibration_error(r.confidence_level, r.is_correct) for r in responses]
    if not errors:
        return 0.0
    return sum(errors) / len(errors)


def calculate_brier_score(responses: Iterable[ConfidenceResponse]) -> float:
    """Mean squared forecast error. 0 is perfect, 1 is worst."""
    scale = get_calibration_defaults()["confidence_scale"]
    scores = []
    for r in responses:
        _check_confidence(r.confidence_level)
        outcome = 1.0 if r.is_correct else 0.0
        scores.append((r.confidence_level / scale - outcome) ** 2)
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def detect_confidence_bias(responses: Iterable[ConfidenceResponse]) -> BiasReport:
    """
    Compare mean stated confidence against accuracy.

    A gap above the bias threshold (0.1) is reported as over- or
    underconfidence; empty input is reported as well calibrated.
    """
    responses = list(responses)
    if not responses:
        return BiasReport(ConfidenceBias.WELL_CALIBRATED, 0.0, "Not enough data yet")

    defaults = get_calibration_defaults()
    for r in responses:
        _check_confidence(r.confidence_level)

    mean_confidence = sum(r.confidence_level / defaults["confidence_scale"] for r in responses) / len(responses)
    accuracy = sum(1 for r in responses if r.is_correct) / len(responses)
    difference = round(mean_confidence - accuracy, _ERROR_PRECISION)
    magnitude = abs(difference)
    threshold = defaults["bias_threshold"]

    if difference > threshold:
        return BiasReport(
            ConfidenceBias.OVERCONFIDENT,
            magnitude,
            f"You tend to be {magnitude * 100:.0f}% more confident than your actual performance. "
            "Be more critical when assessing your knowledge.",
        )
    if difference < -threshold:
        return BiasReport(
            ConfidenceBias.UNDERCONFIDENT,
            magnitude,
            f"You tend to be {magnitude * 100:.0f}% less confident than your actual performance. "
            "You know more than you give yourself credit for.",
        )
    return BiasReport(
        ConfidenceBias.WELL_CALIBRATED,
        magnitude,
        "Your confidence levels are well aligned with your actual performance.",
    )


def calculate_calibration_reward(confidence: int, was_correct: bool) -> float:
    """
    Calibration reward in [-0.8, 0.5].

    Small errors earn tiered rewards (0.5, 0.3, 0). Past the last tier the
    penalty grows linearly with the error: full for wrong answers, halved for
    correct but underconfident ones. The result strictly increases with
    confidence on correct answers and strictly decreases on wrong ones.
    """
    defaults = get_calibration_defaults()
    error = calibration_error(confidence, was_correct)

    for max_error, reward in defaults["reward_tiers"]:
        if error <= max_error:
            return reward

    penalty = error - defaults["penalty_pivot"]
    if was_correct:
        penalty /= 2.0
    return round(-penalty, 2)


def get_calibration_curve(responses: Iterable[ConfidenceResponse]) -> list[CalibrationCurvePoint]:
    """Expected vs actual accuracy per confidence level (1-5)."""
    scale = get_calibration_defaults()["confidence_scale"]
    by_level: dict[int, list[bool]] = {level: [] for level in range(1, 6)}
    for r in responses:
        _check_confidence(r.confidence_level)
        by_level[r.confidence_level].append(r.is_correct)

    curve = []
    for level, outcomes in by_level.items():
        actual = sum(outcomes) / len(outcomes) if outcomes else 0.0
        curve.append(
            CalibrationCurvePoint(
                confidence_level=level,
                expected_accuracy=level / scale,
                actual_accuracy=actual,
                count=len(outcomes),
            )
        )
    return curve


def get_calibration_improvement_suggestions(responses: Iterable[ConfidenceResponse]) -> list[str]:
    responses = list(responses)
    bias = detect_confidence_bias(responses)
    brier = calculate_brier_score(responses)
    suggestions: list[str] = []

    if brier > CALIBRATION_SUGGESTION_BRIER.value:
        suggestions.append(
            "Before answering, explicitly think about what you know and what you don't."
        )

    if bias.bias == ConfidenceBias.OVERCONFIDENT:
        suggestions.append('When feeling very confident, double-check your reasoning: "What could I be missing?"')
        suggestions.append("Use confidence 3-4 more often and reserve 5 for material you recently reviewed.")
    elif bias.bias == ConfidenceBias.UNDERCONFIDENT:
        suggestions.append("If you can explain the reasoning, use confidence 4-5.")
        suggestions.append("After a correct low-confidence answer, review why you knew it.")

    share = CALIBRATION_SUGGESTION_PATTERN_SHARE.value
    overconfident_wrong = sum(1 for r in responses if not r.is_correct and r.confidence_level >= 4)
    underconfident_right = sum(1 for r in responses if r.is_correct and r.confidence_level <= 2)

    if overconfident_wrong > len(responses) * share:
        suggestions.append(
            f"You were overconfident on {overconfident_wrong} incorrect answers. "
            "Verify your understanding before committing to high confidence."
        )
    if underconfident_right > len(responses) * share:
        suggestions.append(
            f"You were underconfident on {underconfident_right} correct answers. "
            "Trust your knowledge when you can explain the reasoning."
        )

    if not suggestions:
        suggestions.append(
            "Your calibration is on track. Keep separating guessing, knowing and being certain."
        )

    logger.debug(f"Calibration suggestions: bias={bias.bias.value} brier={brier:.3f} count={len(suggestions)}")
    return suggestions
