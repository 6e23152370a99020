"""
Cognitive level progression.

Rules are evaluated in priority order:

1. regress  - mastery < 40 and level > 1
2. review   - mastery < 60
3. advance  - mastery >= 80, attempts >= 5, calibration error <= 0.3, level < 6
4. maintain - everything else

Advance decisions carry a composite confidence built from the mastery and
attempt surplus, calibration quality and the recent accuracy trend.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from adaptive_tutor.learning_engine.calibration.core import calibration_error
from adaptive_tutor.learning_engine.config import get_progression_defaults
from adaptive_tutor.learning_engine.constants import PerformanceTrend, ProgressionAction
from adaptive_tutor.learning_engine.types import ProgressionDecision, ProgressionMetrics

logger = logging.getLogger(__name__)


@dataclass
class PerformanceWindow:
    """Accuracy over one practice window (a session or a single answer)."""

    attempts: int
    correct: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.attempts if self.attempts else 0.0


@dataclass
class LearnerProgress:
    """Inputs to a progression evaluation for one topic."""

    current_level: int
    total_attempts: int
    mastery_by_level: Mapping[int, float]
    calibration_error: float = 0.0
    history: Sequence[PerformanceWindow] = field(default_factory=list)

    @property
    def current_mastery(self) -> float:
        return self.mastery_by_level.get(self.current_level, 0.0)


@dataclass
class Readiness:
    ready: bool
    reason: str


def calculate_performance_trend(
    history: Sequence[PerformanceWindow],
    params: dict | None = None,
) -> PerformanceTrend:
    """
    Compare mean accuracy of the two halves of the last 10 windows.

    Fewer than 5 windows is always stable.
    """
    p = {**get_progression_defaults(), **(params or {})}
    if len(history) < p["trend_min_history"]:
        return PerformanceTrend.STABLE

    recent = list(history)[-p["trend_window"]:]
    mid = len(recent) // 2
    first, second = recent[:mid], recent[mid:]

    first_accuracy = sum(w.accuracy for w in first) / len(first)
    second_accuracy = sum(w.accuracy for w in second) / len(second)
    change = second_accuracy - first_accuracy

    if change > p["trend_threshold"]:
        return PerformanceTrend.IMPROVING
    if change < -p["trend_threshold"]:
        return PerformanceTrend.DECLINING
    return PerformanceTrend.STABLE


def calculate_advancement_confidence(
    mastery: float,
    attempts: int,
    calibration_err: float,
    trend: PerformanceTrend,
    params: dict | None = None,
) -> float:
    p = {**get_progression_defaults(), **(params or {})}
    confidence = p["decision_confidence"]["advance_base"]

    confidence += min(0.3, (mastery - p["advance_mastery"]) / 100.0)
    confidence += min(0.2, (attempts - p["min_attempts"]) / 20.0)
    confidence += max(0.0, (p["max_calibration_error"] - calibration_err) * 0.5)

    if trend == PerformanceTrend.IMPROVING:
        confidence += 0.1
    elif trend == PerformanceTrend.DECLINING:
        confidence -= 0.1

    return max(p["confidence_min"], min(p["confidence_max"], confidence))


def _maintain_reason(mastery: float, attempts: int, calibration_err: float, level: int, p: dict) -> str:
    reasons = []
    if mastery < p["advance_mastery"]:
        reasons.append(
            f"Mastery ({mastery:.0f}%) has not reached advancement threshold ({p['advance_mastery']:.0f}%)"
        )
    if attempts < p["min_attempts"]:
        reasons.append(f"Need more practice ({attempts}/{p['min_attempts']} attempts)")
    if calibration_err > p["max_calibration_error"]:
        reasons.append(f"Confidence calibration needs improvement (error: {calibration_err * 100:.1f}%)")
    if level >= p["max_level"]:
        reasons.append("Already at maximum level")

    if not reasons:
        return f"Continue practicing at Level {level} to reinforce mastery"
    return "; ".join(reasons)


def evaluate_progression(progress: LearnerProgress, params: dict | None = None) -> ProgressionDecision:
    """
    Decide whether the learner should advance, maintain, review or regress.

    Args:
        progress: Current level, attempts, per-level mastery, calibration and history
        params: Optional overrides merged over get_progression_defaults()

    Returns:
        ProgressionDecision (never persisted here)
    """
    p = {**get_progression_defaults(), **(params or {})}
    level = progress.current_level
    mastery = progress.current_mastery
    attempts = progress.total_attempts
    cal_err = progress.calibration_error
    trend = calculate_performance_trend(progress.history, p)
    metrics = ProgressionMetrics(
        mastery_score=mastery, attempts=attempts, calibration_error=cal_err, trend=trend
    )
    fixed = p["decision_confidence"]

    if mastery < p["regress_mastery"] and level > p["min_level"]:
        decision = ProgressionDecision(
            action=ProgressionAction.REGRESS,
            current_level=level,
            target_level=level - 1,
            reason=(
                f"Mastery ({mastery:.0f}%) is below regression threshold ({p['regress_mastery']:.0f}%). "
                f"Returning to Level {level - 1} to rebuild foundation."
            ),
            confidence=fixed["regress"],
            metrics=metrics,
        )
    elif mastery < p["review_mastery"]:
        decision = ProgressionDecision(
            action=ProgressionAction.REVIEW,
            current_level=level,
            target_level=level,
            reason=(
                f"Mastery ({mastery:.0f}%) is below review threshold ({p['review_mastery']:.0f}%). "
                f"Continue practicing at Level {level}."
            ),
            confidence=fixed["review"],
            metrics=metrics,
        )
    elif (
        mastery >= p["advance_mastery"]
        and attempts >= p["min_attempts"]
        and cal_err <= p["max_calibration_error"]
        and level < p["max_level"]
    ):
        decision = ProgressionDecision(
            action=ProgressionAction.ADVANCE,
            current_level=level,
            target_level=level + 1,
            reason=(
                f"Mastery ({mastery:.0f}%) exceeds advancement threshold ({p['advance_mastery']:.0f}%) "
                f"with {attempts} attempts. Ready for Level {level + 1}."
            ),
            confidence=calculate_advancement_confidence(mastery, attempts, cal_err, trend, p),
            metrics=metrics,
        )
    else:
        decision = ProgressionDecision(
            action=ProgressionAction.MAINTAIN,
            current_level=level,
            target_level=level,
            reason=_maintain_reason(mastery, attempts, cal_err, level, p),
            confidence=fixed["maintain"],
            metrics=metrics,
        )

    logger.info(
        f"Progression: level={level} mastery={mastery:.1f} attempts={attempts} "
        f"cal_err={cal_err:.3f} trend={trend.value} -> {decision.action.value} (L{decision.target_level})"
    )
    return decision


def should_advance_level(progress: LearnerProgress, params: dict | None = None) -> bool:
    return evaluate_progression(progress, params).action == ProgressionAction.ADVANCE


def get_recommended_level(progress: LearnerProgress, params: dict | None = None) -> int:
    """Level to serve next session."""
    return evaluate_progression(progress, params).target_level


def calculate_level_mastery(
    responses: Iterable[tuple[bool, int]],
    params: dict | None = None,
) -> int:
    """
    Mastery for a level from (is_correct, confidence) responses.

    Accuracy minus a calibration penalty of half the mean calibration error,
    capped at 20 points, as a rounded percentage.
    """
    p = {**get_progression_defaults(), **(params or {})}
    responses = list(responses)
    if not responses:
        return 0

    accuracy = sum(1 for correct, _ in responses if correct) / len(responses)
    mean_error = sum(calibration_error(conf, correct) for correct, conf in responses) / len(responses)
    penalty = min(p["calibration_penalty_cap"], mean_error * 0.5)
    return round(max(0.0, min(100.0, (accuracy - penalty) * 100.0)))


def is_ready_for_level(
    progress: LearnerProgress,
    target_level: int,
    params: dict | None = None,
) -> Readiness:
    """Whether the learner may practice at `target_level`."""
    p = {**get_progression_defaults(), **(params or {})}

    if not (p["min_level"] <= target_level <= p["max_level"]):
        return Readiness(False, "Invalid level")

    if target_level == p["min_level"]:
        return Readiness(True, "Level 1 is always accessible")

    previous = target_level - 1
    previous_mastery = progress.mastery_by_level.get(previous, 0.0)
    if previous_mastery < p["advance_mastery"]:
        return Readiness(
            False,
            f"Must achieve {p['advance_mastery']:.0f}% mastery at Level {previous} "
            f"(currently {previous_mastery:.0f}%)",
        )

    if progress.current_level == target_level:
        return Readiness(True, "Currently at this level")

    if target_level > progress.current_level + 1:
        return Readiness(
            False,
            f"Cannot skip levels. Must complete Level {progress.current_level + 1} first",
        )

    return Readiness(True, "Ready to advance")
