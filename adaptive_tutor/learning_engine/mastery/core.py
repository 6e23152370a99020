"""
Mastery score updates.

Mastery is a 0-100 score per (user, topic, level) maintained as an exponential
moving average toward 100 (correct) or 0 (incorrect). The step size grows with
the learner's stated confidence: a confident answer is stronger evidence.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from adaptive_tutor.core.errors import require
from adaptive_tutor.learning_engine.config import (
    MASTERY_SCORE_MAX,
    MASTERY_SCORE_MIN,
    get_mastery_defaults,
)
from adaptive_tutor.learning_engine.constants import Difficulty
from adaptive_tutor.learning_engine.types import MasteryRecord, PracticeRecency

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


@dataclass
class MasteryUpdate:
    """Mastery change for one topic at one level."""

    topic_id: str
    level: int
    old_mastery: float
    new_mastery: float
    learning_gain: float
    weight: float = 1.0

    @property
    def formula(self) -> str:
        return (
            f"new = clamp(old + gain, 0, 100) = "
            f"clamp({self.old_mastery:.2f} + {self.learning_gain:.2f}, 0, 100) = {self.new_mastery:.2f}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "level": self.level,
            "old_mastery": round(self.old_mastery, 2),
            "new_mastery": round(self.new_mastery, 2),
            "learning_gain": round(self.learning_gain, 4),
            "weight": self.weight,
        }


def learning_rate_for_confidence(confidence: int, params: dict | None = None) -> float:
    rates = {**get_mastery_defaults(), **(params or {})}["learning_rates"]
    if confidence >= 4:
        return rates["high"]
    if confidence == 3:
        return rates["medium"]
    return rates["low"]


def calculate_learning_gain(
    old_mastery: float,
    is_correct: bool,
    confidence: int,
    params: dict | None = None,
) -> float:
    """
    EMA step from the current mastery toward the response target.

    Args:
        old_mastery: Current mastery score (0-100)
        is_correct: Whether the answer was correct
        confidence: Learner confidence (1-5)
        params: Optional overrides for the learning rates

    Returns:
        Signed change in mastery (before clamping)
    """
    require(1 <= confidence <= 5, f"confidence must be in [1, 5], got {confidence}")
    rate = learning_rate_for_confidence(confidence, params)
    target = MASTERY_SCORE_MAX.value if is_correct else MASTERY_SCORE_MIN.value
    return rate * (target - old_mastery)


def clamp_mastery(score: float) -> float:
    return max(MASTERY_SCORE_MIN.value, min(MASTERY_SCORE_MAX.value, score))


def update_mastery(old_mastery: float, learning_gain: float, weight: float = 1.0) -> float:
    """Apply a weighted gain and clamp to [0, 100]."""
    return clamp_mastery(old_mastery + learning_gain * weight)


def accuracy_pct(questions_correct: int, questions_attempted: int) -> float:
    if questions_attempted <= 0:
        return 0.0
    return questions_correct / questions_attempted * 100.0


def has_met_mastery_requirements(
    mastery_score: float,
    questions_correct: int,
    threshold: float | None = None,
    min_correct: int | None = None,
) -> bool:
    """True when a level is mastered well enough to unlock the next one."""
    defaults = get_mastery_defaults()
    threshold = defaults["unlock_threshold"] if threshold is None else threshold
    min_correct = defaults["unlock_min_correct"] if min_correct is None else min_correct
    return mastery_score >= threshold and questions_correct >= min_correct


def apply_response(
    record: MasteryRecord,
    is_correct: bool,
    confidence: int,
    answered_at: datetime,
    params: dict | None = None,
) -> tuple[MasteryRecord, MasteryUpdate]:
    """Return the updated record and the update that produced it."""
    gain = calculate_learning_gain(record.mastery_score, is_correct, confidence, params)
    new_score = update_mastery(record.mastery_score, gain)
    updated = replace(
        record,
        mastery_score=new_score,
        questions_attempted=record.questions_attempted + 1,
        questions_correct=record.questions_correct + (1 if is_correct else 0),
        last_practiced_at=answered_at,
    )
    update = MasteryUpdate(
        topic_id=record.topic_id,
        level=record.level,
        old_mastery=record.mastery_score,
        new_mastery=new_score,
        learning_gain=gain,
    )
    return updated, update


def calculate_multi_topic_mastery_updates(
    primary_topic: str,
    secondary_topics: list[str] | None,
    current_mastery: dict[tuple[str, int], float],
    level: int,
    is_correct: bool,
    confidence: int,
    primary_weight: float = 1.0,
    secondary_weights: list[float] | None = None,
) -> list[MasteryUpdate]:
    """
    Mastery updates for a question that touches several topics.

    The learning gain is computed once from the primary topic's mastery and
    applied to every topic with its weight. Secondary topics without an
    explicit weight use the default secondary weight (0.1).
    """
    default_secondary = get_mastery_defaults()["secondary_weight"]
    old_primary = current_mastery.get((primary_topic, level), 0.0)
    gain = calculate_learning_gain(old_primary, is_correct, confidence)

    updates = [
        MasteryUpdate(
            topic_id=primary_topic,
            level=level,
            old_mastery=old_primary,
            new_mastery=update_mastery(old_primary, gain, primary_weight),
            learning_gain=gain * primary_weight,
            weight=primary_weight,
        )
    ]

    weights = secondary_weights or []
    for i, topic in enumerate(secondary_topics or []):
        weight = weights[i] if i < len(weights) and weights[i] else default_secondary
        old = current_mastery.get((topic, level), 0.0)
        updates.append(
            MasteryUpdate(
                topic_id=topic,
                level=level,
                old_mastery=old,
                new_mastery=update_mastery(old, gain, weight),
                learning_gain=gain * weight,
                weight=weight,
            )
        )

    logger.debug(
        f"Multi-topic mastery update: primary={primary_topic} L{level} "
        f"secondary={len(updates) - 1} gain={gain:.2f}"
    )
    return updates


def estimate_difficulty(mastery_score: float, level: int) -> Difficulty:
    """Rough difficulty of a level-`level` question for a learner at `mastery_score`."""
    if mastery_score >= 70:
        return Difficulty.MEDIUM if level >= 5 else Difficulty.EASY
    if mastery_score >= 40:
        return Difficulty.HARD if level >= 4 else Difficulty.MEDIUM
    return Difficulty.HARD if level >= 3 else Difficulty.MEDIUM


def practice_recency(last_practiced_at: datetime | None, now: datetime) -> PracticeRecency:
    """
    Whole days since the last practice, floored; `never` when there is none.

    Clock skew that puts the last practice in the future counts as today.
    """
    if last_practiced_at is None:
        return PracticeRecency.never()
    elapsed = (now - last_practiced_at).total_seconds()
    return PracticeRecency.days(max(0, math.floor(elapsed / SECONDS_PER_DAY)))
