"""
Multi-component reward for a learner response.

The raw reward is the unclamped sum of six components:

- learning_gain: mastery change scaled to +/-10
- calibration: agreement between stated confidence and correctness
- spacing: bonus for a correct answer after a retention gap
- recognition: how the learner retrieved the answer
- response_time: thinking time relative to level/format thresholds
- streak: consecutive correct answers

normalize_reward maps the total into [0, 1] for the Beta posterior update.
"""

import logging
import re

from adaptive_tutor.core.errors import require
from adaptive_tutor.learning_engine.config import get_reward_defaults
from adaptive_tutor.learning_engine.constants import RecognitionMethod
from adaptive_tutor.learning_engine.types import (
    PracticeRecency,
    ResponseEvent,
    RewardComponents,
)

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\S+")

_RECOGNITION_REWARDS = {
    # method: (correct, incorrect)
    RecognitionMethod.MEMORY: (3.0, -4.0),
    RecognitionMethod.RECOGNITION: (2.0, -3.0),
    RecognitionMethod.EDUCATED_GUESS: (1.0, -2.0),
    RecognitionMethod.RANDOM: (0.0, -1.0),
}


def learning_gain_reward(learning_gain: float, params: dict | None = None) -> float:
    p = {**get_reward_defaults(), **(params or {})}
    cap = p["learning_gain_cap"]
    return max(-cap, min(cap, learning_gain / p["learning_gain_scale"]))


def calibration_component(is_correct: bool, confidence: int) -> float:
    """Confidence/correctness agreement: +1..+3 when correct, -1..-3 when wrong."""
    if is_correct:
        if confidence >= 4:
            return 3.0
        if confidence == 3:
            return 2.0
        return 1.0
    if confidence <= 2:
        return -1.0
    if confidence == 3:
        return -2.0
    return -3.0


def spacing_reward(is_correct: bool, recency: PracticeRecency) -> float:
    """Retention bonus. Never-practiced arms have no interval to reward."""
    if not is_correct or recency.never_practiced:
        return 0.0
    days = recency.days_ago
    if days >= 7:
        return 5.0
    if days >= 3:
        return 3.0
    if days >= 1:
        return 1.0
    return 0.0


def recognition_reward(is_correct: bool, method: RecognitionMethod | str | None) -> float:
    if method is None:
        return 0.0
    correct, incorrect = _RECOGNITION_REWARDS[RecognitionMethod(method)]
    return correct if is_correct else incorrect


def count_words(text: str) -> int:
    return len(_WORD_RE.findall(text or ""))


def estimate_reading_seconds(
    question_text: str,
    options: list[str] | None = None,
    params: dict | None = None,
) -> float:
    """Seconds needed to read the question and its options at 220 wpm."""
    p = {**get_reward_defaults(), **(params or {})}
    words = count_words(question_text) + sum(count_words(o) for o in options or [])
    return words / p["reading_wpm"] * 60.0


def response_time_thresholds(
    level: int,
    question_format: str | None,
    params: dict | None = None,
) -> tuple[float, float, float]:
    """(fluent, good, slow) thinking-time thresholds scaled by the format modifier."""
    p = {**get_reward_defaults(), **(params or {})}
    fluent, good, slow = p["response_time_thresholds"][level]
    fmt = getattr(question_format, "value", question_format)
    modifier = p["format_modifiers"].get(fmt, 1.0) if fmt else 1.0
    return fluent * modifier, good * modifier, slow * modifier


def response_time_reward(event: ResponseEvent, params: dict | None = None) -> float:
    """
    Reward fluent answers, penalize rushed wrong answers.

    Thinking time is the response time minus the estimated reading time. Missing
    response time scores 0.
    """
    if event.response_time_seconds is None:
        return 0.0

    p = {**get_reward_defaults(), **(params or {})}
    reading = estimate_reading_seconds(event.question_text, event.options, p)
    thinking = max(0.0, event.response_time_seconds - reading)
    fluent, good, slow = response_time_thresholds(event.level, event.question_format, p)

    if event.is_correct:
        if thinking < fluent:
            return 5.0
        if thinking < good:
            return 3.0
        if thinking < slow:
            return 1.0
        return -1.0

    if thinking < fluent * p["fast_guess_fraction"]:
        return -3.0
    return 0.0


def streak_reward(is_correct: bool, current_streak: int) -> float:
    """Bonus from the streak this answer extends to."""
    if not is_correct:
        return 0.0
    new_streak = current_streak + 1
    if new_streak >= 10:
        return 5.0
    if new_streak >= 5:
        return 3.0
    if new_streak >= 3:
        return 2.0
    if new_streak >= 2:
        return 1.0
    return 0.0


def calculate_reward(
    event: ResponseEvent,
    learning_gain: float,
    current_mastery: float,
    recency: PracticeRecency | int,
    params: dict | None = None,
) -> RewardComponents:
    """
    Compute all reward components for a response.

    Args:
        event: The learner's response
        learning_gain: Mastery change produced by this response (0-100 scale)
        current_mastery: Mastery before the update (0-100), kept for logging
        recency: Time since the arm was last practiced, before this response.
            A bare int is read as whole days ago.
        params: Optional overrides merged over get_reward_defaults()

    Returns:
        RewardComponents whose total is the exact sum of the components
    """
    require(0.0 <= current_mastery <= 100.0, f"current_mastery must be in [0, 100], got {current_mastery}")
    if isinstance(recency, int):
        recency = PracticeRecency.days(recency)
    p = {**get_reward_defaults(), **(params or {})}

    learning = learning_gain_reward(learning_gain, p)
    calibration = calibration_component(event.is_correct, event.confidence_level)
    spacing = spacing_reward(event.is_correct, recency)
    recognition = recognition_reward(event.is_correct, event.recognition_method)
    response_time = response_time_reward(event, p)
    streak = streak_reward(event.is_correct, event.current_streak)

    total = learning + calibration + spacing + recognition + response_time + streak

    logger.debug(
        f"Reward: total={total:.2f} gain={learning:.2f} cal={calibration} spacing={spacing} "
        f"recog={recognition} time={response_time} streak={streak} mastery={current_mastery:.1f}"
    )

    return RewardComponents(
        learning_gain=learning,
        calibration=calibration,
        spacing=spacing,
        recognition=recognition,
        response_time=response_time,
        streak=streak,
        total=total,
    )


def normalize_reward(total: float, params: dict | None = None) -> float:
    """Map a raw total into [0, 1]: clamp((total + 21) / 51, 0, 1)."""
    p = {**get_reward_defaults(), **(params or {})}
    normalized = (total + p["normalization_offset"]) / p["normalization_span"]
    return max(0.0, min(1.0, normalized))


def describe_reward(components: RewardComponents) -> str:
    """Short learner-facing summary of the notable reward components."""
    parts: list[str] = []

    if components.learning_gain > 5:
        parts.append("Strong learning gain!")
    elif components.learning_gain > 0:
        parts.append("Learning gain")
    elif components.learning_gain < -5:
        parts.append("Mastery decreased")

    if components.calibration >= 3:
        parts.append("Excellent calibration")
    elif components.calibration <= -3:
        parts.append("Calibration needs work")

    if components.recognition >= 3:
        parts.append("Strong retrieval from memory!")
    elif components.recognition == 2:
        parts.append("Good recognition")
    elif components.recognition <= -3:
        parts.append("False memory - review this topic")

    if components.response_time >= 5:
        parts.append("Fluent answer")
    elif components.response_time <= -3:
        parts.append("Rushed answer")

    if components.spacing >= 3:
        parts.append("Great retention!")

    if components.streak >= 3:
        parts.append("Streak bonus")

    return " | ".join(parts) if parts else "Moderate progress"
