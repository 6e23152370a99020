"""Builders shared by the test modules."""

import random
from datetime import UTC, datetime, timedelta

from adaptive_tutor.learning_engine.types import MasteryRecord, ResponseEvent

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)

TOPICS = {
    "chapter-1": [
        ("cells", "Cell Structure"),
        ("enzymes", "Enzymes"),
        ("membranes", "Membranes"),
    ],
}


def make_mastery(
    topic_id: str,
    level: int = 1,
    mastery_score: float = 0.0,
    attempted: int = 0,
    correct: int = 0,
    days_ago: int | None = None,
    now: datetime = NOW,
) -> MasteryRecord:
    """Mastery record helper; days_ago=None means never practiced."""
    return MasteryRecord(
        topic_id=topic_id,
        level=level,
        mastery_score=mastery_score,
        questions_attempted=attempted,
        questions_correct=correct,
        last_practiced_at=None if days_ago is None else now - timedelta(days=days_ago),
    )


def make_event(
    is_correct: bool = True,
    confidence_level: int = 3,
    level: int = 1,
    **kwargs,
) -> ResponseEvent:
    return ResponseEvent(is_correct=is_correct, confidence_level=confidence_level, level=level, **kwargs)


def constant_sampler(value: float):
    """Sampler that ignores the posterior and returns `value`."""

    def _sample(alpha: float, beta: float, rng: random.Random) -> float:
        return value

    return _sample


class SequenceRandom(random.Random):
    """Random whose random() returns the given values in order, then falls back to the seed."""

    def __init__(self, values, seed: int = 0):
        super().__init__(seed)
        self._values = list(values)

    def random(self) -> float:
        if self._values:
            return self._values.pop(0)
        return super().random()
