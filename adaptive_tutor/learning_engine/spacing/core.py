"""
Spaced review scheduling.

Each practiced (topic, level) has an optimal review interval derived from its
mastery accuracy. A topic is overdue once the whole days since its last
practice reach that interval. Never-practiced topics are never overdue.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from adaptive_tutor.learning_engine.config import get_spacing_defaults
from adaptive_tutor.learning_engine.mastery.core import practice_recency
from adaptive_tutor.learning_engine.types import Arm, MasteryRecord, PracticeRecency

logger = logging.getLogger(__name__)


@dataclass
class TopicPractice:
    """Practice summary for one (topic, level) as seen by the review scheduler."""

    arm: Arm
    accuracy_pct: float
    questions_attempted: int
    questions_correct: int
    recency: PracticeRecency

    @classmethod
    def from_mastery(cls, record: MasteryRecord, now: datetime) -> "TopicPractice":
        # Mastery score is the running accuracy estimate used for scheduling
        return cls(
            arm=record.arm,
            accuracy_pct=record.mastery_score,
            questions_attempted=record.questions_attempted,
            questions_correct=record.questions_correct,
            recency=practice_recency(record.last_practiced_at, now),
        )

    @property
    def practiced(self) -> bool:
        return self.questions_attempted > 0


@dataclass
class OverdueTopic:
    practice: TopicPractice
    interval_days: int
    days_since: int

    @property
    def arm(self) -> Arm:
        return self.practice.arm

    @property
    def days_overdue(self) -> int:
        return self.days_since - self.interval_days

    def to_dict(self) -> dict:
        return {
            **self.arm.to_dict(),
            "accuracy_pct": round(self.practice.accuracy_pct, 2),
            "interval_days": self.interval_days,
            "days_since": self.days_since,
            "days_overdue": self.days_overdue,
        }


def optimal_interval_days(
    accuracy_pct: float,
    questions_attempted: int,
    questions_correct: int,
    params: dict | None = None,
) -> int:
    """
    Review interval in days for a topic.

    Accuracy buckets: >=80% -> 14, >=60% -> 7, >=40% -> 3, else 1. A topic with
    exactly one attempt that was correct waits at least 3 days.
    """
    p = {**get_spacing_defaults(), **(params or {})}

    interval = p["min_interval_days"]
    for min_accuracy, days in p["interval_buckets"]:
        if accuracy_pct >= min_accuracy:
            interval = days
            break

    if questions_attempted == 1 and questions_correct == 1:
        interval = max(interval, p["first_success_interval_days"])

    return interval


def find_overdue_topics(
    topics: Iterable[TopicPractice],
    params: dict | None = None,
) -> list[OverdueTopic]:
    """Practiced topics whose days since practice reach their optimal interval."""
    overdue = []
    for topic in topics:
        if not topic.practiced or topic.recency.never_practiced:
            continue
        interval = optimal_interval_days(
            topic.accuracy_pct, topic.questions_attempted, topic.questions_correct, params
        )
        if topic.recency.days_ago >= interval:
            overdue.append(OverdueTopic(topic, interval, topic.recency.days_ago))

    logger.debug(f"Spacing: {len(overdue)} overdue topics")
    return overdue


def order_forced_spacing(overdue: Iterable[OverdueTopic], params: dict | None = None) -> list[OverdueTopic]:
    """
    Review order for overdue topics.

    Struggling topics (accuracy < 40%) come first, lowest accuracy first. The
    rest follow, most overdue first. Ties keep input order.
    """
    p = {**get_spacing_defaults(), **(params or {})}
    threshold = p["struggling_accuracy"]

    def sort_key(item: OverdueTopic) -> tuple:
        accuracy = item.practice.accuracy_pct
        if accuracy < threshold:
            return (0, accuracy, 0)
        return (1, 0.0, -item.days_overdue)

    return sorted(overdue, key=sort_key)
