"""
Tests for spaced review scheduling.
"""

import pytest

from adaptive_tutor.learning_engine.mastery.core import apply_response
from adaptive_tutor.learning_engine.spacing.core import (
    OverdueTopic,
    TopicPractice,
    find_overdue_topics,
    optimal_interval_days,
    order_forced_spacing,
)
from adaptive_tutor.learning_engine.types import Arm, PracticeRecency
from tests.helpers import NOW, make_mastery


def practice(topic_id: str, accuracy: float, attempted: int, correct: int, days: int | None) -> TopicPractice:
    recency = PracticeRecency.never() if days is None else PracticeRecency.days(days)
    return TopicPractice(Arm(topic_id, 1), accuracy, attempted, correct, recency)


class TestOptimalInterval:
    @pytest.mark.parametrize(
        "accuracy,expected", [(100.0, 14), (80.0, 14), (79.9, 7), (60.0, 7), (45.0, 3), (40.0, 3), (39.0, 1), (0.0, 1)]
    )
    def test_accuracy_buckets(self, accuracy, expected):
        assert optimal_interval_days(accuracy, 10, 5) == expected

    def test_high_accuracy_dominates_first_success(self):
        """85% accuracy with one correct attempt: max(14, 3) = 14."""
        assert optimal_interval_days(85.0, 1, 1) == 14

    def test_first_success_extends_short_interval(self):
        """No attempts gives the 1-day bucket; one correct attempt lifts it to max(1, 3) = 3."""
        assert optimal_interval_days(0.0, 0, 0) == 1
        assert optimal_interval_days(0.0, 1, 1) == 3

    def test_first_success_from_mastery_record(self):
        record = make_mastery("cells", mastery_score=0.0)
        updated, _ = apply_response(record, True, 1, NOW)

        topic = TopicPractice.from_mastery(updated, NOW)

        assert topic.accuracy_pct == pytest.approx(25.0)
        assert optimal_interval_days(topic.accuracy_pct, topic.questions_attempted, topic.questions_correct) == 3

    def test_single_wrong_attempt_not_extended(self):
        assert optimal_interval_days(0.0, 1, 0) == 1


class TestFindOverdueTopics:
    def test_days_reaching_interval_are_overdue(self):
        topics = [
            practice("a", 85.0, 10, 9, 14),
            practice("b", 85.0, 10, 9, 13),
            practice("c", 50.0, 10, 5, 4),
        ]
        overdue = find_overdue_topics(topics)

        assert [o.arm.topic_id for o in overdue] == ["a", "c"]
        assert overdue[1].interval_days == 3
        assert overdue[1].days_overdue == 1

    def test_never_practiced_never_overdue(self):
        topics = [practice("a", 0.0, 0, 0, None), practice("b", 0.0, 0, 0, 100)]
        assert find_overdue_topics(topics) == []

    def test_from_mastery_records(self):
        records = [
            make_mastery("cells", mastery_score=70.0, attempted=5, correct=4, days_ago=8),
            make_mastery("enzymes", mastery_score=70.0, attempted=5, correct=4, days_ago=2),
        ]
        overdue = find_overdue_topics(TopicPractice.from_mastery(r, NOW) for r in records)
        assert [o.arm.topic_id for o in overdue] == ["cells"]


class TestOrderForcedSpacing:
    def test_struggling_first_then_most_overdue(self):
        overdue = [
            OverdueTopic(practice("fine-1", 70.0, 10, 7, 10), 7, 10),
            OverdueTopic(practice("weak-2", 35.0, 10, 3, 2), 1, 2),
            OverdueTopic(practice("fine-2", 90.0, 10, 9, 30), 14, 30),
            OverdueTopic(practice("weak-1", 10.0, 10, 1, 1), 1, 1),
        ]
        ordered = [o.arm.topic_id for o in order_forced_spacing(overdue)]
        assert ordered == ["weak-1", "weak-2", "fine-2", "fine-1"]

    def test_ties_keep_input_order(self):
        overdue = [
            OverdueTopic(practice("x", 70.0, 10, 7, 9), 7, 9),
            OverdueTopic(practice("y", 75.0, 10, 7, 9), 7, 9),
        ]
        assert [o.arm.topic_id for o in order_forced_spacing(overdue)] == ["x", "y"]

    def test_empty(self):
        assert order_forced_spacing([]) == []
