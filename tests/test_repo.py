"""
Tests for the SQLAlchemy-backed stores and audit sink (in-memory SQLite).
"""

import pytest

from adaptive_tutor.learning_engine.audit import build_mastery_record
from adaptive_tutor.learning_engine.constants import CognitiveDimension, DecisionType
from adaptive_tutor.learning_engine.contracts import MasteryUpdateAuditRecord
from adaptive_tutor.learning_engine.mastery.core import MasteryUpdate
from adaptive_tutor.learning_engine.repo import (
    SqlAlchemyArmStatsStore,
    SqlAlchemyAuditSink,
    SqlAlchemyMasteryStore,
    SqlAlchemyResponseHistoryStore,
)
from adaptive_tutor.learning_engine.service import AdaptiveTutorService
from adaptive_tutor.learning_engine.stores import StaticArmCatalog
from adaptive_tutor.learning_engine.types import Arm, ArmStats, ResponseOutcome, SelectionResult
from tests.helpers import NOW, TOPICS, make_event, make_mastery


class TestArmStatsStore:
    async def test_missing_rows_are_absent(self, session_factory):
        store = SqlAlchemyArmStatsStore(session_factory)
        assert await store.get_stats("learner-1", [Arm("cells", 1)]) == {}
        assert await store.get_stats("learner-1", []) == {}

    async def test_put_then_update(self, session_factory):
        store = SqlAlchemyArmStatsStore(session_factory)
        arm = Arm("cells", 1)

        await store.put_stats("learner-1", arm, ArmStats(alpha=1.6, beta=1.4, times_selected=1, avg_reward=9.0))
        await store.put_stats("learner-1", arm, ArmStats(alpha=2.1, beta=1.9, times_selected=2, avg_reward=7.5))

        stats = await store.get_stats("learner-1", [arm, Arm("enzymes", 1)])
        assert list(stats) == [arm]
        assert stats[arm] == ArmStats(alpha=2.1, beta=1.9, times_selected=2, avg_reward=7.5)

    async def test_users_are_isolated(self, session_factory):
        store = SqlAlchemyArmStatsStore(session_factory)
        arm = Arm("cells", 1)
        await store.put_stats("learner-1", arm, ArmStats(alpha=3.0))
        assert await store.get_stats("learner-2", [arm]) == {}


class TestMasteryStore:
    async def test_round_trip_keeps_utc(self, session_factory):
        store = SqlAlchemyMasteryStore(session_factory)
        record = make_mastery("cells", 2, mastery_score=64.0, attempted=5, correct=3, days_ago=2)
        record.topic_name = "Cell Structure"

        await store.put_mastery("learner-1", record)
        loaded = (await store.get_mastery("learner-1", [Arm("cells", 2)]))[Arm("cells", 2)]

        assert loaded.mastery_score == pytest.approx(64.0)
        assert loaded.questions_correct == 3
        assert loaded.topic_name == "Cell Structure"
        assert loaded.last_practiced_at == record.last_practiced_at
        assert loaded.last_practiced_at.tzinfo is not None

    async def test_topic_mastery_by_level(self, session_factory):
        store = SqlAlchemyMasteryStore(session_factory)
        await store.put_mastery("learner-1", make_mastery("cells", 1, mastery_score=85.0))
        await store.put_mastery("learner-1", make_mastery("cells", 2, mastery_score=40.0))
        await store.put_mastery("learner-1", make_mastery("enzymes", 1, mastery_score=10.0))

        by_level = await store.get_topic_mastery("learner-1", "cells")

        assert {level: r.mastery_score for level, r in by_level.items()} == {1: 85.0, 2: 40.0}


class TestResponseHistoryStore:
    async def test_recent_is_oldest_first_and_limited(self, session_factory):
        store = SqlAlchemyResponseHistoryStore(session_factory)
        for i in range(5):
            await store.append(
                "learner-1",
                ResponseOutcome(Arm("cells", 1), is_correct=i % 2 == 0, confidence_level=i + 1, answered_at=NOW),
            )

        recent = await store.recent("learner-1", limit=3)

        assert [r.confidence_level for r in recent] == [3, 4, 5]
        assert recent[-1].answered_at == NOW

    async def test_topic_filter(self, session_factory):
        store = SqlAlchemyResponseHistoryStore(session_factory)
        await store.append("learner-1", ResponseOutcome(Arm("cells", 1), True, 3, NOW))
        await store.append("learner-1", ResponseOutcome(Arm("enzymes", 1), False, 2, NOW))

        recent = await store.recent("learner-1", topic_id="enzymes")

        assert [r.arm.topic_id for r in recent] == ["enzymes"]

    async def test_last_dimensions(self, session_factory):
        store = SqlAlchemyResponseHistoryStore(session_factory)
        arm = Arm("cells", 1)
        await store.append("learner-1", ResponseOutcome(arm, True, 3, NOW, CognitiveDimension.DEFINITION))
        await store.append("learner-1", ResponseOutcome(arm, True, 3, NOW, CognitiveDimension.SCENARIO))
        await store.append("learner-1", ResponseOutcome(arm, True, 3, NOW))

        last = await store.last_dimensions("learner-1", [arm, Arm("enzymes", 1)])

        assert last == {arm: CognitiveDimension.SCENARIO}


class TestAuditSink:
    async def test_write_and_read_back(self, session_factory):
        sink = SqlAlchemyAuditSink(session_factory)
        update = MasteryUpdate("cells", 1, old_mastery=40.0, new_mastery=55.0, learning_gain=15.0)
        record = build_mastery_record("learner-1", Arm("cells", 1), update, session_id="s-1")

        await sink.write(record)

        recent = await sink.get_recent_decisions("learner-1")
        assert len(recent) == 1
        assert isinstance(recent[0], MasteryUpdateAuditRecord)
        assert recent[0].id == record.id
        assert recent[0].new_mastery == 55.0
        assert await sink.get_session_decisions("s-2") == []


class TestServiceOverSql:
    async def test_select_and_submit(self, session_factory):
        mastery_store = SqlAlchemyMasteryStore(session_factory)
        audit_sink = SqlAlchemyAuditSink(session_factory)
        service = AdaptiveTutorService(
            catalog=StaticArmCatalog(TOPICS, mastery_store),
            stats_store=SqlAlchemyArmStatsStore(session_factory),
            mastery_store=mastery_store,
            history_store=SqlAlchemyResponseHistoryStore(session_factory),
            audit_sink=audit_sink,
            clock=lambda: NOW,
        )

        selection = await service.select_next_arm("learner-1", "chapter-1", session_id="s-1")
        assert isinstance(selection, SelectionResult)

        arm = selection.selected_arm
        outcome = await service.submit_response(
            "learner-1", arm, make_event(is_correct=True, confidence_level=4, level=arm.level), session_id="s-1"
        )

        assert outcome.stats.times_selected == 1
        stored = await service.stats_store.get_stats("learner-1", [arm])
        assert stored[arm].alpha == pytest.approx(outcome.stats.alpha)

        types = {r.decision_type for r in await audit_sink.get_session_decisions("s-1")}
        assert types == {
            DecisionType.ARM_SELECTION,
            DecisionType.REWARD_CALCULATION,
            DecisionType.MASTERY_UPDATE,
        }
