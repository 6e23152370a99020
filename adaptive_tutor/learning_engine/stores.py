"""
Store contracts consumed by the service layer, with in-memory implementations.

The engine's pure functions never touch storage. The service reads and writes
through these protocols; `repo.py` provides SQLAlchemy-backed versions.
"""

from collections import defaultdict
from dataclasses import replace
from typing import Mapping, Protocol, Sequence

from adaptive_tutor.learning_engine.config import PROGRESSION_MAX_LEVEL, PROGRESSION_MIN_LEVEL
from adaptive_tutor.learning_engine.constants import CognitiveDimension
from adaptive_tutor.learning_engine.mastery.core import has_met_mastery_requirements
from adaptive_tutor.learning_engine.types import Arm, ArmStats, MasteryRecord, ResponseOutcome


class ArmCatalogProvider(Protocol):
    async def list_unlocked_arms(self, user_id: str, scope_id: str) -> list[Arm]: ...


class ArmStatsStore(Protocol):
    async def get_stats(self, user_id: str, arms: Sequence[Arm]) -> dict[Arm, ArmStats]: ...

    async def put_stats(self, user_id: str, arm: Arm, stats: ArmStats) -> None: ...


class MasteryStore(Protocol):
    async def get_mastery(self, user_id: str, arms: Sequence[Arm]) -> dict[Arm, MasteryRecord]: ...

    async def get_topic_mastery(self, user_id: str, topic_id: str) -> dict[int, MasteryRecord]: ...

    async def put_mastery(self, user_id: str, record: MasteryRecord) -> None: ...


class ResponseHistoryStore(Protocol):
    async def append(self, user_id: str, outcome: ResponseOutcome) -> None: ...

    async def recent(
        self, user_id: str, limit: int = 50, topic_id: str | None = None
    ) -> list[ResponseOutcome]: ...

    async def last_dimensions(
        self, user_id: str, arms: Sequence[Arm]
    ) -> dict[Arm, CognitiveDimension]: ...


def filter_unlocked_arms(
    topics: Sequence[tuple[str, str]],
    mastery: Mapping[Arm, MasteryRecord],
) -> list[Arm]:
    """
    Arms a learner may practice, in catalog order.

    Level 1 of every topic is open. Level L opens once level L-1 meets the
    mastery requirements (80% mastery, 3 correct).
    """
    unlocked = []
    for topic_id, topic_name in topics:
        for level in range(PROGRESSION_MIN_LEVEL.value, PROGRESSION_MAX_LEVEL.value + 1):
            arm = Arm(topic_id, level, topic_name)
            previous = mastery.get(arm.previous) if arm.previous else None
            if level == PROGRESSION_MIN_LEVEL.value or (
                previous is not None
                and has_met_mastery_requirements(previous.mastery_score, previous.questions_correct)
            ):
                unlocked.append(arm)
            else:
                break
    return unlocked


class InMemoryMasteryStore:
    def __init__(self):
        self._records: dict[tuple[str, Arm], MasteryRecord] = {}

    async def get_mastery(self, user_id: str, arms: Sequence[Arm]) -> dict[Arm, MasteryRecord]:
        return {
            arm: replace(self._records[(user_id, arm)])
            for arm in arms
            if (user_id, arm) in self._records
        }

    async def get_topic_mastery(self, user_id: str, topic_id: str) -> dict[int, MasteryRecord]:
        return {
            arm.level: replace(record)
            for (uid, arm), record in self._records.items()
            if uid == user_id and arm.topic_id == topic_id
        }

    async def put_mastery(self, user_id: str, record: MasteryRecord) -> None:
        self._records[(user_id, record.arm)] = replace(record)


class InMemoryArmStatsStore:
    def __init__(self):
        self._stats: dict[tuple[str, Arm], ArmStats] = {}

    async def get_stats(self, user_id: str, arms: Sequence[Arm]) -> dict[Arm, ArmStats]:
        return {arm: replace(self._stats[(user_id, arm)]) for arm in arms if (user_id, arm) in self._stats}

    async def put_stats(self, user_id: str, arm: Arm, stats: ArmStats) -> None:
        self._stats[(user_id, arm)] = replace(stats)


class InMemoryResponseHistoryStore:
    def __init__(self):
        self._history: dict[str, list[ResponseOutcome]] = defaultdict(list)

    async def append(self, user_id: str, outcome: ResponseOutcome) -> None:
        self._history[user_id].append(outcome)

    async def recent(
        self, user_id: str, limit: int = 50, topic_id: str | None = None
    ) -> list[ResponseOutcome]:
        """Most recent outcomes, oldest first."""
        rows = self._history.get(user_id, [])
        if topic_id is not None:
            rows = [r for r in rows if r.arm.topic_id == topic_id]
        return list(rows[-limit:])

    async def last_dimensions(
        self, user_id: str, arms: Sequence[Arm]
    ) -> dict[Arm, CognitiveDimension]:
        wanted = set(arms)
        last: dict[Arm, CognitiveDimension] = {}
        for outcome in self._history.get(user_id, []):
            if outcome.arm in wanted and outcome.dimension is not None:
                last[outcome.arm] = outcome.dimension
        return last


class StaticArmCatalog:
    """
    Catalog of topics per scope, unlocked against a MasteryStore.

    Args:
        topics_by_scope: scope_id -> [(topic_id, topic_name), ...] in catalog order
        mastery_store: Store used to evaluate unlock requirements
    """

    def __init__(self, topics_by_scope: Mapping[str, Sequence[tuple[str, str]]], mastery_store: MasteryStore):
        self.topics_by_scope = {k: list(v) for k, v in topics_by_scope.items()}
        self.mastery_store = mastery_store

    async def list_unlocked_arms(self, user_id: str, scope_id: str) -> list[Arm]:
        topics = self.topics_by_scope.get(scope_id, [])
        candidates = [
            Arm(topic_id, level, name)
            for topic_id, name in topics
            for level in range(PROGRESSION_MIN_LEVEL.value, PROGRESSION_MAX_LEVEL.value + 1)
        ]
        mastery = await self.mastery_store.get_mastery(user_id, candidates)
        return filter_unlocked_arms(topics, mastery)
