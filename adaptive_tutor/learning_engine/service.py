"""
Adaptive tutor service.

Orchestrates one request at a time:
- select_next_arm: catalog -> stats/mastery -> mixer (+ Thompson Sampling) -> audit
- submit_response: mastery update -> reward -> posterior update -> progression -> audit

Read-modify-write of per-arm state is serialized per (user, topic, level) with
an asyncio.Lock. Different arms update concurrently.
"""

import asyncio
import logging
import random
import weakref
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Mapping, Sequence

from adaptive_tutor.core.config import settings
from adaptive_tutor.core.errors import InvalidParameterError
from adaptive_tutor.learning_engine.audit import (
    DecisionAuditSink,
    InMemoryAuditSink,
    build_arm_selection_record,
    build_mastery_record,
    build_reward_record,
    emit_audit_record,
)
from adaptive_tutor.learning_engine.bandit.beta import sample_beta
from adaptive_tutor.learning_engine.bandit.core import (
    Sampler,
    create_deterministic_seed,
    create_seeded_rng,
    rl_phase,
    update_arm_stats,
)
from adaptive_tutor.learning_engine.calibration.core import (
    CalibrationResult,
    calculate_overall_calibration_error,
    evaluate_confidence_calibration,
)
from adaptive_tutor.learning_engine.constants import CognitiveDimension
from adaptive_tutor.learning_engine.contracts import SubmissionOut
from adaptive_tutor.learning_engine.mastery.core import MasteryUpdate, apply_response, practice_recency
from adaptive_tutor.learning_engine.policy.mixer import select_next
from adaptive_tutor.learning_engine.progression.core import (
    LearnerProgress,
    PerformanceWindow,
    evaluate_progression,
)
from adaptive_tutor.learning_engine.reward.core import calculate_reward, describe_reward, normalize_reward
from adaptive_tutor.learning_engine.stores import (
    ArmCatalogProvider,
    ArmStatsStore,
    InMemoryArmStatsStore,
    InMemoryMasteryStore,
    InMemoryResponseHistoryStore,
    MasteryStore,
    ResponseHistoryStore,
    StaticArmCatalog,
)
from adaptive_tutor.learning_engine.types import (
    Arm,
    ArmStats,
    MasteryRecord,
    NoAvailableArms,
    ProgressionDecision,
    ResponseEvent,
    ResponseOutcome,
    RewardComponents,
    SelectionResult,
)

logger = logging.getLogger(__name__)

# History rows considered for calibration error and trend
PROGRESSION_HISTORY_LIMIT = 50


@dataclass
class SubmissionOutcome:
    """Everything produced by processing one response."""

    arm: Arm
    reward: RewardComponents
    normalized_reward: float
    mastery_update: MasteryUpdate
    stats: ArmStats
    calibration: CalibrationResult
    progression: ProgressionDecision

    def to_out(self) -> SubmissionOut:
        return SubmissionOut(
            topic_id=self.arm.topic_id,
            level=self.arm.level,
            reward_total=round(self.reward.total, 4),
            normalized_reward=round(self.normalized_reward, 4),
            reward_summary=describe_reward(self.reward),
            old_mastery=round(self.mastery_update.old_mastery, 2),
            new_mastery=round(self.mastery_update.new_mastery, 2),
            is_well_calibrated=self.calibration.is_well_calibrated,
            calibration_feedback=self.calibration.feedback,
            progression_action=self.progression.action.value,
            progression_target_level=self.progression.target_level,
            progression_reason=self.progression.reason,
        )


class AdaptiveTutorService:
    """Caller-side orchestration of the selection and reward engine."""

    def __init__(
        self,
        catalog: ArmCatalogProvider,
        stats_store: ArmStatsStore,
        mastery_store: MasteryStore,
        history_store: ResponseHistoryStore,
        audit_sink: DecisionAuditSink | None = None,
        sampler: Sampler = sample_beta,
        clock: Callable[[], datetime] | None = None,
        seed_salt: str | None = None,
    ):
        self.catalog = catalog
        self.stats_store = stats_store
        self.mastery_store = mastery_store
        self.history_store = history_store
        self.audit_sink = audit_sink
        self.sampler = sampler
        self._clock = clock or (lambda: datetime.now(UTC))
        self._seed_salt = settings.SELECTION_SEED_SALT if seed_salt is None else seed_salt
        # Entries vanish once no task holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[tuple[str, Arm], asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str, arm: Arm) -> asyncio.Lock:
        key = (user_id, arm)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def _audit(self, record) -> None:
        if settings.AUDIT_ENABLED:
            await emit_audit_record(self.audit_sink, record)

    async def select_next_arm(
        self,
        user_id: str,
        scope_id: str,
        rng: random.Random | None = None,
        session_id: str | None = None,
    ) -> SelectionResult | NoAvailableArms:
        """
        Choose the next (topic, level) to practice.

        Without an explicit rng, selection is seeded from the learner, scope,
        attempt count and date, so a repeated request gives the same answer.
        """
        arms = await self.catalog.list_unlocked_arms(user_id, scope_id)
        if not arms:
            logger.warning(f"No unlocked arms for user={user_id} scope={scope_id}")
            return NoAvailableArms()

        stats = await self.stats_store.get_stats(user_id, arms)
        mastery = await self.mastery_store.get_mastery(user_id, arms)
        last_dimensions = await self.history_store.last_dimensions(user_id, arms)
        total_attempts = sum(m.questions_attempted for m in mastery.values())

        if rng is None:
            seed = create_deterministic_seed(user_id, scope_id, total_attempts, self._seed_salt)
            rng = create_seeded_rng(seed)

        result = select_next(arms, stats, mastery, self._clock(), rng, last_dimensions, self.sampler)
        if isinstance(result, NoAvailableArms):
            return result

        result.rl_phase = rl_phase(total_attempts)

        logger.info(
            f"Selection for user={user_id} scope={scope_id}: {result.selected_arm.label()} "
            f"method={result.selection_method.value} phase={result.rl_phase.value}"
        )
        await self._audit(build_arm_selection_record(user_id, result, session_id, scope_id))
        return result

    async def current_streak(self, user_id: str, topic_id: str) -> int:
        """Consecutive correct answers on a topic, ending at its most recent response."""
        history = await self.history_store.recent(user_id, limit=PROGRESSION_HISTORY_LIMIT, topic_id=topic_id)
        streak = 0
        for outcome in reversed(history):
            if not outcome.is_correct:
                break
            streak += 1
        return streak

    async def submit_response(
        self,
        user_id: str,
        arm: Arm,
        event: ResponseEvent,
        dimension: CognitiveDimension | None = None,
        now: datetime | None = None,
        session_id: str | None = None,
    ) -> SubmissionOutcome:
        """
        Score a response and update the arm's mastery and posterior.

        Raises:
            InvalidParameterError: If the event level does not match the arm
        """
        if event.level != arm.level:
            raise InvalidParameterError(
                f"Event level {event.level} does not match arm level {arm.level}",
                details={"topic_id": arm.topic_id},
            )

        now = now or self._clock()

        async with self._lock_for(user_id, arm):
            existing = (await self.mastery_store.get_mastery(user_id, [arm])).get(arm)
            record = existing or MasteryRecord(arm.topic_id, arm.level, topic_name=arm.topic_name)
            recency = practice_recency(record.last_practiced_at, now)

            updated_record, mastery_update = apply_response(
                record, event.is_correct, event.confidence_level, now
            )
            components = calculate_reward(event, mastery_update.learning_gain, record.mastery_score, recency)
            normalized = normalize_reward(components.total)

            stats = (await self.stats_store.get_stats(user_id, [arm])).get(arm) or ArmStats.prior()
            new_stats = update_arm_stats(stats, components.total, normalized)

            await self.mastery_store.put_mastery(user_id, updated_record)
            await self.stats_store.put_stats(user_id, arm, new_stats)
            await self.history_store.append(
                user_id,
                ResponseOutcome(
                    arm=arm,
                    is_correct=event.is_correct,
                    confidence_level=event.confidence_level,
                    answered_at=now,
                    dimension=dimension,
                    reward_total=components.total,
                ),
            )

        calibration = evaluate_confidence_calibration(event.confidence_level, event.is_correct)
        progression = await self.evaluate_progression(user_id, arm.topic_id, arm.level)

        logger.info(
            f"Response from user={user_id} on {arm.label()}: correct={event.is_correct} "
            f"reward={components.total:.2f} (norm {normalized:.3f}) "
            f"mastery {mastery_update.old_mastery:.1f}->{mastery_update.new_mastery:.1f} "
            f"progression={progression.action.value}"
        )

        await self._audit(build_reward_record(user_id, arm, event, components, normalized, session_id))
        await self._audit(build_mastery_record(user_id, arm, mastery_update, session_id))

        return SubmissionOutcome(
            arm=arm,
            reward=components,
            normalized_reward=normalized,
            mastery_update=mastery_update,
            stats=new_stats,
            calibration=calibration,
            progression=progression,
        )

    async def evaluate_progression(self, user_id: str, topic_id: str, current_level: int) -> ProgressionDecision:
        """Progression verdict for a topic from stored mastery and recent history."""
        topic_mastery = await self.mastery_store.get_topic_mastery(user_id, topic_id)
        history = await self.history_store.recent(user_id, limit=PROGRESSION_HISTORY_LIMIT, topic_id=topic_id)
        level_history = [h for h in history if h.arm.level == current_level]

        current = topic_mastery.get(current_level)
        progress = LearnerProgress(
            current_level=current_level,
            total_attempts=current.questions_attempted if current else 0,
            mastery_by_level={level: rec.mastery_score for level, rec in topic_mastery.items()},
            calibration_error=calculate_overall_calibration_error(level_history),
            history=[PerformanceWindow(1, 1 if h.is_correct else 0) for h in level_history],
        )
        return evaluate_progression(progress)


def create_in_memory_service(
    topics_by_scope: Mapping[str, Sequence[tuple[str, str]]],
    audit_sink: DecisionAuditSink | None = None,
    sampler: Sampler = sample_beta,
    clock: Callable[[], datetime] | None = None,
) -> AdaptiveTutorService:
    """Service wired to in-memory stores; audit records kept in memory by default."""
    mastery_store = InMemoryMasteryStore()
    return AdaptiveTutorService(
        catalog=StaticArmCatalog(topics_by_scope, mastery_store),
        stats_store=InMemoryArmStatsStore(),
        mastery_store=mastery_store,
        history_store=InMemoryResponseHistoryStore(),
        audit_sink=audit_sink if audit_sink is not None else InMemoryAuditSink(),
        sampler=sampler,
        clock=clock,
    )
