"""
Decision audit trail.

Every arm selection, reward calculation and mastery update produces an audit
record. Records are written through a DecisionAuditSink. Audit writes are
fire-and-forget: a failing sink is logged and never aborts the decision path.
"""

import logging
from typing import Protocol, Sequence

from adaptive_tutor.core.errors import AuditWriteError
from adaptive_tutor.learning_engine.contracts import (
    ArmRef,
    ArmSampleOut,
    ArmSelectionAuditRecord,
    DecisionAuditRecord,
    MasteryUpdateAuditRecord,
    RewardAuditRecord,
    RewardComponentsOut,
)
from adaptive_tutor.learning_engine.mastery.core import MasteryUpdate
from adaptive_tutor.learning_engine.reward.core import describe_reward
from adaptive_tutor.learning_engine.types import (
    Arm,
    ResponseEvent,
    RewardComponents,
    SelectionResult,
)
from adaptive_tutor.observability.logging import audit_log

logger = logging.getLogger(__name__)


class DecisionAuditSink(Protocol):
    async def write(self, record: DecisionAuditRecord) -> None: ...


class LoggingAuditSink:
    """Writes audit records to the structured audit logger."""

    async def write(self, record: DecisionAuditRecord) -> None:
        payload = record.model_dump(mode="json", exclude={"user_id", "decision_type"})
        audit_log(
            f"decision.{record.decision_type.value}",
            user_id=record.user_id,
            decision_type=record.decision_type.value,
            **payload,
        )


class InMemoryAuditSink:
    """Keeps audit records in memory, newest last. For tests and local runs."""

    def __init__(self):
        self.records: list[DecisionAuditRecord] = []

    async def write(self, record: DecisionAuditRecord) -> None:
        self.records.append(record)

    async def get_recent_decisions(self, user_id: str, limit: int = 50) -> list[DecisionAuditRecord]:
        mine = [r for r in self.records if r.user_id == user_id]
        return list(reversed(mine))[:limit]

    async def get_session_decisions(self, session_id: str) -> list[DecisionAuditRecord]:
        return [r for r in self.records if r.session_id == session_id]


class FanOutAuditSink:
    """Writes each record to several sinks; one failing sink does not stop the others."""

    def __init__(self, sinks: Sequence[DecisionAuditSink]):
        self.sinks = list(sinks)

    async def write(self, record: DecisionAuditRecord) -> None:
        for sink in self.sinks:
            await emit_audit_record(sink, record)


async def emit_audit_record(sink: DecisionAuditSink | None, record: DecisionAuditRecord) -> bool:
    """
    Write a record, swallowing sink failures.

    Returns:
        True if the sink accepted the record
    """
    if sink is None:
        return False
    try:
        await sink.write(record)
        return True
    except Exception as e:
        error = AuditWriteError(
            f"Failed to write {record.decision_type.value} audit record",
            details={"record_id": str(record.id), "error": str(e)},
        )
        logger.warning(f"{error.message}: {e}", extra={"audit_error": error.to_dict()})
        return False


def _arm_ref(arm: Arm) -> ArmRef:
    return ArmRef(**arm.to_dict())


def build_arm_selection_record(
    user_id: str,
    result: SelectionResult,
    session_id: str | None = None,
    scope_id: str | None = None,
) -> ArmSelectionAuditRecord:
    return ArmSelectionAuditRecord(
        user_id=user_id,
        session_id=session_id,
        selection_method=result.selection_method,
        selected_arm=_arm_ref(result.selected_arm),
        all_arms=[ArmSampleOut(**s.to_dict()) for s in result.all_arm_samples],
        reasoning=result.reasoning,
        dimension=result.dimension.value if result.dimension else None,
        fallback_reason=result.fallback_reason.value if result.fallback_reason else None,
        branch_draw=result.branch_draw,
        state_snapshot={
            "scope_id": scope_id,
            "branch_probabilities": result.branch_probabilities,
            "rl_phase": result.rl_phase.value if result.rl_phase else None,
        },
    )


def build_reward_record(
    user_id: str,
    arm: Arm,
    event: ResponseEvent,
    components: RewardComponents,
    normalized_reward: float,
    session_id: str | None = None,
) -> RewardAuditRecord:
    return RewardAuditRecord(
        user_id=user_id,
        session_id=session_id,
        arm=_arm_ref(arm),
        is_correct=event.is_correct,
        confidence=event.confidence_level,
        response_time_seconds=event.response_time_seconds,
        reward_components=RewardComponentsOut(**components.to_dict()),
        normalized_reward=normalized_reward,
        summary=describe_reward(components),
    )


def build_mastery_record(
    user_id: str,
    arm: Arm,
    update: MasteryUpdate,
    session_id: str | None = None,
) -> MasteryUpdateAuditRecord:
    return MasteryUpdateAuditRecord(
        user_id=user_id,
        session_id=session_id,
        arm=_arm_ref(arm),
        old_mastery=update.old_mastery,
        new_mastery=update.new_mastery,
        formula=update.formula,
    )
