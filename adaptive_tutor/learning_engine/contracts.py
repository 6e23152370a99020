"""Typed contracts for decision audit records and service outputs."""

from datetime import UTC, datetime
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from adaptive_tutor.learning_engine.constants import DecisionType, SelectionMethod


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Decision Audit Records
# ============================================================================


class ArmSampleOut(BaseModel):
    """One arm's Thompson sample as recorded in an audit record."""

    topic_id: str
    topic_name: str = ""
    level: int = Field(..., ge=1, le=6)
    alpha: float = Field(..., ge=1.0)
    beta: float = Field(..., ge=1.0)
    sampled_value: float = Field(..., ge=0.0, le=1.0)
    adjusted_value: float = Field(..., ge=0.0)
    mastery_score: float = Field(..., ge=0.0, le=100.0)
    mastery_bonus: float = 0.0
    spacing_bonus: float = 0.0
    exploration_bonus: float = 0.0
    unlock_bonus: float = 0.0


class ArmRef(BaseModel):
    topic_id: str
    topic_name: str = ""
    level: int = Field(..., ge=1, le=6)


class AuditRecordBase(BaseModel):
    """Fields shared by every decision audit record."""

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    session_id: str | None = None
    decision_type: DecisionType
    created_at: datetime = Field(default_factory=_utcnow)
    state_snapshot: dict[str, Any] = Field(default_factory=dict)


class ArmSelectionAuditRecord(AuditRecordBase):
    decision_type: Literal[DecisionType.ARM_SELECTION] = DecisionType.ARM_SELECTION
    selection_method: SelectionMethod
    selected_arm: ArmRef
    all_arms: list[ArmSampleOut] = Field(default_factory=list)
    reasoning: str
    dimension: str | None = None
    fallback_reason: str | None = None
    branch_draw: float | None = None


class RewardComponentsOut(BaseModel):
    learning_gain: float
    calibration: float
    spacing: float
    recognition: float
    response_time: float
    streak: float
    total: float


class RewardAuditRecord(AuditRecordBase):
    decision_type: Literal[DecisionType.REWARD_CALCULATION] = DecisionType.REWARD_CALCULATION
    arm: ArmRef
    is_correct: bool
    confidence: int = Field(..., ge=1, le=5)
    response_time_seconds: float | None = Field(default=None, ge=0.0)
    reward_components: RewardComponentsOut
    normalized_reward: float = Field(..., ge=0.0, le=1.0)
    summary: str = ""


class MasteryUpdateAuditRecord(AuditRecordBase):
    decision_type: Literal[DecisionType.MASTERY_UPDATE] = DecisionType.MASTERY_UPDATE
    arm: ArmRef
    old_mastery: float = Field(..., ge=0.0, le=100.0)
    new_mastery: float = Field(..., ge=0.0, le=100.0)
    formula: str


DecisionAuditRecord = ArmSelectionAuditRecord | RewardAuditRecord | MasteryUpdateAuditRecord


# ============================================================================
# Service Outputs
# ============================================================================


class SubmissionOut(BaseModel):
    """Summary of a processed response, safe to return to a client."""

    topic_id: str
    level: int
    reward_total: float
    normalized_reward: float
    reward_summary: str
    old_mastery: float
    new_mastery: float
    is_well_calibrated: bool
    calibration_feedback: str
    progression_action: str
    progression_target_level: int
    progression_reason: str
