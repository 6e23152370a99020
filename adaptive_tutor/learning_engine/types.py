"""
Value types shared by the selection, reward and progression algorithms.

Arms are immutable values keyed by (topic_id, level). Stats and mastery records
are plain dataclasses owned by the stores; the algorithms never mutate an input
record in place and return new instances instead.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from adaptive_tutor.core.errors import InvalidParameterError, require
from adaptive_tutor.learning_engine.config import (
    BETA_PRIOR_ALPHA,
    BETA_PRIOR_BETA,
    PROGRESSION_MAX_LEVEL,
    PROGRESSION_MIN_LEVEL,
)
from adaptive_tutor.learning_engine.constants import (
    CognitiveDimension,
    FallbackReason,
    PerformanceTrend,
    ProgressionAction,
    QuestionFormat,
    RecognitionMethod,
    RLPhase,
    SelectionMethod,
)


def _validate_level(level: int) -> None:
    require(
        PROGRESSION_MIN_LEVEL.value <= level <= PROGRESSION_MAX_LEVEL.value,
        f"level must be in [{PROGRESSION_MIN_LEVEL.value}, {PROGRESSION_MAX_LEVEL.value}], got {level}",
        level=level,
    )


@dataclass(frozen=True)
class Arm:
    """A practice target: one topic at one cognitive level."""

    topic_id: str
    level: int
    topic_name: str = field(default="", compare=False)

    def __post_init__(self):
        _validate_level(self.level)

    @property
    def previous(self) -> "Arm | None":
        """Same topic one level down, or None at level 1."""
        if self.level <= PROGRESSION_MIN_LEVEL.value:
            return None
        return Arm(self.topic_id, self.level - 1, self.topic_name)

    def label(self) -> str:
        return f"{self.topic_name or self.topic_id} L{self.level}"

    def to_dict(self) -> dict[str, Any]:
        return {"topic_id": self.topic_id, "topic_name": self.topic_name, "level": self.level}


@dataclass
class ArmStats:
    """Beta posterior and selection counters for one (user, arm)."""

    alpha: float = BETA_PRIOR_ALPHA.value
    beta: float = BETA_PRIOR_BETA.value
    times_selected: int = 0
    avg_reward: float = 0.0

    @classmethod
    def prior(cls) -> "ArmStats":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "alpha": round(self.alpha, 4),
            "beta": round(self.beta, 4),
            "times_selected": self.times_selected,
            "avg_reward": round(self.avg_reward, 4),
        }


@dataclass(frozen=True)
class PracticeRecency:
    """
    Whether an arm was ever practiced and, if so, how many whole days ago.

    `never` and `days_ago=0` are distinct: a topic practiced today is not
    the same as one never seen.
    """

    days_ago: int | None = None

    @classmethod
    def never(cls) -> "PracticeRecency":
        return cls(None)

    @classmethod
    def days(cls, n: int) -> "PracticeRecency":
        require(n >= 0, f"days since practice must be >= 0, got {n}", days=n)
        return cls(n)

    @property
    def never_practiced(self) -> bool:
        return self.days_ago is None


@dataclass
class MasteryRecord:
    """Mastery and attempt counters for one (user, topic, level)."""

    topic_id: str
    level: int
    mastery_score: float = 0.0
    questions_attempted: int = 0
    questions_correct: int = 0
    last_practiced_at: datetime | None = None
    topic_name: str = ""

    @property
    def arm(self) -> Arm:
        return Arm(self.topic_id, self.level, self.topic_name)

    @property
    def accuracy_pct(self) -> float:
        if self.questions_attempted == 0:
            return 0.0
        return self.questions_correct / self.questions_attempted * 100.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "level": self.level,
            "mastery_score": round(self.mastery_score, 2),
            "questions_attempted": self.questions_attempted,
            "questions_correct": self.questions_correct,
            "last_practiced_at": self.last_practiced_at.isoformat() if self.last_practiced_at else None,
        }


@dataclass
class ResponseEvent:
    """A learner's answer to one question."""

    is_correct: bool
    confidence_level: int
    level: int
    question_text: str = ""
    options: list[str] | None = None
    question_format: QuestionFormat | str | None = None
    recognition_method: RecognitionMethod | str | None = None
    response_time_seconds: float | None = None
    current_streak: int = 0

    def __post_init__(self):
        require(
            1 <= self.confidence_level <= 5,
            f"confidence_level must be in [1, 5], got {self.confidence_level}",
            confidence_level=self.confidence_level,
        )
        _validate_level(self.level)
        require(
            self.response_time_seconds is None or self.response_time_seconds >= 0,
            f"response_time_seconds must be >= 0, got {self.response_time_seconds}",
        )
        require(self.current_streak >= 0, f"current_streak must be >= 0, got {self.current_streak}")
        if self.recognition_method is not None:
            try:
                self.recognition_method = RecognitionMethod(self.recognition_method)
            except ValueError as e:
                raise InvalidParameterError(
                    f"unknown recognition_method: {self.recognition_method}"
                ) from e


@dataclass
class ResponseOutcome:
    """One row of a learner's response history."""

    arm: Arm
    is_correct: bool
    confidence_level: int
    answered_at: datetime
    dimension: CognitiveDimension | None = None
    reward_total: float | None = None


@dataclass
class RewardComponents:
    """The six reward components and their unclamped sum."""

    learning_gain: float
    calibration: float
    spacing: float
    recognition: float
    response_time: float
    streak: float
    total: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "learning_gain": round(self.learning_gain, 4),
            "calibration": self.calibration,
            "spacing": self.spacing,
            "recognition": self.recognition,
            "response_time": self.response_time,
            "streak": self.streak,
            "total": round(self.total, 4),
        }


@dataclass
class ArmSample:
    """One arm's Thompson sample and the context bonuses applied to it."""

    arm: Arm
    sample: float
    adjusted_sample: float
    alpha: float
    beta: float
    mastery_score: float = 0.0
    mastery_bonus: float = 0.0
    spacing_bonus: float = 0.0
    exploration_bonus: float = 0.0
    unlock_bonus: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.arm.to_dict(),
            "alpha": round(self.alpha, 4),
            "beta": round(self.beta, 4),
            "sampled_value": round(self.sample, 6),
            "adjusted_value": round(self.adjusted_sample, 6),
            "mastery_score": round(self.mastery_score, 2),
            "mastery_bonus": round(self.mastery_bonus, 4),
            "spacing_bonus": round(self.spacing_bonus, 4),
            "exploration_bonus": round(self.exploration_bonus, 4),
            "unlock_bonus": round(self.unlock_bonus, 4),
        }


@dataclass
class SelectionResult:
    """The arm chosen for the next question and how it was chosen."""

    selected_arm: Arm
    selection_method: SelectionMethod
    reasoning: str
    all_arm_samples: list[ArmSample] = field(default_factory=list)
    dimension: CognitiveDimension | None = None
    fallback_reason: FallbackReason | None = None
    branch_draw: float | None = None
    branch_probabilities: dict[str, float] | None = None
    rl_phase: RLPhase | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "selected_arm": self.selected_arm.to_dict(),
            "selection_method": self.selection_method.value,
            "reasoning": self.reasoning,
            "all_arm_samples": [s.to_dict() for s in self.all_arm_samples],
            "dimension": self.dimension.value if self.dimension else None,
            "fallback_reason": self.fallback_reason.value if self.fallback_reason else None,
            "branch_draw": round(self.branch_draw, 6) if self.branch_draw is not None else None,
            "branch_probabilities": self.branch_probabilities,
            "rl_phase": self.rl_phase.value if self.rl_phase else None,
        }


@dataclass
class ProgressionMetrics:
    mastery_score: float
    attempts: int
    calibration_error: float
    trend: PerformanceTrend


@dataclass
class ProgressionDecision:
    """Advance / maintain / review / regress verdict for a learner's level."""

    action: ProgressionAction
    current_level: int
    target_level: int
    reason: str
    confidence: float
    metrics: ProgressionMetrics

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "current_level": self.current_level,
            "target_level": self.target_level,
            "reason": self.reason,
            "confidence": round(self.confidence, 3),
            "metrics": {
                "mastery_score": round(self.metrics.mastery_score, 2),
                "attempts": self.metrics.attempts,
                "calibration_error": round(self.metrics.calibration_error, 4),
                "trend": self.metrics.trend.value,
            },
        }


# Sentinel results. Returned, never raised.


@dataclass(frozen=True)
class NoAvailableArms:
    reason: str = "No unlocked arms are available for this learner"


@dataclass(frozen=True)
class NoOverdueTopics:
    reason: str = "No topics are overdue for review"


@dataclass(frozen=True)
class NoPracticedTopics:
    reason: str = "No topics have been practiced at this level yet"
