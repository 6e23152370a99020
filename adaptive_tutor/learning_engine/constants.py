"""Constants for learning engine algorithms."""

from enum import Enum


class SelectionMethod(str, Enum):
    """Branch that produced a selection."""

    THOMPSON_SAMPLING = "thompson_sampling"
    FORCED_SPACING = "forced_spacing"
    DIMENSION_COVERAGE = "dimension_coverage"


class ProgressionAction(str, Enum):
    """Level progression outcome."""

    ADVANCE = "advance"
    MAINTAIN = "maintain"
    REVIEW = "review"
    REGRESS = "regress"


class RecognitionMethod(str, Enum):
    """How the learner says they arrived at the answer."""

    MEMORY = "memory"
    RECOGNITION = "recognition"
    EDUCATED_GUESS = "educated_guess"
    RANDOM = "random"


class QuestionFormat(str, Enum):
    """Question formats with known time modifiers."""

    TRUE_FALSE = "true_false"
    MCQ_SINGLE = "mcq_single"
    FILL_BLANK = "fill_blank"
    MCQ_MULTI = "mcq_multi"
    MATCHING = "matching"
    OPEN_ENDED = "open_ended"


class CognitiveDimension(str, Enum):
    """Knowledge dimensions rotated by the coverage branch."""

    DEFINITION = "definition"
    EXAMPLE = "example"
    COMPARISON = "comparison"
    IMPLEMENTATION = "implementation"
    SCENARIO = "scenario"
    TROUBLESHOOTING = "troubleshooting"
    PITFALLS = "pitfalls"


class ConfidenceBias(str, Enum):
    """Direction of a learner's confidence bias."""

    OVERCONFIDENT = "overconfident"
    UNDERCONFIDENT = "underconfident"
    WELL_CALIBRATED = "well_calibrated"


class PerformanceTrend(str, Enum):
    """Recent accuracy trend."""

    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class Difficulty(str, Enum):
    """Estimated difficulty of a question for a learner."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class RLPhase(str, Enum):
    """Learner phase by total attempts."""

    COLD_START = "cold_start"
    EXPLORATION = "exploration"
    OPTIMIZATION = "optimization"
    STABILIZATION = "stabilization"


class DecisionType(str, Enum):
    """Decision audit record types."""

    ARM_SELECTION = "arm_selection"
    REWARD_CALCULATION = "reward_calculation"
    MASTERY_UPDATE = "mastery_update"


class FallbackReason(str, Enum):
    """Why a mixer branch fell back to Thompson Sampling."""

    NO_OVERDUE_TOPICS = "no_overdue_topics"
    NO_PRACTICED_TOPICS = "no_practiced_topics"
