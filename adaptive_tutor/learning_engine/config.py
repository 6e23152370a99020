"""
Learning Engine Configuration - Central Constants Registry.

All constants used by the selection, reward and progression algorithms MUST be
defined here with provenance. No magic numbers in algorithm implementations.

Each constant includes:
- value: The actual constant value
- source: Where the value comes from (literature, product decision, derivation)
- notes: Rationale and context
- validated: Whether the value has been checked against its source
"""

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SourcedValue:
    """
    A constant value with documented provenance.

    All learning algorithm constants must use this type to enforce documentation.
    """

    value: Any
    source: str
    notes: str = ""
    validated: bool = False

    def __post_init__(self):
        if not self.source or self.source.strip() == "":
            raise ValueError(f"SourcedValue must have non-empty source. Got: {self.source}")


# =============================================================================
# Beta Sampling Constants
# =============================================================================

BETA_PRIOR_ALPHA = SourcedValue(
    value=1.0,
    source="Uniform Beta(1,1) prior, standard for Bernoulli Thompson Sampling (Russo et al. 2018)",
    notes="Every arm starts with no evidence in either direction.",
    validated=True,
)

BETA_PRIOR_BETA = SourcedValue(
    value=1.0,
    source="Uniform Beta(1,1) prior, standard for Bernoulli Thompson Sampling (Russo et al. 2018)",
    notes="Paired with BETA_PRIOR_ALPHA.",
    validated=True,
)

BETA_DEGENERATE_THRESHOLD = SourcedValue(
    value=0.01,
    source="Numerical guard: Gamma sampling with shape < 0.01 underflows U^(1/shape) to zero",
    notes="Below this shape either parameter is treated as uninformative and a uniform draw is returned.",
    validated=True,
)

BETA_CI_Z_SCORES = SourcedValue(
    value={0.90: 1.645, 0.95: 1.96, 0.99: 2.576},
    source="Standard normal two-sided quantiles",
    notes="Normal approximation to the Beta interval; adequate once alpha + beta is moderate.",
    validated=True,
)

# =============================================================================
# Bandit (Thompson Sampling) Context Bonuses
# =============================================================================

BANDIT_SPACING_BONUS_DAYS = SourcedValue(
    value=7.0,
    source="Product decision: one week of absence earns a full spacing bonus unit",
    notes="spacing_bonus = min(days / 7, cap)",
)

BANDIT_SPACING_BONUS_CAP = SourcedValue(
    value=1.5,
    source="Product decision: cap spacing so stale arms cannot dominate the sample",
    notes="Also the bonus given to never-practiced arms.",
)

BANDIT_EXPLORATION_BONUS_MAX = SourcedValue(
    value=0.5,
    source="Product decision: exploration bonus for arms never selected",
    notes="Decays linearly with times_selected.",
)

BANDIT_EXPLORATION_DECAY_SELECTIONS = SourcedValue(
    value=20.0,
    source="Product decision: exploration bonus decays over the first 10 selections",
    notes="bonus = max(0, 0.5 - n / 20) reaches zero at n = 10.",
)

BANDIT_UNLOCK_BONUS = SourcedValue(
    value=0.3,
    source="Product decision: favor freshly unlocked cognitive levels",
    notes="Applied while the arm has fewer than BANDIT_UNLOCK_MAX_ATTEMPTS attempts.",
)

BANDIT_UNLOCK_MAX_ATTEMPTS = SourcedValue(
    value=3,
    source="Product decision: the unlock bonus lasts for the first three attempts",
)

# =============================================================================
# Mastery Constants
# =============================================================================

MASTERY_SCORE_MIN = SourcedValue(value=0.0, source="Mastery is a percentage in [0, 100]")
MASTERY_SCORE_MAX = SourcedValue(value=100.0, source="Mastery is a percentage in [0, 100]")

MASTERY_UNLOCK_THRESHOLD = SourcedValue(
    value=80.0,
    source="Mastery learning criterion of ~80% (Bloom 1968, 'Learning for Mastery')",
    notes="Previous level must reach this mastery to unlock the next one.",
    validated=True,
)

MASTERY_UNLOCK_MIN_CORRECT = SourcedValue(
    value=3,
    source="Product decision: at least three correct answers before a level counts as mastered",
    notes="Prevents a single lucky answer from unlocking a level.",
)

MASTERY_LEARNING_RATES = SourcedValue(
    value={"high": 0.4, "medium": 0.3, "low": 0.25},
    source="Exponential moving average with confidence-weighted step size",
    notes="Confidence >= 4 uses high, == 3 medium, otherwise low. "
    "Confident answers move mastery faster.",
)

MASTERY_SECONDARY_TOPIC_WEIGHT = SourcedValue(
    value=0.1,
    source="Product decision: default weight for secondary topics without explicit weight",
)

# =============================================================================
# Reward Constants
# =============================================================================

REWARD_LEARNING_GAIN_SCALE = SourcedValue(
    value=10.0,
    source="Mastery gain is on a 0-100 scale; dividing by 10 brings it to the other components' range",
)

REWARD_LEARNING_GAIN_CAP = SourcedValue(
    value=10.0,
    source="Learning gain component is clamped to [-10, 10]",
)

REWARD_READING_WPM = SourcedValue(
    value=220.0,
    source="Average adult silent reading speed for non-fiction (~200-250 wpm, Brysbaert 2019)",
    notes="Used to subtract estimated reading time from response time.",
    validated=True,
)

REWARD_RESPONSE_TIME_THRESHOLDS = SourcedValue(
    value={
        1: (5.0, 15.0, 30.0),
        2: (5.0, 15.0, 30.0),
        3: (10.0, 20.0, 40.0),
        4: (15.0, 30.0, 60.0),
        5: (20.0, 45.0, 90.0),
        6: (20.0, 45.0, 90.0),
    },
    source="Product decision: fluent/good/slow thinking-time thresholds in seconds per cognitive level",
    notes="Higher cognitive levels get more thinking time before counting as slow.",
)

REWARD_FORMAT_MODIFIERS = SourcedValue(
    value={
        "true_false": 0.8,
        "mcq_single": 1.0,
        "fill_blank": 1.2,
        "mcq_multi": 1.5,
        "matching": 1.7,
        "open_ended": 2.5,
    },
    source="Product decision: relative effort of question formats (mcq_single is the baseline)",
    notes="Unknown formats use 1.0.",
)

REWARD_FAST_GUESS_FRACTION = SourcedValue(
    value=0.75,
    source="Product decision: a wrong answer faster than 75% of fluent time is treated as a rushed guess",
)

REWARD_NORMALIZATION_OFFSET = SourcedValue(
    value=21.0,
    source="Nominal lower bound of the raw reward total",
)

REWARD_NORMALIZATION_SPAN = SourcedValue(
    value=51.0,
    source="Width of the normalized window; totals above +30 saturate at 1.0",
    notes="normalized = clamp((total + 21) / 51, 0, 1)",
)

# =============================================================================
# Calibration Constants
# =============================================================================

CALIBRATION_CONFIDENCE_SCALE = SourcedValue(
    value=5.0,
    source="Five-point confidence scale mapped to probability as confidence / 5",
)

CALIBRATION_WELL_CALIBRATED_ERROR = SourcedValue(
    value=0.2,
    source="Product decision: one confidence step (0.2) of error still counts as well calibrated",
)

CALIBRATION_BIAS_THRESHOLD = SourcedValue(
    value=0.1,
    source="Product decision: mean confidence vs accuracy gap above 10 points is a bias",
)

CALIBRATION_REWARD_TIERS = SourcedValue(
    value=((0.1, 0.5), (0.2, 0.3), (0.3, 0.0)),
    source="Tiered calibration reward: (max error, reward) pairs",
    notes="Beyond the last tier the reward is a linear penalty in the error.",
)

CALIBRATION_PENALTY_PIVOT = SourcedValue(
    value=0.2,
    source="Penalty grows from the well-calibrated boundary",
    notes="penalty = -(error - 0.2), halved for correct answers. Confidence 5 wrong gives -0.8.",
)

CALIBRATION_SUGGESTION_BRIER = SourcedValue(
    value=0.3,
    source="Brier score above 0.3 is worse than always answering 50% (0.25)",
)

CALIBRATION_SUGGESTION_PATTERN_SHARE = SourcedValue(
    value=0.2,
    source="Product decision: a pattern in more than 20% of responses is worth calling out",
)

# =============================================================================
# Spaced Repetition Constants
# =============================================================================

SPACING_INTERVAL_BUCKETS = SourcedValue(
    value=((80.0, 14), (60.0, 7), (40.0, 3)),
    source="Expanding-interval schedule (Leitner system; Pimsleur 1967) bucketed by accuracy",
    notes="(min accuracy %, interval days); below the last bucket the interval is 1 day.",
    validated=True,
)

SPACING_MIN_INTERVAL_DAYS = SourcedValue(
    value=1,
    source="Shortest review interval: next day",
)

SPACING_FIRST_SUCCESS_INTERVAL_DAYS = SourcedValue(
    value=3,
    source="Product decision: one correct first attempt earns at least a three day gap",
)

SPACING_STRUGGLING_ACCURACY = SourcedValue(
    value=40.0,
    source="Product decision: topics under 40% accuracy are reviewed first",
)

# =============================================================================
# Policy Mixer Constants
# =============================================================================

MIXER_BRANCH_PROBABILITIES = SourcedValue(
    value={
        0: {"bandit": 0.80, "coverage": 0.20, "spacing": 0.00},
        1: {"bandit": 0.80, "coverage": 0.10, "spacing": 0.10},
        2: {"bandit": 0.70, "coverage": 0.10, "spacing": 0.20},
    },
    source="Product decision: branch probabilities keyed by overdue topic count (2 means 2 or more)",
    notes="Spacing weight grows as review debt builds up.",
)

MIXER_COVERAGE_DIMENSIONS = SourcedValue(
    value=[
        "definition",
        "example",
        "comparison",
        "implementation",
        "scenario",
        "troubleshooting",
        "pitfalls",
    ],
    source="Product decision: knowledge dimensions rotated by the coverage branch",
)

# =============================================================================
# Progression Constants
# =============================================================================

PROGRESSION_MIN_LEVEL = SourcedValue(value=1, source="Bloom's taxonomy: Remember")
PROGRESSION_MAX_LEVEL = SourcedValue(value=6, source="Bloom's taxonomy: Create")

PROGRESSION_ADVANCE_MASTERY = SourcedValue(
    value=80.0,
    source="Mastery learning criterion of ~80% (Bloom 1968)",
    validated=True,
)

PROGRESSION_MIN_ATTEMPTS = SourcedValue(
    value=5,
    source="Product decision: at least five attempts before advancing",
)

PROGRESSION_MAX_CALIBRATION_ERROR = SourcedValue(
    value=0.3,
    source="Product decision: learners must be reasonably calibrated before advancing",
)

PROGRESSION_REVIEW_MASTERY = SourcedValue(
    value=60.0,
    source="Product decision: below 60% mastery the learner stays and reviews",
)

PROGRESSION_REGRESS_MASTERY = SourcedValue(
    value=40.0,
    source="Product decision: below 40% mastery the learner drops a level",
)

PROGRESSION_DECISION_CONFIDENCE = SourcedValue(
    value={"regress": 0.9, "review": 0.8, "maintain": 0.7, "advance_base": 0.5},
    source="Product decision: fixed confidence per rule, advance is computed from evidence",
)

PROGRESSION_CONFIDENCE_BOUNDS = SourcedValue(
    value=(0.3, 1.0),
    source="Advance confidence is clamped to [0.3, 1.0]",
)

PROGRESSION_TREND_WINDOW = SourcedValue(
    value=10,
    source="Product decision: trend uses the last 10 history entries split in halves",
)

PROGRESSION_TREND_MIN_HISTORY = SourcedValue(
    value=5,
    source="Product decision: fewer than 5 entries is too little for a trend",
)

PROGRESSION_TREND_THRESHOLD = SourcedValue(
    value=0.1,
    source="Product decision: accuracy change above 10 points is a trend",
)

PROGRESSION_CALIBRATION_PENALTY_CAP = SourcedValue(
    value=0.2,
    source="Level mastery is reduced by at most 20 points for poor calibration",
)

# =============================================================================
# RL Phase Constants
# =============================================================================

RL_PHASE_BOUNDARIES = SourcedValue(
    value=((10, "cold_start"), (50, "exploration"), (150, "optimization")),
    source="Product decision: learner phase by total attempts",
    notes="(exclusive upper bound, phase); at or above the last bound the phase is stabilization.",
)


# =============================================================================
# Validation
# =============================================================================


def validate_all_constants():
    """
    Validate all constants at import time.

    Raises:
        ValueError: If any constant fails validation
    """
    errors = []

    if BETA_PRIOR_ALPHA.value < 1 or BETA_PRIOR_BETA.value < 1:
        errors.append("Beta prior parameters must be >= 1")

    for conf, z in BETA_CI_Z_SCORES.value.items():
        if not (0 < conf < 1) or not math.isfinite(z) or z <= 0:
            errors.append(f"Invalid CI z-score entry {conf}: {z}")

    levels = REWARD_RESPONSE_TIME_THRESHOLDS.value
    for level in range(PROGRESSION_MIN_LEVEL.value, PROGRESSION_MAX_LEVEL.value + 1):
        if level not in levels:
            errors.append(f"Missing response time thresholds for level {level}")
            continue
        fluent, good, slow = levels[level]
        if not (0 < fluent < good < slow):
            errors.append(f"Response time thresholds for level {level} must be increasing")

    for fmt, modifier in REWARD_FORMAT_MODIFIERS.value.items():
        if modifier <= 0:
            errors.append(f"Format modifier for {fmt} must be positive")

    for name, probs in MIXER_BRANCH_PROBABILITIES.value.items():
        total = sum(probs.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            errors.append(f"Mixer probabilities for overdue={name} must sum to 1, got {total}")

    buckets = [b[0] for b in SPACING_INTERVAL_BUCKETS.value]
    if buckets != sorted(buckets, reverse=True):
        errors.append("SPACING_INTERVAL_BUCKETS must be sorted by accuracy descending")

    if not (
        PROGRESSION_REGRESS_MASTERY.value
        < PROGRESSION_REVIEW_MASTERY.value
        < PROGRESSION_ADVANCE_MASTERY.value
    ):
        errors.append("Progression thresholds must satisfy regress < review < advance")

    lo, hi = PROGRESSION_CONFIDENCE_BOUNDS.value
    if not (0 <= lo < hi <= 1):
        errors.append("PROGRESSION_CONFIDENCE_BOUNDS must be within [0, 1]")

    rates = MASTERY_LEARNING_RATES.value
    if not all(0 < r < 1 for r in rates.values()):
        errors.append("Mastery learning rates must be in (0, 1)")

    if errors:
        raise ValueError("Constant validation failed:\n" + "\n".join(f"  - {e}" for e in errors))


# Validate on import
validate_all_constants()


# =============================================================================
# Convenience Accessors
# =============================================================================


def get_beta_defaults() -> dict:
    """Get Beta sampling defaults as a dict."""
    return {
        "prior_alpha": BETA_PRIOR_ALPHA.value,
        "prior_beta": BETA_PRIOR_BETA.value,
        "degenerate_threshold": BETA_DEGENERATE_THRESHOLD.value,
        "ci_z_scores": dict(BETA_CI_Z_SCORES.value),
    }


def get_bandit_defaults() -> dict:
    """Get Thompson Sampling bonus defaults as a dict."""
    return {
        "spacing_bonus_days": BANDIT_SPACING_BONUS_DAYS.value,
        "spacing_bonus_cap": BANDIT_SPACING_BONUS_CAP.value,
        "exploration_bonus_max": BANDIT_EXPLORATION_BONUS_MAX.value,
        "exploration_decay_selections": BANDIT_EXPLORATION_DECAY_SELECTIONS.value,
        "unlock_bonus": BANDIT_UNLOCK_BONUS.value,
        "unlock_max_attempts": BANDIT_UNLOCK_MAX_ATTEMPTS.value,
        "unlock_threshold": MASTERY_UNLOCK_THRESHOLD.value,
        "unlock_min_correct": MASTERY_UNLOCK_MIN_CORRECT.value,
    }


def get_mastery_defaults() -> dict:
    """Get mastery update defaults as a dict."""
    return {
        "learning_rates": dict(MASTERY_LEARNING_RATES.value),
        "unlock_threshold": MASTERY_UNLOCK_THRESHOLD.value,
        "unlock_min_correct": MASTERY_UNLOCK_MIN_CORRECT.value,
        "secondary_weight": MASTERY_SECONDARY_TOPIC_WEIGHT.value,
    }


def get_reward_defaults() -> dict:
    """Get reward model defaults as a dict."""
    return {
        "learning_gain_scale": REWARD_LEARNING_GAIN_SCALE.value,
        "learning_gain_cap": REWARD_LEARNING_GAIN_CAP.value,
        "reading_wpm": REWARD_READING_WPM.value,
        "response_time_thresholds": dict(REWARD_RESPONSE_TIME_THRESHOLDS.value),
        "format_modifiers": dict(REWARD_FORMAT_MODIFIERS.value),
        "fast_guess_fraction": REWARD_FAST_GUESS_FRACTION.value,
        "normalization_offset": REWARD_NORMALIZATION_OFFSET.value,
        "normalization_span": REWARD_NORMALIZATION_SPAN.value,
    }


def get_calibration_defaults() -> dict:
    """Get calibration scoring defaults as a dict."""
    return {
        "confidence_scale": CALIBRATION_CONFIDENCE_SCALE.value,
        "well_calibrated_error": CALIBRATION_WELL_CALIBRATED_ERROR.value,
        "bias_threshold": CALIBRATION_BIAS_THRESHOLD.value,
        "reward_tiers": CALIBRATION_REWARD_TIERS.value,
        "penalty_pivot": CALIBRATION_PENALTY_PIVOT.value,
    }


def get_spacing_defaults() -> dict:
    """Get spaced repetition defaults as a dict."""
    return {
        "interval_buckets": SPACING_INTERVAL_BUCKETS.value,
        "min_interval_days": SPACING_MIN_INTERVAL_DAYS.value,
        "first_success_interval_days": SPACING_FIRST_SUCCESS_INTERVAL_DAYS.value,
        "struggling_accuracy": SPACING_STRUGGLING_ACCURACY.value,
    }


def get_mixer_defaults() -> dict:
    """Get policy mixer defaults as a dict."""
    return {
        "branch_probabilities": {k: dict(v) for k, v in MIXER_BRANCH_PROBABILITIES.value.items()},
        "coverage_dimensions": list(MIXER_COVERAGE_DIMENSIONS.value),
    }


def get_progression_defaults() -> dict:
    """Get level progression defaults as a dict."""
    lo, hi = PROGRESSION_CONFIDENCE_BOUNDS.value
    return {
        "min_level": PROGRESSION_MIN_LEVEL.value,
        "max_level": PROGRESSION_MAX_LEVEL.value,
        "advance_mastery": PROGRESSION_ADVANCE_MASTERY.value,
        "min_attempts": PROGRESSION_MIN_ATTEMPTS.value,
        "max_calibration_error": PROGRESSION_MAX_CALIBRATION_ERROR.value,
        "review_mastery": PROGRESSION_REVIEW_MASTERY.value,
        "regress_mastery": PROGRESSION_REGRESS_MASTERY.value,
        "decision_confidence": dict(PROGRESSION_DECISION_CONFIDENCE.value),
        "confidence_min": lo,
        "confidence_max": hi,
        "trend_window": PROGRESSION_TREND_WINDOW.value,
        "trend_min_history": PROGRESSION_TREND_MIN_HISTORY.value,
        "trend_threshold": PROGRESSION_TREND_THRESHOLD.value,
        "calibration_penalty_cap": PROGRESSION_CALIBRATION_PENALTY_CAP.value,
    }
