"""
Core algorithms for Thompson Sampling arm selection.

Implements:
- Thompson Sampling over per-arm Beta posteriors
- Context bonuses (mastery, spacing, exploration, unlock) applied to each sample
- Posterior update from a normalized reward
- Deterministic seeded RNG for reproducibility
"""

import hashlib
import logging
import random
from dataclasses import replace
from datetime import UTC, datetime
from typing import Callable, Mapping, Sequence

from adaptive_tutor.core.errors import require
from adaptive_tutor.learning_engine.bandit.beta import sample_beta
from adaptive_tutor.learning_engine.config import (
    RL_PHASE_BOUNDARIES,
    get_bandit_defaults,
    get_beta_defaults,
)
from adaptive_tutor.learning_engine.constants import RLPhase, SelectionMethod
from adaptive_tutor.learning_engine.mastery.core import (
    has_met_mastery_requirements,
    practice_recency,
)
from adaptive_tutor.learning_engine.types import (
    Arm,
    ArmSample,
    ArmStats,
    MasteryRecord,
    NoAvailableArms,
    PracticeRecency,
    SelectionResult,
)

logger = logging.getLogger(__name__)

# (alpha, beta, rng) -> sample in [0, 1]
Sampler = Callable[[float, float, random.Random], float]


def create_deterministic_seed(
    user_id: str,
    scope_id: str,
    request_index: int,
    salt: str = "",
    date_bucket: str | None = None,
) -> str:
    """
    Create a deterministic seed for reproducible selection.

    Same inputs on the same day produce the same selection.

    Args:
        user_id: Learner ID
        scope_id: Chapter/scope the arms belong to
        request_index: Monotonic request counter for the learner in this scope
        salt: Deployment salt
        date_bucket: Date string (defaults to today, UTC)

    Returns:
        Hex seed string
    """
    if date_bucket is None:
        date_bucket = datetime.now(UTC).strftime("%Y-%m-%d")

    combined = "|".join([str(user_id), str(scope_id), str(request_index), salt, date_bucket])
    return hashlib.sha256(combined.encode()).hexdigest()[:16]


def create_seeded_rng(seed: str) -> random.Random:
    """
    Create a seeded random number generator.

    Args:
        seed: Hex seed string

    Returns:
        Seeded Random instance
    """
    return random.Random(int(seed, 16))


def compute_mastery_bonus(mastery_score: float) -> float:
    """1.0 for an unseen topic, 0.0 at full mastery."""
    return (100.0 - mastery_score) / 100.0


def compute_spacing_bonus(recency: PracticeRecency, params: dict | None = None) -> float:
    """
    min(days / 7, 1.5).

    Never-practiced arms get the cap.
    """
    p = {**get_bandit_defaults(), **(params or {})}
    if recency.never_practiced:
        return p["spacing_bonus_cap"]
    return min(recency.days_ago / p["spacing_bonus_days"], p["spacing_bonus_cap"])


def compute_exploration_bonus(times_selected: int, params: dict | None = None) -> float:
    p = {**get_bandit_defaults(), **(params or {})}
    if times_selected == 0:
        return p["exploration_bonus_max"]
    return max(0.0, p["exploration_bonus_max"] - times_selected / p["exploration_decay_selections"])


def compute_unlock_bonus(
    arm: Arm,
    own_mastery: MasteryRecord | None,
    previous_mastery: MasteryRecord | None,
    params: dict | None = None,
) -> float:
    """
    Bonus for a freshly unlocked level.

    Applies when the level below meets the mastery requirements and this arm
    has fewer than three attempts.
    """
    p = {**get_bandit_defaults(), **(params or {})}
    if arm.level <= 1 or previous_mastery is None:
        return 0.0
    if not has_met_mastery_requirements(
        previous_mastery.mastery_score,
        previous_mastery.questions_correct,
        p["unlock_threshold"],
        p["unlock_min_correct"],
    ):
        return 0.0
    attempts = own_mastery.questions_attempted if own_mastery else 0
    if attempts >= p["unlock_max_attempts"]:
        return 0.0
    return p["unlock_bonus"]


def score_arm(
    arm: Arm,
    stats: ArmStats,
    mastery: MasteryRecord | None,
    previous_mastery: MasteryRecord | None,
    recency: PracticeRecency,
    rng: random.Random,
    sampler: Sampler = sample_beta,
    params: dict | None = None,
) -> ArmSample:
    """Draw one Thompson sample for an arm and apply its context bonuses."""
    sample = sampler(stats.alpha, stats.beta, rng)
    mastery_score = mastery.mastery_score if mastery else 0.0

    mastery_bonus = compute_mastery_bonus(mastery_score)
    spacing_bonus = compute_spacing_bonus(recency, params)
    exploration_bonus = compute_exploration_bonus(stats.times_selected, params)
    unlock_bonus = compute_unlock_bonus(arm, mastery, previous_mastery, params)

    adjusted = sample * (1.0 + mastery_bonus + spacing_bonus + exploration_bonus + unlock_bonus)

    return ArmSample(
        arm=arm,
        sample=sample,
        adjusted_sample=adjusted,
        alpha=stats.alpha,
        beta=stats.beta,
        mastery_score=mastery_score,
        mastery_bonus=mastery_bonus,
        spacing_bonus=spacing_bonus,
        exploration_bonus=exploration_bonus,
        unlock_bonus=unlock_bonus,
    )


def build_reasoning(selected: ArmSample, mastery: MasteryRecord | None, recency: PracticeRecency) -> str:
    """Learner-facing explanation for a Thompson Sampling pick."""
    reasons: list[str] = []
    score = selected.mastery_score

    if score < 40:
        reasons.append(f"You're still learning this topic ({score:.0f}% mastery)")
    elif score < 70:
        reasons.append(f"You need more practice with this topic ({score:.0f}% mastery)")
    else:
        reasons.append(f"Maintaining your knowledge of this topic ({score:.0f}% mastery)")

    if recency.never_practiced or recency.days_ago > 7:
        reasons.append("It's been a while since you practiced this")
    elif recency.days_ago > 3:
        reasons.append("Good timing to review before you forget")

    attempts = mastery.questions_attempted if mastery else 0
    if attempts == 0:
        reasons.append("This is a new topic for you")
    elif attempts < 3:
        reasons.append(f"You've only practiced this {attempts} time{'' if attempts == 1 else 's'} before")

    if selected.unlock_bonus > 0:
        reasons.append("You recently unlocked this level")

    return ". ".join(reasons) + "."


def select_arm(
    arms: Sequence[Arm],
    stats: Mapping[Arm, ArmStats],
    mastery: Mapping[Arm, MasteryRecord],
    now: datetime,
    rng: random.Random,
    sampler: Sampler = sample_beta,
    params: dict | None = None,
) -> SelectionResult | NoAvailableArms:
    """
    Thompson Sampling over the unlocked arms.

    Every arm is sampled from its Beta posterior (uniform prior when it has no
    stats), the sample is scaled by (1 + bonuses) and the largest adjusted
    sample wins. Ties go to the arm that appears first in `arms`.

    Args:
        arms: Unlocked arms, in catalog order
        stats: Beta posteriors by arm (missing means prior)
        mastery: Mastery records by arm (missing means never practiced)
        now: Reference time for practice recency
        rng: Seeded random generator
        sampler: Beta sampler, injectable for deterministic tests
        params: Optional overrides merged over get_bandit_defaults()

    Returns:
        SelectionResult with every arm's sample, or NoAvailableArms
    """
    if not arms:
        logger.warning("Thompson Sampling called with no unlocked arms")
        return NoAvailableArms()

    p = {**get_bandit_defaults(), **(params or {})}
    prior = get_beta_defaults()

    samples: list[ArmSample] = []
    best: ArmSample | None = None
    for arm in arms:
        arm_stats = stats.get(arm) or ArmStats(alpha=prior["prior_alpha"], beta=prior["prior_beta"])
        arm_mastery = mastery.get(arm)
        previous = mastery.get(arm.previous) if arm.previous else None
        recency = practice_recency(arm_mastery.last_practiced_at if arm_mastery else None, now)

        scored = score_arm(arm, arm_stats, arm_mastery, previous, recency, rng, sampler, p)
        samples.append(scored)
        # Strict > keeps the first-seen arm on ties
        if best is None or scored.adjusted_sample > best.adjusted_sample:
            best = scored

    selected_mastery = mastery.get(best.arm)
    selected_recency = practice_recency(
        selected_mastery.last_practiced_at if selected_mastery else None, now
    )
    reasoning = build_reasoning(best, selected_mastery, selected_recency)

    logger.info(
        f"Thompson Sampling selected {best.arm.label()}: sample={best.sample:.3f} "
        f"adjusted={best.adjusted_sample:.3f} mastery={best.mastery_score:.1f} arms={len(samples)}"
    )

    return SelectionResult(
        selected_arm=best.arm,
        selection_method=SelectionMethod.THOMPSON_SAMPLING,
        reasoning=reasoning,
        all_arm_samples=samples,
    )


def update_arm_stats(stats: ArmStats, raw_reward: float, normalized_reward: float) -> ArmStats:
    """
    Posterior update after a scored response.

    alpha += r, beta += 1 - r, times_selected += 1, avg_reward tracks the mean
    raw total. Both Beta parameters stay >= 1.
    """
    require(0.0 <= normalized_reward <= 1.0, f"normalized reward must be in [0, 1], got {normalized_reward}")
    n = stats.times_selected + 1
    return replace(
        stats,
        alpha=max(1.0, stats.alpha + normalized_reward),
        beta=max(1.0, stats.beta + (1.0 - normalized_reward)),
        times_selected=n,
        avg_reward=stats.avg_reward + (raw_reward - stats.avg_reward) / n,
    )


def rl_phase(total_attempts: int) -> RLPhase:
    """Learner phase by total attempts across all arms."""
    for upper, phase in RL_PHASE_BOUNDARIES.value:
        if total_attempts < upper:
            return RLPhase(phase)
    return RLPhase.STABILIZATION
