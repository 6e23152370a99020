"""
Selection policy mixer.

Each request draws r ~ U(0, 1) once and routes to one of three branches:

- forced_spacing: review the most urgent overdue topic
- dimension_coverage: revisit a practiced topic from its next knowledge dimension
- thompson_sampling: let the bandit choose

Branch probabilities depend on how many topics are overdue. decide_branch is a
pure function of its inputs; the only randomness is the branch draw and the
uniform coverage pick, both passed in by the caller.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Sequence

from adaptive_tutor.learning_engine.bandit.beta import sample_beta
from adaptive_tutor.learning_engine.bandit.core import Sampler, select_arm
from adaptive_tutor.learning_engine.config import get_mixer_defaults
from adaptive_tutor.learning_engine.constants import (
    CognitiveDimension,
    FallbackReason,
    SelectionMethod,
)
from adaptive_tutor.learning_engine.spacing.core import (
    OverdueTopic,
    TopicPractice,
    find_overdue_topics,
    order_forced_spacing,
)
from adaptive_tutor.learning_engine.types import (
    Arm,
    ArmStats,
    MasteryRecord,
    NoAvailableArms,
    NoOverdueTopics,
    NoPracticedTopics,
    SelectionResult,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BranchProbabilities:
    bandit: float
    coverage: float
    spacing: float

    def to_dict(self) -> dict[str, float]:
        return {"bandit": self.bandit, "coverage": self.coverage, "spacing": self.spacing}


@dataclass
class MixerDecision:
    """
    Outcome of the branch decision.

    `result` is None when Thompson Sampling must run, either because it was
    drawn or because the drawn branch had nothing to offer.
    """

    method: SelectionMethod
    drawn_method: SelectionMethod
    branch_draw: float
    probabilities: BranchProbabilities
    result: SelectionResult | None = None
    fallback_reason: FallbackReason | None = None
    fallback_message: str | None = None
    overdue: list[OverdueTopic] = field(default_factory=list)


def compute_branch_probabilities(overdue_count: int, params: dict | None = None) -> BranchProbabilities:
    """0 overdue: .80/.20/0, 1 overdue: .80/.10/.10, 2+: .70/.10/.20 (bandit/coverage/spacing)."""
    p = {**get_mixer_defaults(), **(params or {})}
    table = p["branch_probabilities"]
    key = min(max(overdue_count, 0), max(table))
    probs = table[key]
    return BranchProbabilities(bandit=probs["bandit"], coverage=probs["coverage"], spacing=probs["spacing"])


def pick_branch(r: float, probabilities: BranchProbabilities) -> SelectionMethod:
    if r < probabilities.spacing:
        return SelectionMethod.FORCED_SPACING
    if r < probabilities.spacing + probabilities.coverage:
        return SelectionMethod.DIMENSION_COVERAGE
    return SelectionMethod.THOMPSON_SAMPLING


def next_dimension(
    last_served: CognitiveDimension | str | None,
    params: dict | None = None,
) -> CognitiveDimension:
    """Round-robin: one past the last served dimension, wrapping; first when none."""
    order = {**get_mixer_defaults(), **(params or {})}["coverage_dimensions"]
    if last_served is None:
        return CognitiveDimension(order[0])
    last = getattr(last_served, "value", last_served)
    if last not in order:
        return CognitiveDimension(order[0])
    return CognitiveDimension(order[(order.index(last) + 1) % len(order)])


def forced_spacing_pick(overdue: Sequence[OverdueTopic]) -> SelectionResult | NoOverdueTopics:
    ordered = order_forced_spacing(overdue)
    if not ordered:
        return NoOverdueTopics()

    head = ordered[0]
    reasoning = (
        f"Review due: last practiced {head.days_since} days ago, "
        f"review interval is {head.interval_days} days ({head.practice.accuracy_pct:.0f}% accuracy)."
    )
    return SelectionResult(
        selected_arm=head.arm,
        selection_method=SelectionMethod.FORCED_SPACING,
        reasoning=reasoning,
    )


def dimension_coverage_pick(
    practiced: Sequence[TopicPractice],
    coverage_draw: float,
    last_dimensions: Mapping[Arm, CognitiveDimension | str],
    params: dict | None = None,
) -> SelectionResult | NoPracticedTopics:
    candidates = [t for t in practiced if t.practiced]
    if not candidates:
        return NoPracticedTopics()

    index = min(int(coverage_draw * len(candidates)), len(candidates) - 1)
    chosen = candidates[index]
    dimension = next_dimension(last_dimensions.get(chosen.arm), params)
    return SelectionResult(
        selected_arm=chosen.arm,
        selection_method=SelectionMethod.DIMENSION_COVERAGE,
        reasoning=f"Broadening your understanding with a {dimension.value} question.",
        dimension=dimension,
    )


def decide_branch(
    r: float,
    overdue: Sequence[OverdueTopic],
    practiced: Sequence[TopicPractice],
    coverage_draw: float,
    last_dimensions: Mapping[Arm, CognitiveDimension | str] | None = None,
    params: dict | None = None,
) -> MixerDecision:
    """
    Route a request to a branch.

    Args:
        r: Branch draw in [0, 1)
        overdue: Overdue topics among the unlocked arms
        practiced: Topics with at least one attempt at their level
        coverage_draw: Uniform draw in [0, 1) for the coverage pick
        last_dimensions: Last served dimension per arm
        params: Optional overrides merged over get_mixer_defaults()

    Returns:
        MixerDecision; result is None when Thompson Sampling must run
    """
    probabilities = compute_branch_probabilities(len(overdue), params)
    drawn = pick_branch(r, probabilities)
    decision = MixerDecision(
        method=drawn,
        drawn_method=drawn,
        branch_draw=r,
        probabilities=probabilities,
        overdue=list(overdue),
    )

    if drawn == SelectionMethod.FORCED_SPACING:
        picked = forced_spacing_pick(overdue)
        if isinstance(picked, NoOverdueTopics):
            decision.method = SelectionMethod.THOMPSON_SAMPLING
            decision.fallback_reason = FallbackReason.NO_OVERDUE_TOPICS
            decision.fallback_message = picked.reason
        else:
            decision.result = picked

    elif drawn == SelectionMethod.DIMENSION_COVERAGE:
        picked = dimension_coverage_pick(practiced, coverage_draw, last_dimensions or {}, params)
        if isinstance(picked, NoPracticedTopics):
            decision.method = SelectionMethod.THOMPSON_SAMPLING
            decision.fallback_reason = FallbackReason.NO_PRACTICED_TOPICS
            decision.fallback_message = picked.reason
        else:
            decision.result = picked

    if decision.result is not None:
        decision.result.branch_draw = r
        decision.result.branch_probabilities = probabilities.to_dict()

    logger.debug(
        f"Mixer: r={r:.3f} overdue={len(overdue)} drawn={drawn.value} "
        f"method={decision.method.value} fallback={decision.fallback_reason}"
    )
    return decision


def select_next(
    arms: Sequence[Arm],
    stats: Mapping[Arm, ArmStats],
    mastery: Mapping[Arm, MasteryRecord],
    now: datetime,
    rng: random.Random,
    last_dimensions: Mapping[Arm, CognitiveDimension | str] | None = None,
    sampler: Sampler = sample_beta,
    params: dict | None = None,
    bandit_params: dict | None = None,
) -> SelectionResult | NoAvailableArms:
    """
    Full selection for one request: mixer branch, then Thompson Sampling if needed.

    Overdue and practiced sets are restricted to the unlocked arms. The branch
    draw comes from `rng` first; the coverage draw is taken only when the
    coverage branch is drawn. `params` overrides the mixer defaults and
    `bandit_params` the Thompson Sampling defaults.
    """
    if not arms:
        logger.warning("Selection requested with no unlocked arms")
        return NoAvailableArms()

    practiced = [
        TopicPractice.from_mastery(mastery[arm], now)
        for arm in arms
        if arm in mastery and mastery[arm].questions_attempted > 0
    ]
    overdue = find_overdue_topics(practiced)

    r = rng.random()
    probabilities = compute_branch_probabilities(len(overdue), params)
    coverage_draw = rng.random() if pick_branch(r, probabilities) == SelectionMethod.DIMENSION_COVERAGE else 0.0

    decision = decide_branch(r, overdue, practiced, coverage_draw, last_dimensions, params)
    if decision.result is not None:
        logger.info(
            f"Selected {decision.result.selected_arm.label()} via {decision.method.value} (r={r:.3f})"
        )
        return decision.result

    result = select_arm(arms, stats, mastery, now, rng, sampler, bandit_params)
    if isinstance(result, NoAvailableArms):
        return result

    result.branch_draw = r
    result.branch_probabilities = probabilities.to_dict()
    if decision.fallback_reason is not None:
        result.fallback_reason = decision.fallback_reason
        result.reasoning = f"{decision.fallback_message}. {result.reasoning}"
    return result
