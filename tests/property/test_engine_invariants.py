"""Property-based tests for selection, reward and progression invariants."""

import math
import random

from hypothesis import given, settings, strategies as st

from adaptive_tutor.learning_engine.bandit.beta import sample_beta
from adaptive_tutor.learning_engine.bandit.core import select_arm, update_arm_stats
from adaptive_tutor.learning_engine.calibration.core import calculate_calibration_reward
from adaptive_tutor.learning_engine.constants import ProgressionAction, RecognitionMethod
from adaptive_tutor.learning_engine.mastery.core import apply_response
from adaptive_tutor.learning_engine.policy.mixer import compute_branch_probabilities, pick_branch
from adaptive_tutor.learning_engine.progression.core import LearnerProgress, evaluate_progression
from adaptive_tutor.learning_engine.reward.core import calculate_reward, normalize_reward
from adaptive_tutor.learning_engine.types import Arm, ArmStats, PracticeRecency, ResponseEvent
from tests.helpers import NOW, constant_sampler, make_mastery

finite = dict(allow_nan=False, allow_infinity=False)


@settings(max_examples=100, deadline=None)
@given(
    alpha=st.floats(min_value=0.001, max_value=500.0, **finite),
    beta=st.floats(min_value=0.001, max_value=500.0, **finite),
    seed=st.integers(min_value=0, max_value=2**32 - 1),
)
def test_beta_sample_in_unit_interval(alpha: float, beta: float, seed: int) -> None:
    """
    Property: sample_beta returns a finite value in [0, 1] for any positive parameters.
    """
    value = sample_beta(alpha, beta, random.Random(seed))

    assert math.isfinite(value)
    assert 0.0 <= value <= 1.0


@settings(max_examples=100, deadline=None)
@given(
    is_correct=st.booleans(),
    confidence=st.integers(min_value=1, max_value=5),
    level=st.integers(min_value=1, max_value=6),
    learning_gain=st.floats(min_value=-200.0, max_value=200.0, **finite),
    mastery=st.floats(min_value=0.0, max_value=100.0, **finite),
    days=st.one_of(st.none(), st.integers(min_value=0, max_value=365)),
    recognition=st.one_of(st.none(), st.sampled_from(list(RecognitionMethod))),
    response_time=st.one_of(st.none(), st.floats(min_value=0.0, max_value=600.0, **finite)),
    streak=st.integers(min_value=0, max_value=50),
)
def test_reward_components_bounded_and_summed(
    is_correct, confidence, level, learning_gain, mastery, days, recognition, response_time, streak
) -> None:
    """
    Property: each reward component stays in its range and the total is their sum.
    """
    event = ResponseEvent(
        is_correct=is_correct,
        confidence_level=confidence,
        level=level,
        question_text="Which organelle produces ATP?",
        recognition_method=recognition,
        response_time_seconds=response_time,
        current_streak=streak,
    )
    recency = PracticeRecency.never() if days is None else PracticeRecency.days(days)

    r = calculate_reward(event, learning_gain, mastery, recency)

    assert -10.0 <= r.learning_gain <= 10.0
    assert -3.0 <= r.calibration <= 3.0
    assert 0.0 <= r.spacing <= 5.0
    assert -4.0 <= r.recognition <= 3.0
    assert -3.0 <= r.response_time <= 5.0
    assert 0.0 <= r.streak <= 5.0
    assert r.total == (r.learning_gain + r.calibration + r.spacing + r.recognition + r.response_time + r.streak)
    if not is_correct:
        assert r.spacing == 0.0 and r.streak == 0.0
    assert 0.0 <= normalize_reward(r.total) <= 1.0


@settings(max_examples=100, deadline=None)
@given(total=st.floats(min_value=-1e6, max_value=1e6, **finite))
def test_normalized_reward_clamped(total: float) -> None:
    assert 0.0 <= normalize_reward(total) <= 1.0


@settings(max_examples=50, deadline=None)
@given(is_correct=st.booleans())
def test_calibration_reward_monotone_in_confidence(is_correct: bool) -> None:
    """
    Property: higher confidence is rewarded more when right and penalized more when wrong.
    """
    rewards = [calculate_calibration_reward(c, is_correct) for c in range(1, 6)]

    for lower, higher in zip(rewards, rewards[1:]):
        if is_correct:
            assert higher > lower
        else:
            assert higher < lower
    assert all(-0.8 <= r <= 0.5 for r in rewards)


@settings(max_examples=100, deadline=None)
@given(
    topics=st.lists(
        st.text(alphabet="abcdefghij", min_size=1, max_size=6), min_size=1, max_size=8, unique=True
    ),
    value=st.floats(min_value=0.0, max_value=1.0, **finite),
)
def test_ties_go_to_first_arm(topics: list[str], value: float) -> None:
    """
    Property: arms with identical state and identical samples resolve to the first in order.
    """
    arms = [Arm(t, 1) for t in topics]

    result = select_arm(arms, {}, {}, NOW, random.Random(0), sampler=constant_sampler(value))

    assert result.selected_arm == arms[0]
    assert len(result.all_arm_samples) == len(arms)


@settings(max_examples=100, deadline=None)
@given(
    level=st.integers(min_value=1, max_value=6),
    mastery=st.floats(min_value=0.0, max_value=100.0, **finite),
    attempts=st.integers(min_value=0, max_value=200),
    calibration_error=st.floats(min_value=0.0, max_value=1.0, **finite),
)
def test_progression_thresholds(level: int, mastery: float, attempts: int, calibration_error: float) -> None:
    """
    Property: the verdict follows the regress/review/advance/maintain rules and the
    target level stays within 1-6.
    """
    decision = evaluate_progression(LearnerProgress(level, attempts, {level: mastery}, calibration_error))

    assert 1 <= decision.target_level <= 6
    assert 0.0 <= decision.confidence <= 1.0

    if mastery < 40 and level > 1:
        assert decision.action == ProgressionAction.REGRESS
        assert decision.target_level == level - 1
    elif mastery < 60:
        assert decision.action == ProgressionAction.REVIEW
    elif mastery >= 80 and attempts >= 5 and calibration_error <= 0.3 and level < 6:
        assert decision.action == ProgressionAction.ADVANCE
        assert decision.target_level == level + 1
        assert 0.3 <= decision.confidence <= 1.0
    else:
        assert decision.action == ProgressionAction.MAINTAIN
        assert decision.target_level == level


@settings(max_examples=100, deadline=None)
@given(answers=st.lists(st.tuples(st.booleans(), st.integers(min_value=1, max_value=5)), max_size=40))
def test_mastery_stays_in_range(answers: list[tuple[bool, int]]) -> None:
    """
    Property: mastery stays in [0, 100] and attempt counters track the answers.
    """
    record = make_mastery("cells")
    for is_correct, confidence in answers:
        record, update = apply_response(record, is_correct, confidence, NOW)
        assert 0.0 <= update.new_mastery <= 100.0

    assert record.questions_attempted == len(answers)
    assert record.questions_correct == sum(1 for c, _ in answers if c)


@settings(max_examples=100, deadline=None)
@given(rewards=st.lists(st.floats(min_value=0.0, max_value=1.0, **finite), max_size=30))
def test_posterior_parameters_never_below_prior(rewards: list[float]) -> None:
    """
    Property: alpha and beta stay >= 1 and alpha + beta grows by exactly one per update.
    """
    stats = ArmStats.prior()
    for r in rewards:
        stats = update_arm_stats(stats, r * 51 - 21, r)
        assert stats.alpha >= 1.0 and stats.beta >= 1.0

    assert stats.times_selected == len(rewards)
    assert math.isclose(stats.alpha + stats.beta, 2.0 + len(rewards), rel_tol=1e-9)


@settings(max_examples=100, deadline=None)
@given(
    r=st.floats(min_value=0.0, max_value=1.0, exclude_max=True, **finite),
    overdue=st.integers(min_value=0, max_value=10),
)
def test_no_spacing_branch_without_overdue(r: float, overdue: int) -> None:
    """
    Property: forced spacing is only drawn when at least one topic is overdue.
    """
    method = pick_branch(r, compute_branch_probabilities(overdue))
    if overdue == 0:
        assert method.value != "forced_spacing"
