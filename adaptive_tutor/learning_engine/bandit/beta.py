"""
Beta distribution sampling and summary statistics for Thompson Sampling.

Sampling uses the Gamma ratio construction: if X ~ Gamma(a, 1) and
Y ~ Gamma(b, 1) then X / (X + Y) ~ Beta(a, b). Gamma draws use the
Marsaglia-Tsang squeeze method, which stays stable for shape parameters from
just above zero up to the thousands that long-lived arms accumulate.

All sampling functions take an explicit random.Random so that a selection can
be replayed from its seed.
"""

import math
import random

from adaptive_tutor.core.errors import require
from adaptive_tutor.learning_engine.config import BETA_CI_Z_SCORES, BETA_DEGENERATE_THRESHOLD


def _standard_normal(rng: random.Random) -> float:
    """Box-Muller transform. Uses 1 - U so the log argument is never zero."""
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def sample_gamma(shape: float, rng: random.Random, rate: float = 1.0) -> float:
    """
    Draw from Gamma(shape, rate).

    Args:
        shape: Shape parameter k > 0
        rng: Seeded random generator
        rate: Rate parameter (inverse scale), default 1

    Returns:
        A positive Gamma variate

    Raises:
        InvalidParameterError: If shape or rate is not positive
    """
    require(shape > 0, f"Gamma shape must be > 0, got {shape}", shape=shape)
    require(rate > 0, f"Gamma rate must be > 0, got {rate}", rate=rate)

    if shape < 1.0:
        # Boost: Gamma(k) = Gamma(k + 1) * U^(1/k)
        u = 1.0 - rng.random()
        return sample_gamma(shape + 1.0, rng, rate) * u ** (1.0 / shape)

    d = shape - 1.0 / 3.0
    c = 1.0 / math.sqrt(9.0 * d)

    while True:
        x = _standard_normal(rng)
        v = 1.0 + c * x
        if v <= 0:
            continue
        v = v * v * v
        u = 1.0 - rng.random()

        if u < 1.0 - 0.0331 * x**4:
            return d * v / rate
        if math.log(u) < 0.5 * x * x + d * (1.0 - v + math.log(v)):
            return d * v / rate


def sample_beta(alpha: float, beta: float, rng: random.Random) -> float:
    """
    Draw a Thompson sample from Beta(alpha, beta).

    Either parameter below the degenerate threshold (0.01) is treated as
    uninformative and a uniform draw is returned instead.

    Raises:
        InvalidParameterError: If either parameter is not positive
    """
    require(alpha > 0, f"Beta alpha must be > 0, got {alpha}", alpha=alpha)
    require(beta > 0, f"Beta beta must be > 0, got {beta}", beta=beta)

    threshold = BETA_DEGENERATE_THRESHOLD.value
    if alpha < threshold or beta < threshold:
        return rng.random()

    x = sample_gamma(alpha, rng)
    y = sample_gamma(beta, rng)
    if x + y == 0.0:
        # Both draws underflowed (tiny shapes); fall back to the mean
        return alpha / (alpha + beta)
    return x / (x + y)


def beta_mean(alpha: float, beta: float) -> float:
    require(alpha > 0 and beta > 0, f"Beta parameters must be > 0, got ({alpha}, {beta})")
    return alpha / (alpha + beta)


def beta_variance(alpha: float, beta: float) -> float:
    require(alpha > 0 and beta > 0, f"Beta parameters must be > 0, got ({alpha}, {beta})")
    total = alpha + beta
    return (alpha * beta) / (total * total * (total + 1.0))


def beta_confidence_interval(
    alpha: float,
    beta: float,
    confidence: float = 0.95,
) -> tuple[float, float]:
    """
    Normal-approximation confidence interval for Beta(alpha, beta).

    Supported confidence levels are 0.90, 0.95 and 0.99. Bounds are clipped
    to [0, 1].
    """
    z_scores = BETA_CI_Z_SCORES.value
    require(
        confidence in z_scores,
        f"confidence must be one of {sorted(z_scores)}, got {confidence}",
        confidence=confidence,
    )
    mean = beta_mean(alpha, beta)
    std = math.sqrt(beta_variance(alpha, beta))
    z = z_scores[confidence]
    return max(0.0, mean - z * std), min(1.0, mean + z * std)
