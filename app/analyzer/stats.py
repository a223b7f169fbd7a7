"""HYPOLAB — Statistical Helpers.

Closed-form approximations kept dependency-free so results match the values
marketers already see in the dashboard.
"""

import math
import random
from typing import NamedTuple, Optional


def normal_cdf(z: float) -> float:
    """Standard normal CDF (Zelen & Severo 26.2.17, |error| < 7.5e-8)."""
    t = 1 / (1 + 0.2316419 * abs(z))
    d = 0.3989423 * math.exp(-z * z / 2)
    prob = d * t * (
        0.3193815 + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274)))
    )
    if z > 0:
        prob = 1 - prob
    return prob


def two_sided_p_value(z: float) -> float:
    return 2 * (1 - normal_cdf(abs(z)))


class ZTest(NamedTuple):
    delta: float
    se: float
    z: float
    p_value: float

    @property
    def ci95(self) -> tuple[float, float]:
        return (self.delta - 1.96 * self.se, self.delta + 1.96 * self.se)


def two_proportion_z_test(
    success_a: float, total_a: float, success_b: float, total_b: float
) -> ZTest:
    """Pooled two-proportion z-test of B against A."""
    p1 = success_a / total_a
    p2 = success_b / total_b
    pooled = (success_a + success_b) / (total_a + total_b)
    se = math.sqrt(max(pooled * (1 - pooled) * (1 / total_a + 1 / total_b), 1e-12))
    z = (p2 - p1) / se
    return ZTest(p2 - p1, se, z, two_sided_p_value(z))


def rate_z_test(
    rate_a: float, rate_b: float, exposure_a: float, exposure_b: float
) -> ZTest:
    """Poisson-style z-test on two per-exposure rates."""
    delta = rate_b - rate_a
    se = math.sqrt(
        max((abs(rate_a) + abs(rate_b)) / max(exposure_a + exposure_b, 1), 1e-6)
    )
    z = delta / se
    return ZTest(delta, se, z, two_sided_p_value(z))


def sample_beta_approx(a: float, b: float, rng: random.Random) -> float:
    """Cheap Beta(a, b) stand-in: ``U1^(1/a) / (U1^(1/a) + U2^(1/b))``.

    Not an exact Beta draw (the exact construction is a Gamma ratio); kept
    because stored verdicts were produced with it.
    """
    x = rng.random() ** (1 / a)
    y = rng.random() ** (1 / b)
    total = x + y
    # Both uniforms at 0.0: no ordering, so neither arm wins the draw
    return x / total if total > 0 else math.nan


def probability_b_beats_a(
    alpha_a: float,
    beta_a: float,
    alpha_b: float,
    beta_b: float,
    samples: int = 3000,
    rng: Optional[random.Random] = None,
) -> float:
    """Monte-Carlo estimate of P(B > A) for two Beta posteriors."""
    rng = rng or random.Random()
    wins = 0
    for _ in range(samples):
        if sample_beta_approx(alpha_b, beta_b, rng) > sample_beta_approx(
            alpha_a, beta_a, rng
        ):
            wins += 1
    return wins / samples
