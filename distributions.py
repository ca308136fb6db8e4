"""
# distributions.py (v3.0)
# Sampling primitives for company outcomes.

VC returns follow a power law, not a uniform spread. Inside an exit bucket
outcomes cluster near the lower bound and thin out toward the upper bound;
only the top bucket gets a Pareto tail. Every function draws from the
`numpy.random.Generator` it is handed, so a seeded generator reproduces a
run exactly.
"""

import math
import numpy as np

from parameters import SEED

# Tail index of the outlier bucket. Lower alpha means a fatter tail:
# ~1.5 very fat, ~2.0 typical venture returns, ~2.5 thinner
PARETO_ALPHA = 2.0

# Right-skew of the log-normal used inside ordinary buckets
DEFAULT_SKEW = 0.7

# Rejection-sampling budget before falling back to clamping
MAX_REJECTION_ATTEMPTS = 20

# Ranges narrower than this are sampled uniformly
NARROW_RANGE = 0.5


def _open_uniform(rng: np.random.Generator) -> float:
    # rng.random() is in [0, 1); flip it so log() and 1/u are always defined
    return 1.0 - rng.random()


def standard_normal(rng: np.random.Generator) -> float:
    """
    Box-Muller transform: one standard normal draw from two uniforms.

    The conjugate sine value is discarded; draws are cheap and independent.
    """
    u1 = _open_uniform(rng)
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def uniform_random(rng: np.random.Generator, min_value: float, max_value: float) -> float:
    """Uniform draw on [min_value, max_value)."""
    return min_value + rng.random() * (max_value - min_value)


def log_normal_within_bounds(rng: np.random.Generator, min_value: float, max_value: float, skew: float = DEFAULT_SKEW) -> float:
    """
    Right-skewed draw inside [min_value, max_value].

    The location is chosen so the mode sits near 20% of the range, which
    keeps typical outcomes close to the bucket minimum instead of
    over-representing the extreme end as a uniform draw would.

    Args:
        rng: Random number generator
        min_value: Lower bound of the bucket
        max_value: Upper bound of the bucket
        skew: Sigma of the underlying normal (0.5 moderate, 1.0 heavy)

    Returns:
        A value in [min_value, max_value]
    """
    if min_value >= max_value:
        return min_value
    if min_value == 0 and max_value == 0:
        return 0.0

    value_range = max_value - min_value
    mu = math.log(0.2 * value_range + 0.01)

    sample = math.exp(mu + skew * standard_normal(rng))

    attempts = 0
    while (sample < 0 or sample > value_range) and attempts < MAX_REJECTION_ATTEMPTS:
        sample = math.exp(mu + skew * standard_normal(rng))
        attempts += 1

    # Clamp as fallback
    sample = max(0.0, min(value_range, sample))

    return min_value + sample


def pareto_sample(rng: np.random.Generator, x_min: float, alpha: float, x_max: float) -> float:
    """
    Inverse-CDF Pareto draw, P(X > x) = (x_min / x) ** alpha, capped at x_max.
    """
    u = _open_uniform(rng)
    sample = x_min / u ** (1.0 / alpha)
    return min(sample, x_max)


def sample_return_multiple(rng: np.random.Generator, min_multiple: float, max_multiple: float, is_outlier: bool = False) -> float:
    """
    Draws a return multiple inside one exit bucket.

    Dispatch:
    - (0, 0) bucket: total loss, always 0
    - range narrower than 0.5: uniform, skew buys nothing there
    - outlier bucket: Pareto power-law tail
    - everything else: log-normal with the mode near the minimum
    """
    if min_multiple == 0 and max_multiple == 0:
        return 0.0

    if max_multiple - min_multiple < NARROW_RANGE:
        return uniform_random(rng, min_multiple, max_multiple)

    if is_outlier:
        return pareto_sample(rng, min_multiple, PARETO_ALPHA, max_multiple)

    return log_normal_within_bounds(rng, min_multiple, max_multiple, DEFAULT_SKEW)


# (upper bound on the multiple, base mean delay, stage-bias weight, stdev)
# Failures wind down early; outliers need years to scale into an IPO
_EXIT_TIMING_TIERS = [
    (0.0, 4.5, 0.5, 1.2),
    (1.0, 5.5, 0.5, 1.3),
    (5.0, 6.0, 0.7, 1.2),
    (20.0, 7.0, 0.8, 1.5),
    (math.inf, 8.5, 1.0, 1.8),
]


def _exit_timing(return_multiple: float, stage_bias: float):
    if return_multiple == 0:
        _, mean, weight, std = _EXIT_TIMING_TIERS[0]
        return mean + stage_bias * weight, std
    for upper, mean, weight, std in _EXIT_TIMING_TIERS[1:]:
        if return_multiple < upper:
            return mean + stage_bias * weight, std
    _, mean, weight, std = _EXIT_TIMING_TIERS[-1]
    return mean + stage_bias * weight, std


def sample_exit_year(rng: np.random.Generator, return_multiple: float, stage: str, exit_window_min: float, exit_window_max: float) -> float:
    """
    Samples a fractional exit year correlated with outcome quality.

    Seed companies take roughly a year longer than Series A ones. The delay
    is log-normal with the tier's mean and standard deviation, then clamped
    to [exit_window_min, exit_window_max + 2].

    Args:
        rng: Random number generator
        return_multiple: The company's sampled multiple
        stage: 'seed' or 'seriesA'
        exit_window_min: Earliest exit year
        exit_window_max: Latest planned exit year

    Returns:
        Exit year as a float
    """
    stage_bias = 1.0 if stage == SEED else 0.0
    mean_delay, std_delay = _exit_timing(return_multiple, stage_bias)

    variance_ratio = math.log(1 + (std_delay / mean_delay) ** 2)
    mu = math.log(mean_delay) - 0.5 * variance_ratio
    sigma = math.sqrt(variance_ratio)

    exit_year = math.exp(mu + sigma * standard_normal(rng))

    return max(exit_window_min, min(exit_window_max + 2, exit_year))
