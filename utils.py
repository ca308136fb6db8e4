# utils.py
import math
from dataclasses import dataclass
from typing import Sequence

import scipy.optimize

from errors import EmptyDatasetError

# Newton-Raphson settings for the gross IRR
IRR_INITIAL_GUESS = 0.15
IRR_TOLERANCE = 1e-4
IRR_MAX_ITERATIONS = 100
IRR_MIN_RATE = -0.99
IRR_MAX_RATE = 10.0


@dataclass(frozen=True)
class IRRSolution:
    rate: float
    converged: bool
    iterations: int
    # 'newton', 'brentq' or 'none'
    method: str


# Net present value of cash flows at fractional year offsets
def npv(rate: float, cash_flows: Sequence[float], years: Sequence[float]) -> float:
    return sum(cf / (1 + rate) ** t for cf, t in zip(cash_flows, years))


def _npv_and_derivative(rate: float, cash_flows: Sequence[float], years: Sequence[float]):
    value, derivative = 0.0, 0.0
    for cf, t in zip(cash_flows, years):
        value += cf / (1 + rate) ** t
        derivative -= t * cf / (1 + rate) ** (t + 1)
    return value, derivative


def solve_irr(
    cash_flows: Sequence[float],
    years: Sequence[float],
    guess: float = IRR_INITIAL_GUESS,
    tolerance: float = IRR_TOLERANCE,
    max_iterations: int = IRR_MAX_ITERATIONS,
) -> IRRSolution:
    """
    Finds the rate at which the NPV of a cash-flow timeline is zero.

    Newton-Raphson from `guess`, clamping the rate to [-0.99, 10] after each
    step so the iteration cannot run into the singularity at -1. If Newton
    does not settle within `max_iterations`, Brent's method is tried over the
    same bracket. When neither converges, the last clamped Newton estimate
    is returned with `converged=False`.

    A timeline with no inflow (every company written off) has no root and
    comes back at the lower clamp, -0.99; one with no outflow at the upper
    clamp. Both are flagged `converged=False`.

    Args:
        cash_flows: Signed amounts (negative = capital drawn)
        years: Year offset of each cash flow
        guess: Starting rate
        tolerance: Step size below which the rate is accepted
        max_iterations: Newton iteration budget

    Returns:
        IRRSolution with the rate and how it was obtained
    """
    if len(cash_flows) != len(years):
        raise ValueError("cash_flows and years must have the same length")

    # A root needs both a positive and a negative cash flow
    if not any(cf > 0 for cf in cash_flows):
        return IRRSolution(rate=IRR_MIN_RATE, converged=False, iterations=0, method="none")
    if not any(cf < 0 for cf in cash_flows):
        return IRRSolution(rate=IRR_MAX_RATE, converged=False, iterations=0, method="none")

    rate = guess
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        value, derivative = _npv_and_derivative(rate, cash_flows, years)
        if derivative == 0 or not math.isfinite(derivative):
            break

        new_rate = rate - value / derivative

        if abs(new_rate - rate) < tolerance:
            return IRRSolution(rate=new_rate, converged=True, iterations=iterations, method="newton")

        rate = min(max(new_rate, IRR_MIN_RATE), IRR_MAX_RATE)

    # Only a sign change over the bracket guarantees a root for brentq
    try:
        root = scipy.optimize.brentq(lambda r: npv(r, cash_flows, years), IRR_MIN_RATE, IRR_MAX_RATE, xtol=tolerance)
        return IRRSolution(rate=root, converged=True, iterations=iterations, method="brentq")
    except (ValueError, RuntimeError):
        return IRRSolution(rate=rate, converged=False, iterations=iterations, method="none")


def calculate_irr(cash_flows: Sequence[float], years: Sequence[float]) -> float:
    """Best-effort IRR; see solve_irr for the convergence flag."""
    return solve_irr(cash_flows, years).rate


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Order-statistic percentile: the value at index floor(n * p).

    Not interpolated, so P10/P50/P90 are always observed realizations.
    `sorted_values` must already be sorted ascending.
    """
    n = len(sorted_values)
    if n == 0:
        raise EmptyDatasetError("Cannot take a percentile of an empty dataset")
    index = min(int(math.floor(n * p)), n - 1)
    return sorted_values[index]
