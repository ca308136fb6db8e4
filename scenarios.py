"""
# scenarios.py (v3.0)
# Market stress scenarios: rerun a portfolio under shocked exit assumptions

Each scenario scales the total-loss probability, scales the exit multiples
of every other bucket and shifts (or replaces) the exit window. Running a
set of them side by side shows how a portfolio holds up in a downturn.
"""

import copy
import logging
import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from defaults import TOTAL_LOSS_LABEL
from engine import calculate_summary_statistics, run_simulations
from errors import EmptyDatasetError, InvalidInputError
from parameters import PortfolioParameters, SimulationResult, StageParameters, SummaryStatistics

# Realizations per scenario when the caller does not say
DEFAULT_STRESS_SIMULATIONS = 500

# Total-loss probability is never pushed above this
MAX_TOTAL_LOSS_PROBABILITY = 95.0

# Upper edge of the MOIC histogram; the tail beyond it is not binned
HISTOGRAM_MAX_MOIC = 8.0


@dataclass(frozen=True)
class StressScenario:
    name: str
    description: str
    # Multiplier on the total-loss bucket probability
    failure_factor: float = 1.0
    # Multiplier on min/max multiples of every other bucket
    multiple_factor: float = 1.0
    # Years added to both ends of the exit window
    exit_shift: float = 0.0
    # Replaces the exit window outright when set
    exit_window: Optional[Tuple[float, float]] = None


@dataclass
class StressTestResult:
    scenario: StressScenario
    parameters: PortfolioParameters
    summary: SummaryStatistics
    results: List[SimulationResult] = field(default_factory=list, repr=False)


STRESS_SCENARIOS = [
    StressScenario(
        name="Base Case",
        description="Default parameters with no modifications (control scenario)",
    ),
    StressScenario(
        name="2008 Financial Crisis",
        description="Failure rate +50%, multiples x0.65, exit windows +2.5 years",
        failure_factor=1.5,
        multiple_factor=0.65,
        exit_shift=2.5,
    ),
    StressScenario(
        name="2021 Bull Market",
        description="Failure rate -20%, multiples x1.4, exits -1 year",
        failure_factor=0.8,
        multiple_factor=1.4,
        exit_shift=-1.0,
    ),
    StressScenario(
        name="Rate Hike (2022-23)",
        description="Failure rate +30%, multiples x0.75, exits +1.5 years",
        failure_factor=1.3,
        multiple_factor=0.75,
        exit_shift=1.5,
    ),
    StressScenario(
        name="Exit Drought",
        description="No early exits: exit window pushed to 7-12 years",
        exit_window=(7, 12),
    ),
]


def modify_stage_failure_rate(stage: StageParameters, factor: float) -> StageParameters:
    """
    Scales the total-loss probability and rebalances the other buckets.

    The new total-loss probability is clamped to [0, 95]. The change is taken
    out of the other buckets in proportion to their size, and the result is
    renormalized to sum to 100. A stage without a total-loss bucket comes
    back as an unchanged copy.
    """
    buckets = list(stage.exit_buckets)
    loss_idx = next((i for i, b in enumerate(buckets) if b.label == TOTAL_LOSS_LABEL), None)
    if loss_idx is None:
        return replace(stage, exit_buckets=buckets)

    old_prob = buckets[loss_idx].probability
    new_prob = min(max(old_prob * factor, 0.0), MAX_TOTAL_LOSS_PROBABILITY)
    diff = new_prob - old_prob

    other_total = sum(b.probability for i, b in enumerate(buckets) if i != loss_idx)
    if other_total > 0:
        for i, b in enumerate(buckets):
            if i != loss_idx:
                buckets[i] = replace(b, probability=max(b.probability - diff * b.probability / other_total, 0.0))
    buckets[loss_idx] = replace(buckets[loss_idx], probability=new_prob)

    total = sum(b.probability for b in buckets)
    if total > 0:
        buckets = [replace(b, probability=b.probability / total * 100) for b in buckets]

    return replace(stage, exit_buckets=buckets)


def modify_stage_multiples(stage: StageParameters, factor: float) -> StageParameters:
    """Scales the multiple range of every bucket except the total loss."""
    buckets = [
        b if b.label == TOTAL_LOSS_LABEL
        else replace(b, min_multiple=b.min_multiple * factor, max_multiple=b.max_multiple * factor)
        for b in stage.exit_buckets
    ]
    return replace(stage, exit_buckets=buckets)


def apply_stress_scenario(params: PortfolioParameters, scenario: StressScenario) -> PortfolioParameters:
    """Returns a shocked copy of `params`; the input is left untouched."""
    p = copy.deepcopy(params)

    if scenario.failure_factor != 1.0:
        p.seed_stage = modify_stage_failure_rate(p.seed_stage, scenario.failure_factor)
        p.series_a_stage = modify_stage_failure_rate(p.series_a_stage, scenario.failure_factor)
    if scenario.multiple_factor != 1.0:
        p.seed_stage = modify_stage_multiples(p.seed_stage, scenario.multiple_factor)
        p.series_a_stage = modify_stage_multiples(p.series_a_stage, scenario.multiple_factor)

    if scenario.exit_window is not None:
        p.exit_window_min, p.exit_window_max = scenario.exit_window
    elif scenario.exit_shift != 0:
        # Keep the window at least one year long and starting no earlier than year 1
        p.exit_window_min = max(1, p.exit_window_min + scenario.exit_shift)
        p.exit_window_max = max(p.exit_window_min + 1, p.exit_window_max + scenario.exit_shift)

    return p


def custom_scenario(failure_factor: float = 1.0, multiple_factor: float = 1.0, exit_shift: float = 0.0) -> StressScenario:
    """A user-defined scenario, named 'Custom'."""
    sign = "+" if exit_shift >= 0 else ""
    return StressScenario(
        name="Custom",
        description=f"Failure x{failure_factor:.1f}, Multiples x{multiple_factor:.1f}, Exit {sign}{exit_shift:.1f}y",
        failure_factor=failure_factor,
        multiple_factor=multiple_factor,
        exit_shift=exit_shift,
    )


def run_stress_test(
    base_params: PortfolioParameters,
    scenario_names: Optional[Sequence[str]] = None,
    custom: Optional[StressScenario] = None,
    seed: Optional[int] = None,
    num_simulations: Optional[int] = None,
) -> List[StressTestResult]:
    """
    Runs the portfolio under each selected scenario.

    Args:
        base_params: Unshocked portfolio
        scenario_names: Names from STRESS_SCENARIOS to run; all when None
        custom: Extra scenario appended after the named ones
        seed: Master seed; each scenario gets its own derived seed
        num_simulations: Realizations per scenario (default 500)

    Returns:
        One StressTestResult per scenario, in STRESS_SCENARIOS order

    Raises:
        InvalidInputError: for an unknown scenario name
    """
    if scenario_names is None:
        selected = list(STRESS_SCENARIOS)
    else:
        known = {s.name for s in STRESS_SCENARIOS}
        unknown = [n for n in scenario_names if n not in known]
        if unknown:
            raise InvalidInputError(f"Unknown stress scenario(s): {', '.join(unknown)}")
        selected = [s for s in STRESS_SCENARIOS if s.name in scenario_names]
    if custom is not None:
        selected.append(custom)

    sims = num_simulations if num_simulations is not None else DEFAULT_STRESS_SIMULATIONS
    master_rng = np.random.default_rng(seed)

    stress_results: List[StressTestResult] = []
    for scenario in selected:
        params = apply_stress_scenario(base_params, scenario)
        params.num_simulations = sims

        logging.info(f"Running stress scenario '{scenario.name}': {scenario.description}")
        results = run_simulations(params, seed=int(master_rng.integers(1e9)))
        stress_results.append(StressTestResult(
            scenario=scenario,
            parameters=params,
            summary=calculate_summary_statistics(results),
            results=results,
        ))

    return stress_results


def build_moic_histogram(stress_results: Sequence[StressTestResult], bin_count: int = 30) -> pd.DataFrame:
    """
    Share of runs (in %) per gross MOIC bin, one column per scenario.

    Bins share one range across all scenarios, from the lowest MOIC rounded
    down to 0.1x (never below 0) up to the highest MOIC capped at 8x. When
    that range is empty (all MOICs equal, or all above 8x) it is widened so
    every bin is at least 0.1x wide. Each share is rounded to one decimal place.
    """
    all_moics = [r.gross_moic for sr in stress_results for r in sr.results]
    if not all_moics:
        raise EmptyDatasetError("Cannot build a histogram without simulation results")

    global_min = max(0.0, math.floor(min(all_moics) * 10) / 10)
    global_max = min(max(all_moics), HISTOGRAM_MAX_MOIC)
    if global_max <= global_min:
        # Every MOIC identical or above the cap; bins are at least 0.1x wide
        global_max = max(max(all_moics), global_min + 0.1 * bin_count)
    bin_width = (global_max - global_min) / bin_count

    rows = []
    for i in range(bin_count):
        bin_start = global_min + i * bin_width
        bin_end = bin_start + bin_width
        row = {'bin': f"{bin_start:.1f}x", 'bin_start': bin_start, 'bin_end': bin_end}
        for sr in stress_results:
            moics = np.array([r.gross_moic for r in sr.results])
            count = int(np.sum((moics >= bin_start) & (moics < bin_end)))
            share = count / len(moics) * 100 if len(moics) else 0.0
            row[sr.scenario.name] = math.floor(share * 10 + 0.5) / 10
        rows.append(row)

    return pd.DataFrame(rows)
