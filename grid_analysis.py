# ==============================================================================
# --- VC Portfolio Model: Portfolio Construction Grid (v3.0) ---
# ==============================================================================
#
# Sweeps portfolio size against stage mix, runs a full Monte Carlo batch per
# cell, and ranks the resulting strategies.
#
# ==============================================================================
import logging
import math
import threading
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from engine import calculate_summary_statistics, run_simulations, split_company_counts
from errors import EmptyDatasetError, SimulationError
from parameters import (
    BestStrategy, FailedGridCell, GridAnalysisParameters, GridAnalysisResult, GridScenario,
    PortfolioParameters, SimulationResult
)
from parameters_loader import validate_grid_parameters

# The investment-count axis never has more than this many values
MAX_COUNT_BUCKETS = 10

ProgressCallback = Callable[[int, int], None]


def generate_investment_count_buckets(count_min: int, count_max: int) -> List[int]:
    """
    Evenly spaced portfolio sizes from count_min to count_max, at most 10 of them.

    Examples:
        generate_investment_count_buckets(20, 20) -> [20]
        generate_investment_count_buckets(10, 40) -> [10, 14, 18, 22, 26, 30, 34, 38, 40]
    """
    if count_min == count_max:
        return [count_min]

    step = math.ceil((count_max - count_min) / (MAX_COUNT_BUCKETS - 1))
    buckets = list(range(count_min, count_max + 1, step))
    if buckets[-1] != count_max:
        buckets.append(count_max)
    return buckets


def calculate_deployment_metrics(results: Sequence[SimulationResult], fund_size: float) -> Dict[str, float]:
    """Average deployed capital and company mix across a batch of realizations."""
    if len(results) == 0:
        raise EmptyDatasetError("Cannot compute deployment metrics of zero simulation results")

    n = len(results)
    avg_deployed = sum(r.total_invested_capital for r in results) / n
    return {
        'avg_deployed_capital': avg_deployed,
        'deployment_rate': (avg_deployed / fund_size) * 100,
        'undeployed_capital': fund_size - avg_deployed,
        'avg_num_seed_companies': sum(r.num_seed_companies for r in results) / n,
        'avg_num_series_a_companies': sum(r.num_series_a_companies for r in results) / n,
    }


def calculate_target_capital(num_companies: int, seed_percentage: float, grid_params: GridAnalysisParameters) -> float:
    """Capital the strategy sets out to deploy, follow-on reserves included."""
    num_seed, num_series_a = split_company_counts(num_companies, seed_percentage)
    seed_per_company = grid_params.seed_stage.avg_check_size * (1 + grid_params.seed_stage.follow_on_reserve_ratio / 100)
    series_a_per_company = grid_params.series_a_stage.avg_check_size * (1 + grid_params.series_a_stage.follow_on_reserve_ratio / 100)
    return num_seed * seed_per_company + num_series_a * series_a_per_company


def build_portfolio_parameters(grid_params: GridAnalysisParameters, num_companies: int, seed_percentage: float) -> PortfolioParameters:
    return PortfolioParameters(
        fund_size=grid_params.fund_size,
        num_companies=num_companies,
        seed_percentage=seed_percentage,
        seed_stage=grid_params.seed_stage,
        series_a_stage=grid_params.series_a_stage,
        investment_period=grid_params.investment_period,
        fund_life=grid_params.fund_life,
        exit_window_min=grid_params.exit_window_min,
        exit_window_max=grid_params.exit_window_max,
        num_simulations=grid_params.num_simulations_per_scenario,
        fee_structure=grid_params.fee_structure,
    )


# Module level so it can be pickled into worker processes
def _evaluate_cell(grid_params: GridAnalysisParameters, num_companies: int, seed_percentage: float, cell_seed: int) -> GridScenario:
    portfolio_params = build_portfolio_parameters(grid_params, num_companies, seed_percentage)

    results = run_simulations(portfolio_params, seed=cell_seed)
    summary = calculate_summary_statistics(results)
    deployment = calculate_deployment_metrics(results, grid_params.fund_size)

    return GridScenario(
        num_companies=num_companies,
        seed_percentage=seed_percentage,
        summary=summary,
        target_capital=calculate_target_capital(num_companies, seed_percentage, grid_params),
        deployed_capital=deployment['avg_deployed_capital'],
        deployment_rate=deployment['deployment_rate'],
        undeployed_capital=deployment['undeployed_capital'],
        avg_num_seed_companies=deployment['avg_num_seed_companies'],
        avg_num_series_a_companies=deployment['avg_num_series_a_companies'],
        results=results,
    )


def _run_grid(
    grid_params: GridAnalysisParameters,
    on_progress: Optional[ProgressCallback] = None,
    seed: Optional[int] = None,
    n_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> Tuple[List[GridScenario], List[FailedGridCell], bool]:
    """Evaluates every cell; returns (scenarios in grid order, failed cells, cancelled)."""
    validate_grid_parameters(grid_params)

    counts = generate_investment_count_buckets(grid_params.investment_count_min, grid_params.investment_count_max)
    cells = [(count, pct) for count in counts for pct in grid_params.seed_percentages]
    total = len(cells)

    # Seeds are fixed per cell up front so results do not depend on scheduling
    master_rng = np.random.default_rng(seed)
    cell_seeds = [int(master_rng.integers(1e9)) for _ in cells]

    logging.info(f"Starting grid analysis: {total} scenarios x {grid_params.num_simulations_per_scenario} simulations, n_workers={n_workers}")

    completed: Dict[int, GridScenario] = {}
    failed: Dict[int, FailedGridCell] = {}
    cancelled = False
    done = 0

    def _record_failure(index: int, error: Exception) -> None:
        count, pct = cells[index]
        message = f"Grid cell ({count} companies, {pct}% seed) failed and was skipped: {error}"
        if isinstance(error, SimulationError):
            logging.warning(message)
        else:
            # Unexpected; keep the traceback
            logging.exception(message)
        failed[index] = FailedGridCell(num_companies=count, seed_percentage=pct, error=str(error))

    if n_workers > 1:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            futures = {
                executor.submit(_evaluate_cell, grid_params, count, pct, cell_seed): i
                for i, ((count, pct), cell_seed) in enumerate(zip(cells, cell_seeds))
            }
            for future in as_completed(futures):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    for f in futures:
                        f.cancel()
                    break

                index = futures[future]
                try:
                    completed[index] = future.result()
                except Exception as e:
                    _record_failure(index, e)

                done += 1
                if on_progress is not None:
                    on_progress(done, total)
    else:
        for index, ((count, pct), cell_seed) in enumerate(zip(cells, cell_seeds)):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break

            try:
                completed[index] = _evaluate_cell(grid_params, count, pct, cell_seed)
            except Exception as e:
                _record_failure(index, e)

            done += 1
            if on_progress is not None:
                on_progress(done, total)

            # Yield to other threads between cells
            time.sleep(0)

    if cancelled:
        logging.info(f"Grid analysis cancelled after {done}/{total} scenarios")
    else:
        logging.info(f"Grid analysis complete: {len(completed)} scenarios, {len(failed)} failed")

    scenarios = [completed[i] for i in sorted(completed)]
    return scenarios, [failed[i] for i in sorted(failed)], cancelled


def run_grid_analysis(
    grid_params: GridAnalysisParameters,
    on_progress: Optional[ProgressCallback] = None,
    seed: Optional[int] = None,
    n_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> List[GridScenario]:
    """
    Runs a Monte Carlo batch for every (portfolio size, seed %) combination.

    Args:
        grid_params: Grid definition and shared stage economics
        on_progress: Called with (completed, total) after each cell
        seed: Master seed; each cell gets its own derived seed
        n_workers: Worker processes; 1 runs the cells in this thread
        cancel_event: When set, no further cells are started and the
            completed ones are returned

    Returns:
        GridScenario list in grid order (counts outer, seed % inner). Cells
        that raised are logged and left out.
    """
    scenarios, _, _ = _run_grid(grid_params, on_progress, seed, n_workers, cancel_event)
    return scenarios


# --------------------------------------------------------------------------
# --- Strategy Ranking ---
# --------------------------------------------------------------------------

def _efficiency(scenario: GridScenario) -> float:
    return scenario.summary.median_moic * (scenario.deployment_rate / 100)


def _describe(scenario: GridScenario) -> str:
    return f"{scenario.num_companies} companies with {scenario.seed_percentage:g}% seed"


def identify_best_strategies(scenarios: Sequence[GridScenario]) -> List[BestStrategy]:
    """
    Picks up to four standout scenarios: median MOIC, median IRR, downside and
    capital efficiency. Ties go to the earlier scenario.
    """
    if len(scenarios) == 0:
        raise EmptyDatasetError("Cannot rank strategies of an empty grid")

    strategies: List[BestStrategy] = []

    # max() keeps the first of equal elements
    highest_moic = max(scenarios, key=lambda s: s.summary.median_moic)
    strategies.append(BestStrategy(
        scenario=highest_moic,
        criterion="Highest Median MOIC",
        reasoning=f"{_describe(highest_moic)} achieves {highest_moic.summary.median_moic:.2f}x MOIC "
                  f"with {highest_moic.deployment_rate:.0f}% capital deployment.",
    ))

    highest_irr = max(scenarios, key=lambda s: s.summary.median_irr)
    if highest_irr is not highest_moic:
        strategies.append(BestStrategy(
            scenario=highest_irr,
            criterion="Highest Median IRR",
            reasoning=f"{_describe(highest_irr)} achieves {highest_irr.summary.median_irr * 100:.1f}% IRR "
                      f"with {highest_irr.deployment_rate:.0f}% deployment.",
        ))

    best_downside = max(scenarios, key=lambda s: s.summary.moic_p10)
    strategies.append(BestStrategy(
        scenario=best_downside,
        criterion="Best Downside Protection",
        reasoning=f"{_describe(best_downside)} has P10 MOIC of {best_downside.summary.moic_p10:.2f}x, "
                  f"offering the best downside protection.",
    ))

    most_efficient = max(scenarios, key=_efficiency)
    if not any(s.scenario is most_efficient for s in strategies):
        strategies.append(BestStrategy(
            scenario=most_efficient,
            criterion="Most Capital Efficient",
            reasoning=f"{_describe(most_efficient)} balances returns ({most_efficient.summary.median_moic:.2f}x MOIC) "
                      f"with deployment efficiency ({most_efficient.deployment_rate:.0f}%).",
        ))

    return strategies[:4]


def identify_worst_strategies(scenarios: Sequence[GridScenario]) -> List[BestStrategy]:
    """Mirror of identify_best_strategies, at most three entries."""
    if len(scenarios) == 0:
        raise EmptyDatasetError("Cannot rank strategies of an empty grid")

    strategies: List[BestStrategy] = []

    lowest_moic = min(scenarios, key=lambda s: s.summary.median_moic)
    strategies.append(BestStrategy(
        scenario=lowest_moic,
        criterion="Lowest Median MOIC",
        reasoning=f"{_describe(lowest_moic)} achieves only {lowest_moic.summary.median_moic:.2f}x MOIC, "
                  f"underperforming the portfolio.",
    ))

    worst_downside = min(scenarios, key=lambda s: s.summary.moic_p10)
    if worst_downside is not lowest_moic:
        strategies.append(BestStrategy(
            scenario=worst_downside,
            criterion="Worst Downside Protection",
            reasoning=f"{_describe(worst_downside)} has P10 MOIC of {worst_downside.summary.moic_p10:.2f}x, "
                      f"offering poor downside protection.",
        ))

    least_efficient = min(scenarios, key=_efficiency)
    if not any(s.scenario is least_efficient for s in strategies):
        strategies.append(BestStrategy(
            scenario=least_efficient,
            criterion="Least Capital Efficient",
            reasoning=f"{_describe(least_efficient)} delivers poor returns ({least_efficient.summary.median_moic:.2f}x MOIC) "
                      f"with low deployment ({least_efficient.deployment_rate:.0f}%).",
        ))

    return strategies[:3]


def _mean(values) -> float:
    values = list(values)
    return sum(values) / len(values)


def _relative_gain(higher: float, lower: float) -> str:
    # No percentage against a zero baseline
    if lower > 0:
        return f"{(higher / lower - 1) * 100:.0f}% higher"
    return "higher"


def generate_commentary(scenarios: Sequence[GridScenario], grid_params: GridAnalysisParameters) -> str:
    """
    Markdown narrative of the grid: overall spread, stage mix, portfolio size
    and capital deployment. Sections without data on both sides are omitted.
    """
    if len(scenarios) == 0:
        raise EmptyDatasetError("Cannot comment on an empty grid")

    lines: List[str] = []

    median_moics = [s.summary.median_moic for s in scenarios]
    avg_moic = _mean(median_moics)
    avg_irr = _mean(s.summary.median_irr for s in scenarios)
    avg_deployment = _mean(s.deployment_rate for s in scenarios)

    lines.append(f"**Portfolio Construction Analysis: ${grid_params.fund_size:g}M Fund**\n")
    lines.append(
        f"Across {len(scenarios)} scenarios, the median MOIC ranges from {min(median_moics):.2f}x to "
        f"{max(median_moics):.2f}x, with an average of {avg_moic:.2f}x and an average median IRR of "
        f"{avg_irr * 100:.1f}%. Capital deployment efficiency varies significantly, averaging "
        f"{avg_deployment:.0f}% across all configurations.\n"
    )

    # --- Stage mix ---
    seed_heavy = [s for s in scenarios if s.seed_percentage >= 75]
    series_a_heavy = [s for s in scenarios if s.seed_percentage <= 25]

    if seed_heavy and series_a_heavy:
        seed_moic = _mean(s.summary.median_moic for s in seed_heavy)
        series_a_moic = _mean(s.summary.median_moic for s in series_a_heavy)
        seed_deployment = _mean(s.deployment_rate for s in seed_heavy)
        series_a_deployment = _mean(s.deployment_rate for s in series_a_heavy)

        lines.append("**Stage Mix Insights:**\n")
        if seed_moic > series_a_moic * 1.1:
            lines.append(
                f"Seed-heavy portfolios (≥75% seed) demonstrate {_relative_gain(seed_moic, series_a_moic)} "
                f"median returns ({seed_moic:.2f}x vs {series_a_moic:.2f}x) but deploy only {seed_deployment:.0f}% "
                f"of capital on average due to higher failure rates limiting follow-on deployment.\n"
            )
        elif series_a_moic > seed_moic * 1.1:
            lines.append(
                f"Series A-heavy portfolios (≤25% seed) show {_relative_gain(series_a_moic, seed_moic)} "
                f"returns with superior deployment efficiency ({series_a_deployment:.0f}% vs {seed_deployment:.0f}%), "
                f"suggesting more consistent capital deployment opportunities.\n"
            )
        else:
            lines.append(
                f"Returns are relatively balanced across stage mixes (seed-heavy: {seed_moic:.2f}x, "
                f"Series A-heavy: {series_a_moic:.2f}x), though deployment efficiency favors Series A "
                f"strategies ({series_a_deployment:.0f}% vs {seed_deployment:.0f}%).\n"
            )

    # --- Portfolio size ---
    midpoint = (grid_params.investment_count_min + grid_params.investment_count_max) / 2
    concentrated = [s for s in scenarios if s.num_companies <= midpoint]
    diversified = [s for s in scenarios if s.num_companies > midpoint]

    if concentrated and diversified:
        conc_moic = _mean(s.summary.median_moic for s in concentrated)
        div_moic = _mean(s.summary.median_moic for s in diversified)
        conc_p10 = _mean(s.summary.moic_p10 for s in concentrated)
        div_p10 = _mean(s.summary.moic_p10 for s in diversified)

        lines.append("**Portfolio Size Insights:**\n")
        if conc_moic > div_moic * 1.05:
            lines.append(
                f"Concentrated portfolios (≤{math.floor(midpoint)} companies) achieve {conc_moic:.2f}x median MOIC "
                f"vs {div_moic:.2f}x for diversified strategies, though with higher downside risk "
                f"(P10: {conc_p10:.2f}x vs {div_p10:.2f}x).\n"
            )
        else:
            lines.append(
                f"Diversified portfolios (>{math.floor(midpoint)} companies) provide better risk-adjusted returns "
                f"with P10 MOIC of {div_p10:.2f}x vs {conc_p10:.2f}x for concentrated approaches, at the cost of "
                f"slightly lower median returns.\n"
            )

    # --- Deployment ---
    high_deployment = [s for s in scenarios if s.deployment_rate >= 80]
    low_deployment = [s for s in scenarios if s.deployment_rate < 60]

    if high_deployment and low_deployment:
        lines.append("**Capital Deployment:**\n")
        lines.append(
            f"{len(high_deployment)} scenarios achieve ≥80% deployment, typically Series A-heavy or balanced "
            f"portfolios. {len(low_deployment)} scenarios deploy <60%, primarily seed-heavy strategies where "
            f"company failures limit follow-on reserve deployment. Consider this trade-off when optimizing for "
            f"fund size utilization vs return potential."
        )

    return '\n'.join(lines)


def analyze_grid(
    grid_params: GridAnalysisParameters,
    on_progress: Optional[ProgressCallback] = None,
    seed: Optional[int] = None,
    n_workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
) -> GridAnalysisResult:
    """Runs the grid and ranks and describes whatever completed."""
    scenarios, failed, cancelled = _run_grid(grid_params, on_progress, seed, n_workers, cancel_event)

    if scenarios:
        best = identify_best_strategies(scenarios)
        worst = identify_worst_strategies(scenarios)
        commentary = generate_commentary(scenarios, grid_params)
    else:
        logging.warning("Grid analysis produced no scenarios; nothing to rank")
        best, worst, commentary = [], [], ""

    return GridAnalysisResult(
        parameters=grid_params,
        scenarios=scenarios,
        best_strategies=best,
        worst_strategies=worst,
        commentary=commentary,
        failed_cells=failed,
        cancelled=cancelled,
    )
