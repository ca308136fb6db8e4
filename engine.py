# ==============================================================================
# --- VC Portfolio Model: Core Simulation Engine (v3.0) ---
# ==============================================================================
#
# v3.0: Bucket-based company outcomes, power-law sampling, optional fee overlay
#       and yearly DPI/TVPI timeline per realization
#
# ==============================================================================
import logging
import math
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from distributions import sample_exit_year, sample_return_multiple
from errors import EmptyDatasetError, InvalidInputError
from fund_metrics import calculate_yearly_metrics
from parameters import (
    SEED, SERIES_A, CompanyResult, ExitBucket, PortfolioParameters, SimulationResult,
    StageParameters, SummaryStatistics
)
from parameters_loader import validate_portfolio_parameters
from utils import percentile, solve_irr
from waterfall import calculate_net_returns

# A company returning less than this multiple counts as a write-off
WRITE_OFF_THRESHOLD = 0.1
# A company returning at least this multiple counts as an outlier
OUTLIER_THRESHOLD = 20.0


def select_exit_bucket(rng: np.random.Generator, buckets: Sequence[ExitBucket]) -> ExitBucket:
    """
    Picks an exit bucket by a weighted draw on the 0-100 probability scale.

    Returns the first bucket whose cumulative probability reaches the draw.
    If rounding leaves the cumulative total short of the draw, the last
    bucket is returned.
    """
    draw = rng.random() * 100
    cumulative = 0.0
    for bucket in buckets:
        cumulative += bucket.probability
        if draw <= cumulative:
            return bucket
    return buckets[-1]


def simulate_company(
    rng: np.random.Generator,
    stage: str,
    stage_params: StageParameters,
    exit_window_min: float,
    exit_window_max: float,
) -> CompanyResult:
    """
    Simulates the full life of one portfolio company.

    The initial check is grossed up by the stage's follow-on reserve, an exit
    bucket is drawn, and a multiple and exit year are sampled inside it. The
    last bucket of the stage is the outlier tail and is sampled from a Pareto
    distribution.

    Args:
        rng: Random number generator for this realization
        stage: 'seed' or 'seriesA'
        stage_params: Economics of the company's entry stage
        exit_window_min: Earliest exit year
        exit_window_max: Latest planned exit year

    Returns:
        CompanyResult for the company
    """
    invested_capital = stage_params.avg_check_size * (1 + stage_params.follow_on_reserve_ratio / 100)

    bucket = select_exit_bucket(rng, stage_params.exit_buckets)
    is_outlier = bucket is stage_params.exit_buckets[-1]

    return_multiple = sample_return_multiple(rng, bucket.min_multiple, bucket.max_multiple, is_outlier)
    exit_year = sample_exit_year(rng, return_multiple, stage, exit_window_min, exit_window_max)

    return CompanyResult(
        stage=stage,
        invested_capital=invested_capital,
        returned_capital=invested_capital * return_multiple,
        return_multiple=return_multiple,
        exit_year=exit_year,
        bucket_label=bucket.label,
    )


def split_company_counts(num_companies: int, seed_percentage: float):
    """(seed, Series A) company counts, with .5 rounded up."""
    num_seed = int(math.floor(num_companies * (seed_percentage / 100) + 0.5))
    num_seed = min(max(num_seed, 0), num_companies)
    return num_seed, num_companies - num_seed


def _simulate_portfolio(params: PortfolioParameters, rng: np.random.Generator, include_timeline: bool = False) -> SimulationResult:
    """One fund realization. Assumes `params` has already been validated."""
    num_seed, num_series_a = split_company_counts(params.num_companies, params.seed_percentage)

    companies: List[CompanyResult] = []
    for _ in range(num_seed):
        companies.append(simulate_company(rng, SEED, params.seed_stage, params.exit_window_min, params.exit_window_max))
    for _ in range(num_series_a):
        companies.append(simulate_company(rng, SERIES_A, params.series_a_stage, params.exit_window_min, params.exit_window_max))

    total_invested = sum(c.invested_capital for c in companies)
    total_returned = sum(c.returned_capital for c in companies)

    gross_moic = total_returned / total_invested if total_invested > 0 else math.nan
    multiple_on_committed = total_returned / params.fund_size

    num_write_offs = sum(1 for c in companies if c.return_multiple < WRITE_OFF_THRESHOLD)
    num_outliers = sum(1 for c in companies if c.return_multiple >= OUTLIER_THRESHOLD)

    # --- IRR timeline ---
    # Capital drawn in equal annual tranches (mid-year), one exit flow per company
    cash_flows: List[float] = []
    years: List[float] = []
    deployment_per_year = total_invested / params.investment_period
    for year in range(params.investment_period):
        cash_flows.append(-deployment_per_year)
        years.append(year + 0.5)
    for company in companies:
        cash_flows.append(company.returned_capital)
        years.append(company.exit_year)

    irr = solve_irr(cash_flows, years)

    net_returns = None
    if params.fee_structure is not None:
        net_returns = calculate_net_returns(
            total_returned,
            params.fund_size,
            total_invested,
            params.fee_structure,
            params.investment_period,
            params.fund_life,
        )

    yearly_metrics = None
    if include_timeline:
        yearly_metrics = calculate_yearly_metrics(
            companies, params.fund_size, params.fund_life, params.investment_period, params.fee_structure
        )

    return SimulationResult(
        companies=companies,
        total_invested_capital=total_invested,
        total_returned_capital=total_returned,
        gross_moic=gross_moic,
        multiple_on_committed_capital=multiple_on_committed,
        gross_irr=irr.rate,
        num_write_offs=num_write_offs,
        num_outliers=num_outliers,
        num_seed_companies=num_seed,
        num_series_a_companies=num_series_a,
        irr_converged=irr.converged,
        net_returns=net_returns,
        yearly_metrics=yearly_metrics,
    )


def run_single_simulation(
    params: PortfolioParameters,
    rng: Optional[np.random.Generator] = None,
    include_timeline: bool = False,
) -> SimulationResult:
    """
    Validates the parameters and runs one fund realization.

    Args:
        params: Portfolio configuration
        rng: Random number generator; a fresh unseeded one when omitted
        include_timeline: Attach the yearly DPI/RVPI/TVPI series

    Returns:
        SimulationResult for the realization

    Raises:
        InvalidInputError: if the parameters cannot be simulated
    """
    validate_portfolio_parameters(params)
    if rng is None:
        rng = np.random.default_rng()
    return _simulate_portfolio(params, rng, include_timeline)


def run_simulations(
    params: PortfolioParameters,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    include_timeline: bool = False,
    verbose: bool = False,
) -> List[SimulationResult]:
    """
    Orchestrates the Monte Carlo run: `params.num_simulations` independent realizations.

    Each realization draws from its own generator seeded off a master
    generator, so a given seed reproduces the whole batch.

    Args:
        params: Portfolio configuration
        seed: Seed for the master generator (None for random)
        rng: Master generator to use instead of `seed`
        include_timeline: Attach yearly fund metrics to every result
        verbose: Print progress every 10%

    Returns:
        List of SimulationResult, one per realization
    """
    validate_portfolio_parameters(params)

    master_rng = rng if rng is not None else np.random.default_rng(seed)
    num_simulations = params.num_simulations
    results: List[SimulationResult] = []

    logging.info(f"Starting Monte Carlo simulation: {num_simulations} runs with seed={seed}")

    for i in range(num_simulations):
        sim_rng = np.random.default_rng(master_rng.integers(1e9))
        results.append(_simulate_portfolio(params, sim_rng, include_timeline))

        if verbose and num_simulations >= 10 and (i + 1) % (num_simulations // 10) == 0:
            print(f"  Progress: {i+1}/{num_simulations} ({(i+1)/num_simulations:.0%}) complete")

    non_converged = sum(1 for r in results if not r.irr_converged)
    if non_converged:
        logging.warning(f"IRR did not converge in {non_converged} of {num_simulations} runs")

    logging.info(f"Monte Carlo simulation complete: {len(results)} successful runs")
    return results


def results_to_dataframe(results: Sequence[SimulationResult]) -> pd.DataFrame:
    """One row per realization with its scalar metrics."""
    rows = []
    for sim_num, r in enumerate(results, 1):
        row = {
            'simulation_number': sim_num,
            'total_invested_capital': r.total_invested_capital,
            'total_returned_capital': r.total_returned_capital,
            'gross_moic': r.gross_moic,
            'multiple_on_committed_capital': r.multiple_on_committed_capital,
            'gross_irr': r.gross_irr,
            'irr_converged': r.irr_converged,
            'num_write_offs': r.num_write_offs,
            'num_outliers': r.num_outliers,
            'num_seed_companies': r.num_seed_companies,
            'num_series_a_companies': r.num_series_a_companies,
        }
        if r.net_returns is not None:
            row['net_moic'] = r.net_returns.net_moic
            row['management_fees'] = r.net_returns.management_fees
            row['carried_interest'] = r.net_returns.carried_interest
            row['fee_drag_percent'] = r.net_returns.fee_drag_percent
        rows.append(row)
    return pd.DataFrame(rows)


def calculate_summary_statistics(results: Sequence[SimulationResult]) -> SummaryStatistics:
    """
    Reduces a batch of realizations to percentiles, moments and hit rates.

    Percentiles are order statistics (see utils.percentile); standard
    deviations are population (divide by n).

    Raises:
        EmptyDatasetError: if `results` is empty
        InvalidInputError: if any gross MOIC or IRR is not finite
    """
    if len(results) == 0:
        raise EmptyDatasetError("Cannot summarize zero simulation results")

    moic_values = np.array([r.gross_moic for r in results], dtype=float)
    irr_values = np.array([r.gross_irr for r in results], dtype=float)
    if not np.all(np.isfinite(moic_values)) or not np.all(np.isfinite(irr_values)):
        raise InvalidInputError("Simulation results contain non-finite MOIC or IRR values")

    moics = sorted(moic_values.tolist())
    irrs = sorted(irr_values.tolist())
    n = len(results)

    net_fields = {}
    if all(r.net_returns is not None for r in results):
        net_moics = sorted(r.net_returns.net_moic for r in results)
        net_fields = dict(
            median_net_moic=percentile(net_moics, 0.5),
            net_moic_p10=percentile(net_moics, 0.1),
            net_moic_p90=percentile(net_moics, 0.9),
            avg_fee_drag=float(np.mean([r.net_returns.fee_drag_percent for r in results])),
            avg_carried_interest=float(np.mean([r.net_returns.carried_interest for r in results])),
        )

    return SummaryStatistics(
        median_moic=percentile(moics, 0.5),
        moic_p10=percentile(moics, 0.1),
        moic_p90=percentile(moics, 0.9),
        moic_std_dev=float(np.std(moic_values)),
        median_irr=percentile(irrs, 0.5),
        irr_p10=percentile(irrs, 0.1),
        irr_p90=percentile(irrs, 0.9),
        irr_std_dev=float(np.std(irr_values)),
        prob_moic_above_2x=int(np.sum(moic_values >= 2)) / n,
        prob_moic_above_3x=int(np.sum(moic_values >= 3)) / n,
        prob_moic_above_5x=int(np.sum(moic_values >= 5)) / n,
        avg_write_offs=sum(r.num_write_offs for r in results) / n,
        avg_outliers=sum(r.num_outliers for r in results) / n,
        mean_moic=float(np.mean(moic_values)),
        mean_irr=float(np.mean(irr_values)),
        **net_fields,
    )
