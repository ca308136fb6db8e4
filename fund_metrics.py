"""
# fund_metrics.py (v3.0)
# Fund-level metrics over time: DPI, RVPI, TVPI

DPI  = Distributions to Paid-In (cash returned / cash called)
RVPI = Residual Value to Paid-In (unrealized value / cash called)
TVPI = Total Value to Paid-In (DPI + RVPI)

These drive LP reporting and J-curve analysis.
"""

import math
from typing import List, Optional, Sequence

import pandas as pd

from errors import EmptyDatasetError
from parameters import CompanyResult, FeeStructure, YearlyFundMetrics, YearlyMetricsBand
from utils import percentile

# Cumulative % of the fund called by the end of each year. Front-loaded,
# most capital is deployed in years 1-3
DEFAULT_CALL_SCHEDULE = [
    (1, 25),
    (2, 55),
    (3, 80),
    (4, 92),
    (5, 97),
    (6, 100),
]

# Fee rates used when no fee structure is supplied
DEFAULT_ANNUAL_FEE_RATE = 0.02
DEFAULT_STEP_DOWN_RATE = 0.015

# Share of a winner's eventual gain recognised in interim marks
MARKUP_HAIRCUT = 0.7

# Multiples below this are written down rather than marked up
WRITE_DOWN_THRESHOLD = 0.5


def get_cumulative_call_percent(year: float) -> float:
    """Fraction of committed capital called by `year`."""
    for schedule_year, cumulative_percent in DEFAULT_CALL_SCHEDULE:
        if year <= schedule_year:
            return cumulative_percent / 100
    return 1.0


def estimate_interim_markup(company: CompanyResult, current_year: float, investment_year: float) -> float:
    """
    Interim mark, as a multiple of cost, for a company not yet exited.

    Progress through the holding period is passed through a square root so
    marks move slowly early (valuation uncertainty) and faster near exit.
    Companies heading below 0.5x are written down toward their terminal
    multiple; winners are marked up by 70% of their eventual gain.
    """
    if current_year >= company.exit_year:
        return 0.0

    holding_period = company.exit_year - investment_year
    years_since_investment = current_year - investment_year

    if holding_period <= 0 or years_since_investment <= 0:
        return 1.0

    progress = min(1.0, years_since_investment / holding_period)
    adjusted_progress = math.sqrt(progress)

    if company.return_multiple < WRITE_DOWN_THRESHOLD:
        return max(0.0, 1.0 - adjusted_progress * (1.0 - company.return_multiple))

    return 1.0 + (company.return_multiple - 1.0) * adjusted_progress * MARKUP_HAIRCUT


def calculate_yearly_metrics(
    companies: Sequence[CompanyResult],
    fund_size: float,
    fund_life: int,
    investment_period: float,
    fee_structure: Optional[FeeStructure] = None,
) -> List[YearlyFundMetrics]:
    """
    Year-by-year capital called, distributions and residual value for one realization.

    Companies are assumed to be invested evenly across the investment period
    in list order. The series runs from year 1 to fund_life + 2 so late
    exits (sampled up to two years past the window) are captured.

    Args:
        companies: Company results from one simulation
        fund_size: Committed capital
        fund_life: Fund life in years
        investment_period: Investment period in years
        fee_structure: Fee terms; defaults to 2% / 1.5% step-down

    Returns:
        One YearlyFundMetrics per year
    """
    annual_fee_rate = fee_structure.management_fee_rate / 100 if fee_structure else DEFAULT_ANNUAL_FEE_RATE
    step_down_rate = fee_structure.management_fee_step_down / 100 if fee_structure else DEFAULT_STEP_DOWN_RATE

    num_companies = len(companies)
    investment_years = [(i / num_companies) * investment_period for i in range(num_companies)]

    metrics: List[YearlyFundMetrics] = []
    cumulative_distributions = 0.0
    cumulative_fees = 0.0

    for year in range(1, int(fund_life) + 3):
        capital_called = fund_size * get_cumulative_call_percent(year)

        fee_rate = annual_fee_rate if year <= investment_period else step_down_rate
        cumulative_fees += fund_size * fee_rate

        for company in companies:
            if math.floor(company.exit_year) == year:
                cumulative_distributions += company.returned_capital

        # Fees are netted out of distributions
        net_distributions = max(0.0, cumulative_distributions - cumulative_fees)

        unrealized_value = 0.0
        for company, investment_year in zip(companies, investment_years):
            if company.exit_year > year:
                markup = estimate_interim_markup(company, year, investment_year)
                unrealized_value += company.invested_capital * markup

        dpi = net_distributions / capital_called if capital_called > 0 else 0.0
        rvpi = unrealized_value / capital_called if capital_called > 0 else 0.0

        metrics.append(YearlyFundMetrics(
            year=year,
            capital_called=capital_called,
            cumulative_distributions=net_distributions,
            unrealized_value=unrealized_value,
            management_fees=cumulative_fees,
            dpi=dpi,
            rvpi=rvpi,
            tvpi=dpi + rvpi,
        ))

    return metrics


def aggregate_yearly_metrics(all_metrics: Sequence[Sequence[YearlyFundMetrics]]) -> List[YearlyMetricsBand]:
    """
    Reduces many realizations' timelines into per-year P10/P50/P90 bands.

    Uses the same floor-index percentile as the summary statistics. Year
    labels come from the first timeline; a shorter timeline contributes 0
    for the years it lacks.
    """
    if len(all_metrics) == 0:
        raise EmptyDatasetError("Cannot aggregate yearly metrics of zero simulations")

    reference = all_metrics[0]
    bands: List[YearlyMetricsBand] = []

    for year_idx, reference_year in enumerate(reference):
        dpis = sorted(m[year_idx].dpi if year_idx < len(m) else 0.0 for m in all_metrics)
        tvpis = sorted(m[year_idx].tvpi if year_idx < len(m) else 0.0 for m in all_metrics)
        rvpis = sorted(m[year_idx].rvpi if year_idx < len(m) else 0.0 for m in all_metrics)

        bands.append(YearlyMetricsBand(
            year=reference_year.year,
            dpi_p10=percentile(dpis, 0.1),
            dpi_p50=percentile(dpis, 0.5),
            dpi_p90=percentile(dpis, 0.9),
            tvpi_p10=percentile(tvpis, 0.1),
            tvpi_p50=percentile(tvpis, 0.5),
            tvpi_p90=percentile(tvpis, 0.9),
            rvpi_p50=percentile(rvpis, 0.5),
        ))

    return bands


def yearly_metrics_to_dataframe(metrics: Sequence[YearlyFundMetrics]) -> pd.DataFrame:
    """One row per year, indexed by year."""
    df = pd.DataFrame([vars(m) for m in metrics])
    if df.empty:
        return df
    return df.set_index('year')
