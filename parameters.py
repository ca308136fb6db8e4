# ==============================================================================
# --- VC Portfolio Model: Data Structures (v3.0) ---
# ==============================================================================
#
# This module defines the data structures shared by the sampling engine,
# the fee waterfall, the fund timeline and the grid search. Parameter
# objects describe a scenario; result objects are immutable records of one
# realization or of an aggregate over many.
#
# ==============================================================================

import math
from dataclasses import dataclass, field
from typing import List, Optional


SEED = "seed"
SERIES_A = "seriesA"


# --------------------------------------------------------------------------
# --- Configuration & Parameter Dataclasses ---
# --------------------------------------------------------------------------

# One labelled, probability-weighted range of exit multiples
@dataclass(frozen=True)
class ExitBucket:
    # Display name such as "Total Loss" or "Outlier"
    label: str
    # Probability of landing in this bucket, 0-100. A stage's buckets sum to 100
    probability: float
    # Bounds of the return multiple sampled inside the bucket
    min_multiple: float
    max_multiple: float


# Holds the economics of one investment stage
@dataclass
class StageParameters:
    # Average initial check, in the fund's currency unit
    avg_check_size: float
    # Reserve set aside for follow-ons, as a % of the initial check (0-100)
    follow_on_reserve_ratio: float
    # Informational only, not used by the engine
    target_ownership: float
    # Ordered from worst to best outcome; the last bucket is the outlier tail
    exit_buckets: List[ExitBucket]


# Management fee and carried interest terms. All values are percentages
@dataclass
class FeeStructure:
    management_fee_rate: float = 2.0
    # Fee rate charged after the investment period
    management_fee_step_down: float = 1.5
    carry_rate: float = 20.0
    # Simple (non-compounding) preferred return per year
    hurdle_rate: float = 8.0
    gp_commit_percent: float = 2.0


# Brings the stage economics together with fund size, pacing and timing
@dataclass
class PortfolioParameters:
    fund_size: float
    num_companies: int
    # Share of companies invested at seed, 0-100
    seed_percentage: float
    seed_stage: StageParameters
    series_a_stage: StageParameters
    # Years of active investing; capital is drawn in equal annual tranches
    investment_period: int
    fund_life: int
    # Earliest/latest exit year; sampled exits may run up to 2 years past the max
    exit_window_min: float
    exit_window_max: float
    num_simulations: int
    fee_structure: Optional[FeeStructure] = None


# Inputs for a portfolio-construction grid search
@dataclass
class GridAnalysisParameters:
    fund_size: float
    investment_count_min: int
    investment_count_max: int
    seed_percentages: List[float]
    seed_stage: StageParameters
    series_a_stage: StageParameters
    investment_period: int
    fund_life: int
    exit_window_min: float
    exit_window_max: float
    num_simulations_per_scenario: int
    fee_structure: Optional[FeeStructure] = None


# --------------------------------------------------------------------------
# --- Result Dataclasses ---
# --------------------------------------------------------------------------

# Final outcome of one company in one realization
@dataclass(frozen=True)
class CompanyResult:
    stage: str
    invested_capital: float
    returned_capital: float
    return_multiple: float
    # Fractional year of the exit cash flow
    exit_year: float
    bucket_label: str


# Output of one pass of the fee waterfall
@dataclass(frozen=True)
class NetReturnsResult:
    gross_proceeds: float
    management_fees: float
    carried_interest: float
    net_to_lp: float
    net_moic: float
    fee_drag_percent: float
    gp_total_comp: float
    distributable: float


# One fund realization's metrics for one year
@dataclass(frozen=True)
class YearlyFundMetrics:
    year: int
    capital_called: float
    # Distributions net of cumulative management fees
    cumulative_distributions: float
    unrealized_value: float
    # Cumulative management fees to date
    management_fees: float
    dpi: float
    rvpi: float
    tvpi: float


# Percentile band across many realizations for one year
@dataclass(frozen=True)
class YearlyMetricsBand:
    year: int
    dpi_p10: float
    dpi_p50: float
    dpi_p90: float
    tvpi_p10: float
    tvpi_p50: float
    tvpi_p90: float
    rvpi_p50: float


# One complete fund realization
@dataclass(frozen=True)
class SimulationResult:
    companies: List[CompanyResult]
    total_invested_capital: float
    total_returned_capital: float
    gross_moic: float
    multiple_on_committed_capital: float
    gross_irr: float
    num_write_offs: int
    num_outliers: int
    num_seed_companies: int
    num_series_a_companies: int
    irr_converged: bool = True
    # Fee overlay, present when the parameters carried a fee structure
    net_returns: Optional[NetReturnsResult] = None
    yearly_metrics: Optional[List[YearlyFundMetrics]] = None

    @property
    def net_moic(self) -> Optional[float]:
        return self.net_returns.net_moic if self.net_returns else None


# Aggregate over many realizations
@dataclass(frozen=True)
class SummaryStatistics:
    median_moic: float
    moic_p10: float
    moic_p90: float
    moic_std_dev: float
    median_irr: float
    irr_p10: float
    irr_p90: float
    irr_std_dev: float
    prob_moic_above_2x: float
    prob_moic_above_3x: float
    prob_moic_above_5x: float
    avg_write_offs: float
    avg_outliers: float
    mean_moic: float = math.nan
    mean_irr: float = math.nan
    # Net-of-fee equivalents, filled only when every run carries a fee overlay
    median_net_moic: Optional[float] = None
    net_moic_p10: Optional[float] = None
    net_moic_p90: Optional[float] = None
    avg_fee_drag: Optional[float] = None
    avg_carried_interest: Optional[float] = None


# One evaluated grid cell
@dataclass
class GridScenario:
    num_companies: int
    seed_percentage: float
    summary: SummaryStatistics
    # Capital the strategy aims to deploy, reserves included
    target_capital: float
    deployed_capital: float
    # Average deployed capital as a % of fund size
    deployment_rate: float
    undeployed_capital: float
    avg_num_seed_companies: float
    avg_num_series_a_companies: float
    # Kept for detail drill-down
    results: List[SimulationResult] = field(default_factory=list, repr=False)


@dataclass
class BestStrategy:
    scenario: GridScenario
    criterion: str
    reasoning: str


# Grid cell that raised and was skipped
@dataclass(frozen=True)
class FailedGridCell:
    num_companies: int
    seed_percentage: float
    error: str


@dataclass
class GridAnalysisResult:
    parameters: GridAnalysisParameters
    scenarios: List[GridScenario]
    best_strategies: List[BestStrategy]
    worst_strategies: List[BestStrategy]
    commentary: str
    failed_cells: List[FailedGridCell] = field(default_factory=list)
    cancelled: bool = False
