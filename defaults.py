# ==============================================================================
# --- VC Portfolio Model: Default Scenario & Benchmarks (v3.0) ---
# ==============================================================================
#
# A typical $100M seed / Series A fund, plus pooled industry benchmarks
# (Cambridge Associates, Preqin and Carta data, vintages 2010-2020).
#
# ==============================================================================
import copy

from parameters import ExitBucket, GridAnalysisParameters, PortfolioParameters, StageParameters

TOTAL_LOSS_LABEL = "Total Loss"

# Seed: ~50% failure rate but a fatter outlier tail
DEFAULT_SEED_EXIT_BUCKETS = [
    ExitBucket(label=TOTAL_LOSS_LABEL, probability=50, min_multiple=0, max_multiple=0),
    ExitBucket(label="Low Return", probability=25, min_multiple=0.1, max_multiple=1),
    ExitBucket(label="Mid Return", probability=15, min_multiple=1, max_multiple=5),
    ExitBucket(label="High Return", probability=7, min_multiple=5, max_multiple=20),
    ExitBucket(label="Outlier", probability=3, min_multiple=20, max_multiple=150),
]

# Series A: proven traction, fewer failures, less upside
DEFAULT_SERIES_A_EXIT_BUCKETS = [
    ExitBucket(label=TOTAL_LOSS_LABEL, probability=30, min_multiple=0, max_multiple=0),
    ExitBucket(label="Low Return", probability=35, min_multiple=0.1, max_multiple=1),
    ExitBucket(label="Mid Return", probability=25, min_multiple=1, max_multiple=5),
    ExitBucket(label="High Return", probability=9, min_multiple=5, max_multiple=15),
    ExitBucket(label="Outlier", probability=1, min_multiple=15, max_multiple=50),
]

DEFAULT_SEED_STAGE = StageParameters(
    avg_check_size=2,
    follow_on_reserve_ratio=50,
    target_ownership=15,
    exit_buckets=DEFAULT_SEED_EXIT_BUCKETS,
)

DEFAULT_SERIES_A_STAGE = StageParameters(
    avg_check_size=5,
    follow_on_reserve_ratio=50,
    target_ownership=12,
    exit_buckets=DEFAULT_SERIES_A_EXIT_BUCKETS,
)

DEFAULT_PARAMETERS = PortfolioParameters(
    fund_size=100,
    num_companies=25,
    seed_percentage=60,
    seed_stage=DEFAULT_SEED_STAGE,
    series_a_stage=DEFAULT_SERIES_A_STAGE,
    investment_period=3,
    fund_life=10,
    exit_window_min=3,
    exit_window_max=10,
    num_simulations=1000,
)

DEFAULT_GRID_PARAMETERS = GridAnalysisParameters(
    fund_size=100,
    investment_count_min=15,
    investment_count_max=40,
    seed_percentages=[0, 25, 50, 75, 100],
    seed_stage=DEFAULT_SEED_STAGE,
    series_a_stage=DEFAULT_SERIES_A_STAGE,
    investment_period=3,
    fund_life=10,
    exit_window_min=3,
    exit_window_max=10,
    num_simulations_per_scenario=500,
)


def default_parameters() -> PortfolioParameters:
    """A private copy of DEFAULT_PARAMETERS that is safe to modify."""
    return copy.deepcopy(DEFAULT_PARAMETERS)


def default_grid_parameters() -> GridAnalysisParameters:
    return copy.deepcopy(DEFAULT_GRID_PARAMETERS)


# --------------------------------------------------------------------------
# --- Industry Benchmarks ---
# --------------------------------------------------------------------------

# Gross MOIC and IRR by quartile, best first
VC_BENCHMARKS = [
    {
        'category': "Top Quartile",
        'moic': 3.5,
        'irr': 0.28,
        'description': "Top 25% of VC funds - exceptional performance with multiple unicorn exits",
    },
    {
        'category': "Median",
        'moic': 2.0,
        'irr': 0.15,
        'description': "Median VC fund performance - solid returns with 1-2 strong exits",
    },
    {
        'category': "Bottom Quartile",
        'moic': 1.2,
        'irr': 0.03,
        'description': "Bottom 25% of VC funds - struggling to return capital",
    },
]


def get_benchmark_category(moic: float) -> str:
    """Places a gross MOIC against the quartile benchmarks."""
    if moic >= VC_BENCHMARKS[0]['moic']:
        return "Top Quartile"
    if moic >= VC_BENCHMARKS[1]['moic']:
        return "Above Median"
    if moic >= VC_BENCHMARKS[2]['moic']:
        return "Below Median"
    return "Bottom Quartile"


BUCKET_DESCRIPTIONS = {
    "Total Loss": (
        "Complete write-off. Company fails and returns 0x your invested capital. Typical for companies "
        "that run out of runway before achieving product-market fit."
    ),
    "Partial Loss": (
        "Returns 0.1-0.5x invested capital. Company survives briefly but fails to scale, e.g. acqui-hires, "
        "fire sales or partial asset recovery. Returns some capital but significant loss overall."
    ),
    "Low Return": (
        "Returns 0.1-1x invested capital. Company survives but exits below cost, typically through a small "
        "acquisition or asset sale. Recovers part of the capital."
    ),
    "Near Break-even": (
        "Returns 0.5-1.5x invested capital. Company achieves modest traction but not enough for a strong "
        "exit. Small M&A or early wind-down that roughly preserves capital."
    ),
    "Mid Return": (
        "Solid returns (1.5-5x). Company achieves meaningful traction and exits via acquisition or modest "
        "IPO. These help preserve capital and generate steady returns."
    ),
    "High Return": (
        "Strong returns (5-20x). Company scales successfully with strong product-market fit. Represents "
        "your 'winners' that drive meaningful fund performance."
    ),
    "Outlier": (
        "Exceptional returns (20x-150x). Rare breakout companies that achieve massive scale. The 'fund "
        "returners' that define top-tier VC performance. Historically ~1-3% of investments."
    ),
}
