# ------------------------------------------------------------------------------
# --- File: tests/conftest.py ---
# ------------------------------------------------------------------------------
# Shared fixtures built from the default $100M seed / Series A fund.

import math

import numpy as np
import pytest

from defaults import default_grid_parameters, default_parameters
from parameters import (
    ExitBucket, FeeStructure, GridScenario, SimulationResult, StageParameters, SummaryStatistics
)


@pytest.fixture
def rng():
    """A seeded generator so sampling assertions are deterministic."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def base_params():
    """Default portfolio with a smaller batch so tests stay quick."""
    params = default_parameters()
    params.num_simulations = 200
    return params


@pytest.fixture
def fee_structure():
    return FeeStructure()


@pytest.fixture
def small_grid_params():
    """A 2 x 2 grid with few simulations per cell."""
    params = default_grid_parameters()
    params.investment_count_min = 5
    params.investment_count_max = 6
    params.seed_percentages = [0, 100]
    params.num_simulations_per_scenario = 20
    return params


@pytest.fixture
def certain_stage():
    """A stage whose only outcome is a 2x-3x return."""
    return StageParameters(
        avg_check_size=1.0,
        follow_on_reserve_ratio=0.0,
        target_ownership=10.0,
        exit_buckets=[ExitBucket(label="Mid Return", probability=100, min_multiple=2, max_multiple=3)],
    )


@pytest.fixture
def total_loss_stage():
    """A stage where every company is written off."""
    return StageParameters(
        avg_check_size=1.0,
        follow_on_reserve_ratio=0.0,
        target_ownership=10.0,
        exit_buckets=[ExitBucket(label="Total Loss", probability=100, min_multiple=0, max_multiple=0)],
    )


def make_result(gross_moic, gross_irr=0.1, num_write_offs=0, num_outliers=0, net_returns=None, irr_converged=True):
    """A SimulationResult with no companies, for aggregation tests."""
    invested = 10.0
    return SimulationResult(
        companies=[],
        total_invested_capital=invested,
        total_returned_capital=invested * gross_moic if math.isfinite(gross_moic) else gross_moic,
        gross_moic=gross_moic,
        multiple_on_committed_capital=invested * gross_moic / 100 if math.isfinite(gross_moic) else gross_moic,
        gross_irr=gross_irr,
        num_write_offs=num_write_offs,
        num_outliers=num_outliers,
        num_seed_companies=1,
        num_series_a_companies=1,
        irr_converged=irr_converged,
        net_returns=net_returns,
    )


def make_summary(median_moic=2.0, median_irr=0.15, moic_p10=1.0, moic_p90=4.0):
    return SummaryStatistics(
        median_moic=median_moic,
        moic_p10=moic_p10,
        moic_p90=moic_p90,
        moic_std_dev=1.0,
        median_irr=median_irr,
        irr_p10=median_irr - 0.1,
        irr_p90=median_irr + 0.1,
        irr_std_dev=0.05,
        prob_moic_above_2x=0.5,
        prob_moic_above_3x=0.3,
        prob_moic_above_5x=0.1,
        avg_write_offs=5.0,
        avg_outliers=0.5,
    )


def make_scenario(num_companies, seed_percentage, median_moic=2.0, median_irr=0.15, moic_p10=1.0, deployment_rate=70.0):
    """A GridScenario with hand-picked headline numbers."""
    fund_size = 100.0
    deployed = fund_size * deployment_rate / 100
    return GridScenario(
        num_companies=num_companies,
        seed_percentage=seed_percentage,
        summary=make_summary(median_moic=median_moic, median_irr=median_irr, moic_p10=moic_p10),
        target_capital=deployed,
        deployed_capital=deployed,
        deployment_rate=deployment_rate,
        undeployed_capital=fund_size - deployed,
        avg_num_seed_companies=num_companies * seed_percentage / 100,
        avg_num_series_a_companies=num_companies * (1 - seed_percentage / 100),
    )
