# tests/test_fund_metrics.py
import math

import pytest

from engine import run_simulations
from errors import EmptyDatasetError
from fund_metrics import (
    aggregate_yearly_metrics, calculate_yearly_metrics, estimate_interim_markup,
    get_cumulative_call_percent, yearly_metrics_to_dataframe
)
from parameters import SERIES_A, CompanyResult, FeeStructure


def _company(invested, multiple, exit_year):
    return CompanyResult(
        stage=SERIES_A,
        invested_capital=invested,
        returned_capital=invested * multiple,
        return_multiple=multiple,
        exit_year=exit_year,
        bucket_label="Mid Return",
    )


def test_call_schedule():
    assert get_cumulative_call_percent(1) == 0.25
    assert get_cumulative_call_percent(0.5) == 0.25
    assert get_cumulative_call_percent(3) == 0.80
    assert get_cumulative_call_percent(6) == 1.0
    assert get_cumulative_call_percent(12) == 1.0


def test_markup_zero_once_exited():
    assert estimate_interim_markup(_company(10, 3.0, 4.0), 5, 0) == 0.0


def test_markup_at_cost_on_investment():
    assert estimate_interim_markup(_company(10, 3.0, 4.0), 1.0, 1.0) == 1.0


def test_markup_for_winner():
    """Quarter of the way to a 10x exit: 1 + 9 * sqrt(0.25) * 0.7."""
    markup = estimate_interim_markup(_company(10, 10.0, 4.0), 1.0, 0.0)
    assert markup == pytest.approx(4.15)


def test_write_down_for_failure():
    """Halfway to a total loss: 1 - sqrt(0.5)."""
    markup = estimate_interim_markup(_company(10, 0.0, 4.0), 2.0, 0.0)
    assert markup == pytest.approx(1 - math.sqrt(0.5))


def test_yearly_metrics_single_company():
    """
    $100M fund, 2y investment period, 5y life: one 3x company exiting in
    year 4.5 pays out in year 4, net of 2 + 2 + 1.5 + 1.5 = 7 in fees.
    """
    metrics = calculate_yearly_metrics([_company(10, 3.0, 4.5)], 100, 5, 2)
    assert [m.year for m in metrics] == list(range(1, 8))

    year_3, year_4 = metrics[2], metrics[3]
    assert year_3.cumulative_distributions == 0
    assert year_3.unrealized_value == pytest.approx(10 * (1 + 2 * math.sqrt(3 / 4.5) * 0.7))
    assert year_3.rvpi == pytest.approx(year_3.unrealized_value / 80)

    assert year_4.management_fees == pytest.approx(7.0)
    assert year_4.cumulative_distributions == pytest.approx(23.0)
    assert year_4.dpi == pytest.approx(23.0 / 92)
    # Marked until the exit year passes
    assert year_4.rvpi > 0
    assert metrics[4].rvpi == 0

    for m in metrics:
        assert m.tvpi == pytest.approx(m.dpi + m.rvpi)


def test_yearly_metrics_uses_fee_structure():
    fees = FeeStructure(management_fee_rate=3.0, management_fee_step_down=1.0)
    metrics = calculate_yearly_metrics([_company(10, 1.0, 9.0)], 100, 5, 2, fees)
    assert metrics[1].management_fees == pytest.approx(6.0)
    assert metrics[2].management_fees == pytest.approx(7.0)


def test_distributions_never_negative():
    """Fees larger than exits floor net distributions at zero."""
    metrics = calculate_yearly_metrics([_company(1, 0.0, 3.0)], 100, 10, 5)
    assert all(m.cumulative_distributions == 0 for m in metrics)
    assert all(m.dpi == 0 for m in metrics)


def test_aggregate_bands(base_params):
    base_params.num_simulations = 50
    results = run_simulations(base_params, seed=17, include_timeline=True)
    bands = aggregate_yearly_metrics([r.yearly_metrics for r in results])

    assert len(bands) == base_params.fund_life + 2
    for band in bands:
        assert band.dpi_p10 <= band.dpi_p50 <= band.dpi_p90
        assert band.tvpi_p10 <= band.tvpi_p50 <= band.tvpi_p90


def test_aggregate_identical_timelines():
    timeline = calculate_yearly_metrics([_company(10, 3.0, 4.5)], 100, 5, 2)
    bands = aggregate_yearly_metrics([timeline, timeline, timeline])
    assert bands[3].dpi_p10 == bands[3].dpi_p50 == bands[3].dpi_p90 == timeline[3].dpi


def test_aggregate_ragged_timelines_count_zero():
    long_timeline = calculate_yearly_metrics([_company(10, 3.0, 2.5)], 100, 5, 2)
    short_timeline = long_timeline[:2]
    bands = aggregate_yearly_metrics([long_timeline, short_timeline])
    # Two values per year; the floor(2 * 0.1) = 0th order statistic is the smaller
    assert bands[4].dpi_p10 == 0.0
    assert bands[4].dpi_p90 == long_timeline[4].dpi


def test_aggregate_empty_raises():
    with pytest.raises(EmptyDatasetError):
        aggregate_yearly_metrics([])


def test_dataframe_indexed_by_year():
    df = yearly_metrics_to_dataframe(calculate_yearly_metrics([_company(10, 3.0, 4.5)], 100, 5, 2))
    assert df.index.name == 'year'
    assert df.index.tolist() == list(range(1, 8))
    assert {'dpi', 'rvpi', 'tvpi', 'capital_called'} <= set(df.columns)
