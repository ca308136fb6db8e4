# ------------------------------------------------------------------------------
# --- File: tests/test_waterfall.py ---
# ------------------------------------------------------------------------------

import pytest

from parameters import FeeStructure
from waterfall import (
    DEFAULT_FEE_STRUCTURE, calculate_deployable_capital, calculate_management_fees,
    calculate_net_returns, generate_fee_drag_table, waterfall_breakdown
)

FUND_SIZE = 200.0
INVESTMENT_PERIOD = 5
FUND_LIFE = 10


def test_management_fees_two_and_twenty():
    """
    $200M fund, 2% for 5 years then 1.5% for 5 years: 20 + 15 = $35M.
    """
    fees = calculate_management_fees(FUND_SIZE, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    assert fees == pytest.approx(35.0)


def test_management_fees_investment_period_equals_life():
    """No step-down years when the investment period runs the whole life."""
    fees = calculate_management_fees(100.0, DEFAULT_FEE_STRUCTURE, 5, 5)
    assert fees == pytest.approx(10.0)


def test_deployable_capital():
    deployable = calculate_deployable_capital(FUND_SIZE, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    assert deployable == pytest.approx(165.0)


def test_higher_fee_rate_means_higher_fees():
    default_fees = calculate_management_fees(FUND_SIZE, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    for rate in [2.0, 2.5, 3.0]:
        fees = calculate_management_fees(
            FUND_SIZE, FeeStructure(management_fee_rate=rate), INVESTMENT_PERIOD, FUND_LIFE
        )
        assert fees >= default_fees


@pytest.mark.parametrize("gross_moic", [1.05, 1.5, 2.0, 3.0, 5.0, 10.0])
def test_net_below_gross_for_profitable_funds(gross_moic):
    """Fees and carry always leave LPs with less than the gross multiple."""
    result = calculate_net_returns(
        FUND_SIZE * gross_moic, FUND_SIZE, FUND_SIZE * 0.8, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE
    )
    assert 0 <= result.net_moic < gross_moic
    assert 0 < result.fee_drag_percent < 100


def test_below_capital_everything_to_lps():
    """Distributable below fund size: no carry, LPs take it all."""
    result = calculate_net_returns(150.0, FUND_SIZE, 160.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    assert result.carried_interest == 0
    assert result.distributable == pytest.approx(115.0)
    assert result.net_to_lp == pytest.approx(115.0)


def test_zero_carry_exactly_at_hurdle():
    """
    8% simple hurdle over 10 years: hurdle is $200M x 1.8 = $360M of
    fee-adjusted proceeds, which must not pay any carry.
    """
    gross = 360.0 + 35.0
    result = calculate_net_returns(gross, FUND_SIZE, 160.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    assert result.distributable == pytest.approx(360.0)
    assert result.carried_interest == 0
    assert result.net_to_lp == pytest.approx(360.0)


def test_carry_positive_above_hurdle():
    gross = 360.0 + 35.0 + 10.0
    result = calculate_net_returns(gross, FUND_SIZE, 160.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    assert result.carried_interest == pytest.approx(2.0)
    assert result.net_to_lp == pytest.approx(368.0)


def test_higher_carry_rate_lowers_net_moic():
    """20% -> 25% -> 30% carry on a fund well above the hurdle."""
    previous = None
    for carry_rate in [20.0, 25.0, 30.0]:
        result = calculate_net_returns(
            800.0, FUND_SIZE, 160.0, FeeStructure(carry_rate=carry_rate), INVESTMENT_PERIOD, FUND_LIFE
        )
        if previous is not None:
            assert result.carried_interest > previous.carried_interest
            assert result.net_moic < previous.net_moic
        previous = result


def test_gp_total_comp_includes_commit_return():
    """Fees + carry + 2% commit earning the gross multiple on invested capital."""
    result = calculate_net_returns(400.0, FUND_SIZE, 160.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    commit_return = FUND_SIZE * 0.02 * (400.0 / 160.0)
    assert result.gp_total_comp == pytest.approx(result.management_fees + result.carried_interest + commit_return)


def test_zero_gross_has_no_fee_drag():
    result = calculate_net_returns(0.0, FUND_SIZE, 160.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    assert result.net_moic == 0
    assert result.fee_drag_percent == 0


def test_fee_drag_table_shape():
    table = generate_fee_drag_table(100.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    assert list(table.columns) == ['gross_moic', 'net_moic', 'fee_drag', 'carry']
    assert table['gross_moic'].tolist() == [0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 4.0, 5.0, 7.0, 10.0]


def test_fee_drag_in_band_for_typical_outcomes():
    """At 2x-4x gross, fee drag sits between 8% and 50%."""
    table = generate_fee_drag_table(100.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    typical = table[(table['gross_moic'] >= 2.0) & (table['gross_moic'] <= 4.0)]
    assert len(typical) == 4
    assert ((typical['fee_drag'] > 8) & (typical['fee_drag'] < 50)).all()


def test_waterfall_breakdown_tiers_add_up():
    """
    $500M gross on a $200M fund: 35 fees, 200 capital back, 160 preferred
    return, 105 excess split 84 / 21.
    """
    net = calculate_net_returns(500.0, FUND_SIZE, 160.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    breakdown = waterfall_breakdown(net, FUND_SIZE, DEFAULT_FEE_STRUCTURE, FUND_LIFE)

    amounts = dict(zip(breakdown['tier'], breakdown['amount']))
    assert amounts['Management Fees'] == pytest.approx(35.0)
    assert amounts['Return of Capital'] == pytest.approx(200.0)
    assert amounts['Preferred Return'] == pytest.approx(160.0)
    assert amounts['Residual Split'] == pytest.approx(84.0)
    assert amounts['Carried Interest'] == pytest.approx(21.0)
    assert breakdown['amount'].sum() == pytest.approx(500.0)
    assert breakdown['share'].sum() == pytest.approx(1.0)


def test_waterfall_breakdown_below_capital():
    net = calculate_net_returns(150.0, FUND_SIZE, 160.0, DEFAULT_FEE_STRUCTURE, INVESTMENT_PERIOD, FUND_LIFE)
    breakdown = waterfall_breakdown(net, FUND_SIZE, DEFAULT_FEE_STRUCTURE, FUND_LIFE)
    amounts = dict(zip(breakdown['tier'], breakdown['amount']))
    assert amounts['Return of Capital'] == pytest.approx(115.0)
    assert amounts['Preferred Return'] == 0
    assert amounts['Residual Split'] == 0
    assert amounts['Carried Interest'] == 0
