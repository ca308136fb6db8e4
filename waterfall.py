"""
# waterfall.py (v3.0)
# Fund economics: management fees, carried interest and LP net returns

Industry standard "2 and 20":
- 2% annual management fee on committed capital, stepping down after the
  investment period
- 20% carried interest on profits above the hurdle
- 8% simple preferred return to LPs before carry
- European (whole-fund) waterfall with no GP catch-up
"""

import pandas as pd

from parameters import FeeStructure, NetReturnsResult

DEFAULT_FEE_STRUCTURE = FeeStructure(
    management_fee_rate=2.0,
    management_fee_step_down=1.5,
    carry_rate=20.0,
    hurdle_rate=8.0,
    gp_commit_percent=2.0,
)

# Gross MOIC scenarios shown in the fee drag table
FEE_DRAG_MOICS = [0.5, 1.0, 1.5, 2.0, 2.5, 3.0, 4.0, 5.0, 7.0, 10.0]

# Share of committed capital assumed invested when only a gross MOIC is known
ASSUMED_DEPLOYMENT = 0.8


def calculate_management_fees(fund_size: float, fee_structure: FeeStructure, investment_period: float, fund_life: float) -> float:
    """
    Total management fees over the fund's life.

    Years 1 through the investment period pay the full rate on committed
    capital, the remaining years pay the step-down rate, also on committed
    capital.
    """
    fees_investment_period = fund_size * (fee_structure.management_fee_rate / 100) * investment_period

    remaining_years = max(0, fund_life - investment_period)
    fees_post_investment = fund_size * (fee_structure.management_fee_step_down / 100) * remaining_years

    return fees_investment_period + fees_post_investment


def calculate_net_returns(
    gross_proceeds: float,
    fund_size: float,
    total_invested: float,
    fee_structure: FeeStructure,
    investment_period: float,
    fund_life: float,
) -> NetReturnsResult:
    """
    Splits gross portfolio proceeds between LPs and the GP.

    European whole-fund waterfall:
    1. Management fees come off the top
    2. LPs get their committed capital back
    3. LPs get the simple hurdle, fund_size * hurdle% * fund_life
    4. Anything above the hurdle is split, carry% to the GP (no catch-up)

    Args:
        gross_proceeds: Total returned from the portfolio
        fund_size: Committed capital
        total_invested: Capital actually deployed into companies
        fee_structure: Fee and carry terms
        investment_period: Years of active investing
        fund_life: Fund life in years

    Returns:
        NetReturnsResult with LP, GP and fee drag figures
    """
    management_fees = calculate_management_fees(fund_size, fee_structure, investment_period, fund_life)

    distributable = max(0.0, gross_proceeds - management_fees)

    lp_capital = fund_size
    hurdle_amount = lp_capital * (1 + (fee_structure.hurdle_rate / 100) * fund_life)

    if distributable <= lp_capital:
        # Capital not returned: everything to LPs
        carried_interest = 0.0
        net_to_lp = distributable
    elif distributable <= hurdle_amount:
        # Capital returned but hurdle not cleared
        carried_interest = 0.0
        net_to_lp = distributable
    else:
        excess = distributable - hurdle_amount
        carried_interest = excess * (fee_structure.carry_rate / 100)
        net_to_lp = hurdle_amount + (excess - carried_interest)

    # GP earns on its own commitment alongside the LPs
    gp_commit_amount = fund_size * (fee_structure.gp_commit_percent / 100)
    gp_commit_return = gp_commit_amount * (gross_proceeds / max(total_invested, 1))
    gp_total_comp = management_fees + carried_interest + gp_commit_return

    net_moic = net_to_lp / lp_capital
    gross_moic = gross_proceeds / fund_size
    fee_drag = ((gross_moic - net_moic) / gross_moic) * 100 if gross_moic > 0 else 0.0

    return NetReturnsResult(
        gross_proceeds=gross_proceeds,
        management_fees=management_fees,
        carried_interest=carried_interest,
        net_to_lp=net_to_lp,
        net_moic=net_moic,
        fee_drag_percent=fee_drag,
        gp_total_comp=gp_total_comp,
        distributable=distributable,
    )


def calculate_deployable_capital(fund_size: float, fee_structure: FeeStructure, investment_period: float, fund_life: float) -> float:
    """Capital left to invest after lifetime management fees."""
    return fund_size - calculate_management_fees(fund_size, fee_structure, investment_period, fund_life)


def generate_fee_drag_table(fund_size: float, fee_structure: FeeStructure, investment_period: float, fund_life: float) -> pd.DataFrame:
    """
    Net MOIC, fee drag and carry across a ladder of gross MOICs.

    Shows the non-linear impact of fees: drag is heavy on weak funds and
    fades as the gross multiple grows. Assumes 80% of the fund is deployed.
    """
    rows = []
    for gross_moic in FEE_DRAG_MOICS:
        result = calculate_net_returns(
            fund_size * gross_moic,
            fund_size,
            fund_size * ASSUMED_DEPLOYMENT,
            fee_structure,
            investment_period,
            fund_life,
        )
        rows.append({
            'gross_moic': gross_moic,
            'net_moic': result.net_moic,
            'fee_drag': result.fee_drag_percent,
            'carry': result.carried_interest,
        })
    return pd.DataFrame(rows, columns=['gross_moic', 'net_moic', 'fee_drag', 'carry'])


def waterfall_breakdown(net_returns: NetReturnsResult, fund_size: float, fee_structure: FeeStructure, fund_life: float) -> pd.DataFrame:
    """
    Tier-by-tier view of one waterfall evaluation, for reporting.

    Rows follow the order cash moves through the waterfall: fees, LP return
    of capital, LP preferred return, LP residual above the hurdle, GP carry.
    The amounts add up to management fees plus distributable proceeds.
    """
    distributable = net_returns.distributable
    hurdle_amount = fund_size * (1 + (fee_structure.hurdle_rate / 100) * fund_life)

    roc = min(distributable, fund_size)
    pref = min(max(0.0, distributable - fund_size), hurdle_amount - fund_size)
    residual = max(0.0, distributable - hurdle_amount) - net_returns.carried_interest

    rows = [
        ('Management Fees', 'GP', net_returns.management_fees),
        ('Return of Capital', 'LP', roc),
        ('Preferred Return', 'LP', pref),
        ('Residual Split', 'LP', residual),
        ('Carried Interest', 'GP', net_returns.carried_interest),
    ]
    df = pd.DataFrame(rows, columns=['tier', 'recipient', 'amount'])
    total = df['amount'].sum()
    df['share'] = df['amount'] / total if total > 0 else 0.0
    return df
