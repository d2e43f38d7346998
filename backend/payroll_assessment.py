"""
Payroll Assessment Pipeline
===========================
Runs the full PIT computation for a payroll table, one row per
employee-period:

    earnings components -> gross_earnings
    gross_earnings      -> pension (8%), health_insurance (5%)
    basic_salary        -> housing_fund (2.5%)
    gross_income        -> relief_component (consolidated or rent)
    total_relief        -> taxable_income -> tax_liability

The whole batch is validated before anything is computed, so a bad cell
anywhere in the table fails the call with no partial result.

Also hosts the tabular form of the remittance accrual: assess_remittances()
runs penalty_and_interest over every row of a remittance table.
"""

from typing import Mapping, Optional, Sequence, Union

import pandas as pd

from config import (
    PERIOD_YEARLY,
    PENSION_RATE,
    NHF_RATE,
    NHIS_RATE,
    ANNUAL_INTEREST_RATE,
    get_logger,
)
from calculator_common import add_total_row, round_amount
from deductions import RateLike, normalize_rate, pension_deduction, nhf_deduction, nhis_deduction
from earnings import gross_earnings, gross_earnings_from_frame
from relief import (
    ReliefRegime,
    parse_regime,
    gross_income,
    select_relief,
    total_relief,
    taxable_income,
)
from remittance import PenaltyPolicy, RemittanceCase, assess_remittance, get_penalty_policy
from tax_data import tax_liability, effective_tax_rate
from validators import InvalidInput, as_amounts, check_period

logger = get_logger(__name__)

# Computed columns, in output order
ASSESSMENT_COLUMNS = [
    "gross_earnings",
    "pension",
    "housing_fund",
    "health_insurance",
    "gross_income",
    "relief_component",
    "total_relief",
    "taxable_income",
    "tax_liability",
    "effective_rate",
]

# A sum of rates means nothing, so the Total row leaves it blank
_NON_SUMMED = {"effective_rate"}

# Carried unrounded through the relief stage, rounded only in the output
_ROUNDED_ON_OUTPUT = ("pension", "housing_fund", "health_insurance", "gross_income")

REMITTANCE_COLUMNS = [
    "days_overdue",
    "interest_amount",
    "penalty_amount",
    "total_liability",
    "status",
]

STATUS_ON_TIME = "on time"
STATUS_OVERDUE = "overdue"


# ─── Pipeline ────────────────────────────────────────────────────────────────


def _run_pipeline(
    gross,
    basic,
    period: str,
    regime: ReliefRegime,
    rent_paid,
    pension_rate: RateLike,
    nhf_rate: RateLike,
    nhis_rate: RateLike,
) -> dict:
    """
    Stage outputs for already-aggregated gross earnings.

    Works on scalars and Series alike; every stage keeps the input shape.
    Deductions stay unrounded here; see _rounded_for_output.
    """
    pension = pension_deduction(gross, pension_rate)
    housing_fund = nhf_deduction(basic, nhf_rate)
    health_insurance = nhis_deduction(gross, nhis_rate)

    income = gross_income(gross, pension, health_insurance, housing_fund)
    relief = select_relief(income, regime, period, rent_paid)
    relief_total = total_relief(
        relief_component=relief,
        pension=pension,
        housing_fund=housing_fund,
        health_insurance=health_insurance,
    )
    taxable = taxable_income(gross, relief_total)
    tax = tax_liability(taxable, period)

    return {
        "gross_earnings": gross,
        "pension": pension,
        "housing_fund": housing_fund,
        "health_insurance": health_insurance,
        "gross_income": income,
        "relief_component": relief,
        "total_relief": relief_total,
        "taxable_income": taxable,
        "tax_liability": tax,
        "effective_rate": effective_tax_rate(tax, gross),
    }


def _rounded_for_output(stages: dict) -> dict:
    """Round the deduction and gross income stages for the result table."""
    return {
        k: round_amount(v) if k in _ROUNDED_ON_OUTPUT else v
        for k, v in stages.items()
    }


def assess_employee(
    earnings: Mapping[str, float],
    basic_component: str = "basic_salary",
    period: str = PERIOD_YEARLY,
    relief_regime: Union[str, ReliefRegime] = ReliefRegime.CONSOLIDATED,
    rent_paid: Optional[float] = None,
    pension_rate: RateLike = PENSION_RATE,
    nhf_rate: RateLike = NHF_RATE,
    nhis_rate: RateLike = NHIS_RATE,
) -> dict:
    """
    Assess a single employee-period.

    Args:
        earnings: Earnings components by name, e.g.
            {"basic_salary": 500000, "housing": 200000, "transport": 150000}.
        basic_component: Key of the component the housing fund is taken on.
        period: "yearly" or "monthly".
        relief_regime: "consolidated" or "rent".
        rent_paid: Annual rent, required for the rent regime.

    Returns:
        Dict of every stage output plus the period and regime used.
    """
    if not earnings:
        raise InvalidInput("At least one earnings component is required")
    if basic_component not in earnings:
        raise InvalidInput(f"Earnings have no {basic_component!r} component")
    check_period(period)
    regime = parse_regime(relief_regime)

    gross = gross_earnings(*earnings.values())
    stages = _run_pipeline(
        gross, earnings[basic_component], period, regime, rent_paid,
        pension_rate, nhf_rate, nhis_rate,
    )
    stages = {k: float(v) for k, v in _rounded_for_output(stages).items()}
    stages["period"] = period
    stages["relief_regime"] = regime.value
    return stages


def assess_payroll(
    df: pd.DataFrame,
    earnings_columns: Sequence[str],
    basic_column: str = "basic_salary",
    period: str = PERIOD_YEARLY,
    relief_regime: Union[str, ReliefRegime] = ReliefRegime.CONSOLIDATED,
    rent_column: str = "rent_paid",
    pension_rate: RateLike = PENSION_RATE,
    nhf_rate: RateLike = NHF_RATE,
    nhis_rate: RateLike = NHIS_RATE,
    include_total: bool = True,
) -> pd.DataFrame:
    """
    Assess every row of a payroll table.

    Args:
        df: One row per employee-period.
        earnings_columns: Columns summed into gross earnings. Listed columns
            missing from the table count as zero; missing cells count as zero.
        basic_column: Basic salary column (housing fund base).
        period: "yearly" or "monthly".
        relief_regime: "consolidated" or "rent".
        rent_column: Annual rent column, used by the rent regime only.
        include_total: Append a "Total" row of column sums.

    Returns:
        The input columns followed by the computed assessment columns.

    Raises:
        InvalidInput: Any bad cell, missing required column or bad option.
    """
    if not isinstance(df, pd.DataFrame):
        raise InvalidInput("Input must be a DataFrame")
    if df.empty:
        raise InvalidInput("Payroll table has no rows")
    if basic_column not in df.columns:
        raise InvalidInput(f"Basic salary column {basic_column!r} not found")
    check_period(period)
    regime = parse_regime(relief_regime)

    rent_paid = None
    if regime == ReliefRegime.RENT:
        if rent_column not in df.columns:
            raise InvalidInput(f"Rent column {rent_column!r} not found")
        rent_paid = df[rent_column]
        as_amounts(rent_paid, rent_column)

    gross = gross_earnings_from_frame(df, earnings_columns)
    basic = df[basic_column]
    as_amounts(basic, basic_column)

    stages = _rounded_for_output(
        _run_pipeline(gross, basic, period, regime, rent_paid, pension_rate, nhf_rate, nhis_rate)
    )

    result = df.copy()
    for col in ASSESSMENT_COLUMNS:
        result[col] = stages[col].to_numpy()

    logger.info(
        "Assessed %d payroll rows (%s, %s relief)", len(df), period, regime.value
    )

    if not include_total:
        return result

    summed = [c for c in earnings_columns if c in df.columns]
    if basic_column not in summed:
        summed.append(basic_column)
    if rent_paid is not None and rent_column not in summed:
        summed.append(rent_column)
    summed += [c for c in ASSESSMENT_COLUMNS if c not in _NON_SUMMED and c not in summed]
    return add_total_row(result, summed)


# ─── Remittance Tables ───────────────────────────────────────────────────────


def assess_remittances(
    df: pd.DataFrame,
    policy: Union[str, PenaltyPolicy],
    unpaid_column: str = "unpaid_tax",
    due_column: str = "due_date",
    payment_column: str = "payment_date",
    employer_column: str = "employer_class",
    annual_interest_rate: RateLike = ANNUAL_INTEREST_RATE,
    include_total: bool = False,
) -> pd.DataFrame:
    """
    Interest and penalty for every row of a remittance table.

    The employer class column is optional; rows without one are treated as
    corporate employers.
    """
    if not isinstance(df, pd.DataFrame):
        raise InvalidInput("Input must be a DataFrame")
    missing = [c for c in (unpaid_column, due_column, payment_column) if c not in df.columns]
    if missing:
        raise InvalidInput(f"Missing required columns: {', '.join(missing)}")
    policy = get_penalty_policy(policy)
    annual_interest_rate = normalize_rate(annual_interest_rate)

    # Build every case first so a bad row fails the batch before any result
    cases = []
    for _, row in df.iterrows():
        employer_class = row[employer_column] if employer_column in df.columns else None
        if employer_class is not None and pd.isna(employer_class):
            employer_class = None
        cases.append(
            RemittanceCase(row[unpaid_column], row[due_column], row[payment_column], employer_class)
        )

    results = [assess_remittance(case, policy, annual_interest_rate) for case in cases]
    overdue = sum(1 for r in results if not r.on_time)
    logger.info(
        "Assessed %d remittances (%d overdue, %s penalty)", len(results), overdue, policy.name
    )

    output = df.copy()
    output["days_overdue"] = [r.days_overdue for r in results]
    output["interest_amount"] = [r.interest_amount for r in results]
    output["penalty_amount"] = [r.penalty_amount for r in results]
    output["total_liability"] = [r.total_liability for r in results]
    output["status"] = [STATUS_ON_TIME if r.on_time else STATUS_OVERDUE for r in results]

    if include_total:
        output = add_total_row(
            output, [unpaid_column, "interest_amount", "penalty_amount", "total_liability"]
        )
    return output
