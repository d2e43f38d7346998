"""
Relief Waterfall
================
From gross earnings down to taxable income:

    gross_income   = gross_earnings - (pension + health_insurance + housing_fund)
    relief         = consolidated_relief(gross_income)  or  rent_relief(rent_paid)
    total_relief   = relief + pension + housing_fund + health_insurance
    taxable_income = max(0, gross_earnings - total_relief)

Consolidated relief and rent relief are alternative regimes over the same
base; a computation uses exactly one of them.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

from config import (
    PERIOD_YEARLY,
    CRA_BASE_RELIEF_YEARLY,
    CRA_BASE_RELIEF_MONTHLY,
    CRA_INCOME_FLOOR_RATE,
    CRA_GROSS_INCOME_RATE,
    RENT_RELIEF_CAP,
    RENT_RELIEF_RATE,
)
from calculator_common import shaped_like, round_amount
from validators import InvalidInput, as_amounts, check_period, check_same_length


class ReliefRegime(str, Enum):
    CONSOLIDATED = "consolidated"
    RENT = "rent"


def parse_regime(regime) -> ReliefRegime:
    """Resolve a regime name ('consolidated' / 'rent') to a ReliefRegime."""
    try:
        return ReliefRegime(regime.lower() if isinstance(regime, str) else regime)
    except ValueError:
        raise InvalidInput(
            f"Invalid relief regime {regime!r}. Choose either 'consolidated' or 'rent'"
        ) from None


def gross_income(gross_earnings, pension, health_insurance, housing_fund):
    """Gross earnings less statutory exempt deductions. May be negative."""
    arrays = {
        "gross_earnings": as_amounts(gross_earnings, "gross_earnings", allow_negative=True),
        "pension": as_amounts(pension, "pension", allow_negative=True),
        "health_insurance": as_amounts(health_insurance, "health_insurance", allow_negative=True),
        "housing_fund": as_amounts(housing_fund, "housing_fund", allow_negative=True),
    }
    _broadcast_check(arrays)

    result = arrays["gross_earnings"] - (
        arrays["pension"] + arrays["health_insurance"] + arrays["housing_fund"]
    )
    return shaped_like(result, gross_earnings, pension, health_insurance, housing_fund)


def consolidated_relief(gross_income, period: str = PERIOD_YEARLY):
    """
    Consolidated relief allowance.

    The 1%-of-income term is compared with the period floor (200,000 a year,
    200,000/12 a month); the larger of the two is added to 20% of gross
    income.
    """
    income = as_amounts(gross_income, "gross_income")
    check_period(period)

    floor = CRA_BASE_RELIEF_YEARLY if period == PERIOD_YEARLY else CRA_BASE_RELIEF_MONTHLY
    relief = np.maximum(CRA_INCOME_FLOOR_RATE * income, floor) + CRA_GROSS_INCOME_RATE * income
    return shaped_like(round_amount(relief), gross_income)


def rent_relief(rent_paid):
    """Lower of 200,000 or 20% of annual rent paid."""
    rent = as_amounts(rent_paid, "rent_paid")
    relief = np.minimum(RENT_RELIEF_CAP, RENT_RELIEF_RATE * rent)
    return shaped_like(round_amount(relief), rent_paid)


def total_relief(*, relief_component, pension, housing_fund, health_insurance):
    """
    Sum of the chosen relief and all statutory exempt deductions.

    Keyword-only: relief_component is whichever of consolidated_relief or
    rent_relief was used for this computation.
    """
    arrays = {
        "relief_component": as_amounts(relief_component, "relief_component"),
        "pension": as_amounts(pension, "pension"),
        "housing_fund": as_amounts(housing_fund, "housing_fund"),
        "health_insurance": as_amounts(health_insurance, "health_insurance"),
    }
    _broadcast_check(arrays)

    total = (
        arrays["relief_component"]
        + arrays["pension"]
        + arrays["housing_fund"]
        + arrays["health_insurance"]
    )
    return shaped_like(
        round_amount(total), relief_component, pension, housing_fund, health_insurance
    )


def taxable_income(gross_earnings, total_relief):
    """Gross earnings less total relief, floored at zero."""
    gross = as_amounts(gross_earnings, "gross_earnings")
    relief = as_amounts(total_relief, "total_relief")
    _broadcast_check({"gross_earnings": gross, "total_relief": relief})

    taxable = np.maximum(gross - relief, 0.0)
    return shaped_like(round_amount(taxable), gross_earnings, total_relief)


@dataclass(frozen=True)
class ReliefSet:
    """The four reliefs behind one total_relief figure."""

    relief_component: float
    pension: float
    housing_fund: float
    health_insurance: float
    regime: ReliefRegime = ReliefRegime.CONSOLIDATED

    @property
    def total(self) -> float:
        return total_relief(
            relief_component=self.relief_component,
            pension=self.pension,
            housing_fund=self.housing_fund,
            health_insurance=self.health_insurance,
        )


def select_relief(gross_income, regime, period: str = PERIOD_YEARLY, rent_paid=None):
    """Relief under the selected regime (consolidated or rent)."""
    regime = parse_regime(regime)
    if regime == ReliefRegime.RENT:
        if rent_paid is None:
            raise InvalidInput("rent_paid is required for the rent relief regime")
        return rent_relief(rent_paid)
    return consolidated_relief(gross_income, period)


def build_relief_set(
    gross_income,
    pension: float,
    housing_fund: float,
    health_insurance: float,
    regime=ReliefRegime.CONSOLIDATED,
    period: str = PERIOD_YEARLY,
    rent_paid=None,
) -> ReliefSet:
    """Build the ReliefSet for a single employee-period."""
    regime = parse_regime(regime)
    return ReliefSet(
        relief_component=select_relief(gross_income, regime, period, rent_paid),
        pension=float(pension),
        housing_fund=float(housing_fund),
        health_insurance=float(health_insurance),
        regime=regime,
    )


def _broadcast_check(arrays: dict) -> None:
    """Collections must agree in length; single values broadcast."""
    sized = {k: v for k, v in arrays.items() if len(v) != 1}
    if sized:
        check_same_length(**sized)
