"""
Tax Data Module
===============
Progressive Personal Income Tax schedule (six bands) for annual and monthly
payroll periods.

Main entry point:
    tax_liability(taxable_income, period="yearly") -> tax

Architecture:
    - Two fixed schedules of (width, marginal_rate) bands
    - _apply_brackets() walks the bands in order, lowest first
    - Anything left after the fixed bands is taxed at the final 24% rate

The monthly schedule is a separate published table, not the annual table
divided by 12: 500,000 / 12 = 41,666.67 is listed as 41,667 and
1,600,000 / 12 = 133,333.33 as 133,333. Both tables are kept verbatim.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from config import PERIOD_YEARLY, PERIOD_MONTHLY
from calculator_common import shaped_like, round_amount
from validators import InvalidInput, as_amounts, check_period


@dataclass(frozen=True)
class Bracket:
    """A fixed-width income band taxed at one marginal rate."""

    width: float  # float('inf') for the open-ended top band
    rate: float


# ─── Schedules ────────────────────────────────────────────────────────────────

ANNUAL_BRACKETS: tuple[Bracket, ...] = (
    Bracket(300_000, 0.07),
    Bracket(300_000, 0.11),
    Bracket(500_000, 0.15),
    Bracket(500_000, 0.19),
    Bracket(1_600_000, 0.21),
    Bracket(float("inf"), 0.24),
)

MONTHLY_BRACKETS: tuple[Bracket, ...] = (
    Bracket(25_000, 0.07),
    Bracket(25_000, 0.11),
    Bracket(41_667, 0.15),
    Bracket(41_667, 0.19),
    Bracket(133_333, 0.21),
    Bracket(float("inf"), 0.24),
)

TOP_MARGINAL_RATE = 0.24

_BRACKETS_BY_PERIOD = {
    PERIOD_YEARLY: ANNUAL_BRACKETS,
    PERIOD_MONTHLY: MONTHLY_BRACKETS,
}


def get_brackets(period: str) -> tuple[Bracket, ...]:
    """Bracket schedule for 'yearly' or 'monthly'."""
    return _BRACKETS_BY_PERIOD[check_period(period)]


def _apply_brackets(taxable: np.ndarray, brackets: tuple[Bracket, ...]) -> np.ndarray:
    """
    Apply progressive tax brackets.

    Each band taxes the lesser of the remaining income and its width, then
    that amount is removed from the remaining income. Bands are never skipped
    or reordered.
    Returns unrounded tax per row.
    """
    remaining = taxable.copy()
    tax = np.zeros_like(remaining)
    for bracket in brackets:
        portion = np.minimum(remaining, bracket.width)
        tax += portion * bracket.rate
        remaining -= portion
    tax += np.maximum(remaining, 0.0) * TOP_MARGINAL_RATE
    return tax


def tax_liability(taxable_income, period: str = PERIOD_YEARLY):
    """
    Calculate PIT liability on taxable income.

    Args:
        taxable_income: Scalar or collection of non-negative amounts.
        period: "yearly" (annual bands) or "monthly" (monthly bands).

    Returns:
        Tax rounded to 2 decimal places, in the shape of the input.

    Raises:
        InvalidInput: Negative, missing or non-numeric income; unknown period.
    """
    income = as_amounts(taxable_income, "taxable_income")
    brackets = get_brackets(period)
    return shaped_like(round_amount(_apply_brackets(income, brackets)), taxable_income)


def bracket_breakdown(taxable_income: float, period: str = PERIOD_YEARLY) -> list[dict]:
    """
    Per-band view of the tax on a single taxable income.

    Returns one dict per band that received income:
        {band, lower, upper, rate, taxed_amount, tax}
    """
    income = as_amounts(taxable_income, "taxable_income")
    if len(income) != 1:
        raise InvalidInput("bracket_breakdown takes a single taxable income")
    brackets = get_brackets(period)
    remaining = float(income[0])

    rows = []
    lower = 0.0
    for i, bracket in enumerate(brackets, start=1):
        if remaining <= 0:
            break
        portion = min(remaining, bracket.width)
        upper: Optional[float] = None if bracket.width == float("inf") else lower + bracket.width
        rows.append(
            {
                "band": i,
                "lower": lower,
                "upper": upper,
                "rate": bracket.rate,
                "taxed_amount": round(portion, 2),
                "tax": round(portion * bracket.rate, 2),
            }
        )
        remaining -= portion
        lower += bracket.width
    return rows


def effective_tax_rate(tax, gross_earnings):
    """Tax as a proportion of gross earnings (0 where gross is 0)."""
    tax_arr = as_amounts(tax, "tax")
    gross = as_amounts(gross_earnings, "gross_earnings")
    with np.errstate(divide="ignore", invalid="ignore"):
        rate = np.where(gross > 0, tax_arr / gross, 0.0)
    return shaped_like(np.round(rate, 4), tax, gross_earnings)
