"""
Statutory Deductions Module
===========================
Rate normalization and the tax-exempt deductions built on it.

A deduction rate can be written three ways:
  - proportion:           0.08
  - whole-number percent: 8      (only via RateSpec.whole_percent)
  - percentage string:    "8%"

A bare number is always taken as a proportion. Magnitude is never used to
guess the form, so an 8 meant as 8% has to be passed as
RateSpec.whole_percent(8) or "8%".

Main entry points:
    normalize_rate(rate) -> proportion
    exempt_amount(base, rate) -> base * rate
    pension_deduction / nhf_deduction / nhis_deduction
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

from config import PENSION_RATE, NHF_RATE, NHIS_RATE
from calculator_common import is_collection, shaped_like
from validators import InvalidInput, as_amounts, check_same_length


class RateForm(str, Enum):
    PROPORTION = "proportion"
    WHOLE_PERCENT = "whole_percent"
    PERCENT_STRING = "percent_string"


@dataclass(frozen=True)
class RateSpec:
    """A deduction rate tagged with the form it was written in."""

    value: Union[float, str]
    form: RateForm = RateForm.PROPORTION

    @classmethod
    def proportion(cls, value: float) -> "RateSpec":
        return cls(value, RateForm.PROPORTION)

    @classmethod
    def whole_percent(cls, value: float) -> "RateSpec":
        return cls(value, RateForm.WHOLE_PERCENT)

    @classmethod
    def percent_string(cls, text: str) -> "RateSpec":
        return cls(text, RateForm.PERCENT_STRING)

    def to_proportion(self) -> float:
        if self.form == RateForm.PERCENT_STRING:
            return _parse_percent_string(self.value)
        number = _as_rate_number(self.value)
        if self.form == RateForm.WHOLE_PERCENT:
            return number / 100
        return number


RateLike = Union[RateSpec, float, int, str]


def _as_rate_number(value) -> float:
    arr = as_amounts(value, "rate")
    if len(arr) != 1:
        raise InvalidInput("rate must be a single value")
    return float(arr[0])


def _parse_percent_string(text) -> float:
    if not isinstance(text, str):
        raise InvalidInput(f"rate must be a percentage string, got {text!r}")
    try:
        number = float(text.strip().rstrip("%").strip())
    except ValueError:
        raise InvalidInput(f"rate {text!r} is not a valid percentage") from None
    if not np.isfinite(number) or number < 0:
        raise InvalidInput("rate must be a positive numeric value")
    return number / 100


def normalize_rate(rate: RateLike) -> float:
    """
    Convert a rate into a non-negative proportion.

    Args:
        rate: RateSpec, a number (already a proportion) or a percentage
              string such as "8%" or "2.5".

    Returns:
        Rate as a proportion, e.g. 0.08.

    Raises:
        InvalidInput: Negative, missing or non-numeric rate.
    """
    if isinstance(rate, RateSpec):
        return rate.to_proportion()
    if isinstance(rate, str):
        return _parse_percent_string(rate)
    return _as_rate_number(rate)


def exempt_amount(base, rate: RateLike):
    """
    Apply a rate to a base amount (scalar or collection), unrounded.

    A scalar rate is broadcast across the base; a collection of rates must
    match the base length and is applied row by row.
    """
    base_arr = as_amounts(base, "base")

    if is_collection(rate):
        rates = np.array([normalize_rate(r) for r in rate], dtype=float)
        check_same_length(base=base_arr, rate=rates)
    else:
        rates = normalize_rate(rate)

    return shaped_like(base_arr * rates, base)


def pension_deduction(gross_earnings, rate: RateLike = PENSION_RATE):
    """Employee pension contribution, 8% of gross earnings by default."""
    return exempt_amount(gross_earnings, rate)


def nhf_deduction(basic_salary, rate: RateLike = NHF_RATE):
    """National Housing Fund contribution, 2.5% of basic salary by default."""
    return exempt_amount(basic_salary, rate)


def nhis_deduction(gross_earnings, rate: RateLike = NHIS_RATE):
    """National Health Insurance contribution, 5% of gross earnings by default."""
    return exempt_amount(gross_earnings, rate)
