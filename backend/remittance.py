"""
Remittance Accrual Module
=========================
Interest and penalty on PIT remitted after its due date, and the balance
left after a partial payment.

    days_overdue    = payment_date - due_date          (calendar days)
    interest        = unpaid_tax * 0.21 / 365 * days_overdue
    penalty         = chosen PenaltyPolicy
    total_liability = unpaid_tax + interest + penalty

Two penalty regimes exist and the caller must choose one:
    FixedPenalty        50,000 (individual employer) / 500,000 (corporate)
    ProportionalPenalty 10% of the unpaid tax
"""

import datetime
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Optional, Union

import numpy as np
import pandas as pd

from config import (
    ANNUAL_INTEREST_RATE,
    DAYS_PER_YEAR,
    EMPLOYER_INDIVIDUAL,
    EMPLOYER_CORPORATE,
    VALID_EMPLOYER_CLASSES,
    INDIVIDUAL_EMPLOYER_PENALTY,
    CORPORATE_EMPLOYER_PENALTY,
    PROPORTIONAL_PENALTY_RATE,
    get_logger,
)
from calculator_common import shaped_like
from deductions import RateLike, normalize_rate
from validators import InvalidInput, as_amounts, check_same_length

logger = get_logger(__name__)

ON_TIME_MESSAGE = "No penalty or interest. Payment was made on time."

DateLike = Union[datetime.date, datetime.datetime, pd.Timestamp, str]


# ─── Helpers ─────────────────────────────────────────────────────────────────


def to_date(value: DateLike, name: str) -> datetime.date:
    """Normalize a date, datetime, Timestamp or ISO string to a date."""
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            raise InvalidInput(f"{name} is missing")
        return value.date()
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            raise InvalidInput(f"{name} must be an ISO date (YYYY-MM-DD), got {value!r}") from None
    raise InvalidInput(f"{name} must be a date, got {value!r}")


def normalize_employer_class(employer_class: Optional[str]) -> str:
    """Case-insensitive employer class; None means corporate."""
    if employer_class is None:
        return EMPLOYER_CORPORATE
    token = str(employer_class).strip().lower()
    if token not in VALID_EMPLOYER_CLASSES:
        raise InvalidInput(
            f"Invalid employer class {employer_class!r}. Choose either 'individual' or 'corporate'"
        )
    return token


def _single_amount(value, name: str) -> float:
    arr = as_amounts(value, name)
    if len(arr) != 1:
        raise InvalidInput(f"{name} must be a single amount")
    return float(arr[0])


# ─── Penalty Policies ────────────────────────────────────────────────────────


class PenaltyPolicy(ABC):
    """Base class for late-remittance penalty regimes."""

    name = "base"

    @abstractmethod
    def penalty(self, unpaid_tax: float, employer_class: str) -> float:
        """Penalty on an overdue amount for the given employer class."""


@dataclass(frozen=True)
class FixedPenalty(PenaltyPolicy):
    """Flat fee that depends on the employer class."""

    individual: float = INDIVIDUAL_EMPLOYER_PENALTY
    corporate: float = CORPORATE_EMPLOYER_PENALTY
    name = "fixed"

    def __post_init__(self):
        object.__setattr__(self, "individual", _single_amount(self.individual, "individual penalty"))
        object.__setattr__(self, "corporate", _single_amount(self.corporate, "corporate penalty"))

    def penalty(self, unpaid_tax: float, employer_class: str) -> float:
        if employer_class == EMPLOYER_INDIVIDUAL:
            return self.individual
        return self.corporate


@dataclass(frozen=True)
class ProportionalPenalty(PenaltyPolicy):
    """Flat percentage of the unpaid tax, regardless of employer class."""

    rate: RateLike = PROPORTIONAL_PENALTY_RATE
    name = "proportional"

    def __post_init__(self):
        object.__setattr__(self, "rate", normalize_rate(self.rate))

    def penalty(self, unpaid_tax: float, employer_class: str) -> float:
        return unpaid_tax * self.rate


FIXED_PENALTY = FixedPenalty()
PROPORTIONAL_PENALTY = ProportionalPenalty()

PENALTY_POLICIES: dict[str, PenaltyPolicy] = {
    FIXED_PENALTY.name: FIXED_PENALTY,
    PROPORTIONAL_PENALTY.name: PROPORTIONAL_PENALTY,
}


def get_penalty_policy(policy: Union[str, PenaltyPolicy]) -> PenaltyPolicy:
    """Resolve a policy name ('fixed' / 'proportional') or pass a policy through."""
    if isinstance(policy, PenaltyPolicy):
        return policy
    if isinstance(policy, str) and policy.strip().lower() in PENALTY_POLICIES:
        return PENALTY_POLICIES[policy.strip().lower()]
    raise InvalidInput(
        f"Invalid penalty policy {policy!r}. Choose either 'fixed' or 'proportional'"
    )


# ─── Value Types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RemittanceCase:
    """One late-remittance audit event."""

    unpaid_tax: float
    due_date: datetime.date
    payment_date: datetime.date
    employer_class: str = EMPLOYER_CORPORATE

    def __post_init__(self):
        # frozen: normalized values are written through object.__setattr__
        object.__setattr__(self, "unpaid_tax", _single_amount(self.unpaid_tax, "unpaid_tax"))
        object.__setattr__(self, "due_date", to_date(self.due_date, "due_date"))
        object.__setattr__(self, "payment_date", to_date(self.payment_date, "payment_date"))
        object.__setattr__(
            self, "employer_class", normalize_employer_class(self.employer_class)
        )

    @property
    def days_overdue(self) -> int:
        return max((self.payment_date - self.due_date).days, 0)

    @property
    def is_overdue(self) -> bool:
        return self.payment_date > self.due_date


@dataclass(frozen=True)
class RemittanceResult:
    unpaid_tax: float
    days_overdue: int
    interest_amount: float
    penalty_amount: float
    total_liability: float
    on_time: bool
    penalty_policy: str

    @classmethod
    def paid_on_time(cls, unpaid_tax: float, penalty_policy: str) -> "RemittanceResult":
        return cls(
            unpaid_tax=unpaid_tax,
            days_overdue=0,
            interest_amount=0.0,
            penalty_amount=0.0,
            total_liability=round(unpaid_tax, 2),
            on_time=True,
            penalty_policy=penalty_policy,
        )

    @property
    def message(self) -> Optional[str]:
        return ON_TIME_MESSAGE if self.on_time else None

    def as_dict(self) -> dict:
        data = asdict(self)
        data["message"] = self.message
        return data


# ─── Main Entry Points ───────────────────────────────────────────────────────


def assess_remittance(
    case: RemittanceCase,
    policy: Union[str, PenaltyPolicy],
    annual_interest_rate: RateLike = ANNUAL_INTEREST_RATE,
) -> RemittanceResult:
    """Interest, penalty and total liability for one remittance case."""
    policy = get_penalty_policy(policy)
    annual_interest_rate = normalize_rate(annual_interest_rate)

    if not case.is_overdue:
        return RemittanceResult.paid_on_time(case.unpaid_tax, policy.name)

    days_overdue = case.days_overdue
    daily_rate = annual_interest_rate / DAYS_PER_YEAR
    interest = case.unpaid_tax * daily_rate * days_overdue
    penalty = policy.penalty(case.unpaid_tax, case.employer_class)
    total = case.unpaid_tax + interest + penalty

    logger.debug(
        "Remittance %d days overdue (%s penalty): interest=%.2f penalty=%.2f",
        days_overdue, policy.name, interest, penalty,
    )

    return RemittanceResult(
        unpaid_tax=case.unpaid_tax,
        days_overdue=days_overdue,
        interest_amount=round(interest, 2),
        penalty_amount=round(penalty, 2),
        total_liability=round(total, 2),
        on_time=False,
        penalty_policy=policy.name,
    )


def penalty_and_interest(
    unpaid_tax: float,
    due_date: DateLike,
    payment_date: DateLike,
    policy: Union[str, PenaltyPolicy],
    employer_class: Optional[str] = EMPLOYER_CORPORATE,
    annual_interest_rate: RateLike = ANNUAL_INTEREST_RATE,
) -> RemittanceResult:
    """
    Penalty and interest on tax remitted late.

    Args:
        unpaid_tax: Tax amount that was not remitted by the due date.
        due_date: Statutory due date.
        payment_date: Date the tax was actually paid.
        policy: FixedPenalty / ProportionalPenalty instance, or its name.
        employer_class: "individual" or "corporate" (case-insensitive).
        annual_interest_rate: Simple annual interest rate, accrued daily
            (proportion, "%" string or RateSpec).

    Returns:
        RemittanceResult. When payment_date <= due_date the result is the
        on-time sentinel with no interest or penalty.
    """
    case = RemittanceCase(unpaid_tax, due_date, payment_date, employer_class)
    return assess_remittance(case, policy, annual_interest_rate)


def outstanding_liability(actual_liability, payment_made):
    """
    Balance left after a (partial) payment.

    Raises:
        InvalidInput: Non-numeric or negative values, different lengths,
            or a payment larger than the liability.
    """
    actual = as_amounts(actual_liability, "actual_liability")
    paid = as_amounts(payment_made, "payment_made")
    check_same_length(actual_liability=actual, payment_made=paid)

    if np.any(paid > actual):
        raise InvalidInput("Payment made cannot exceed actual liability")

    return shaped_like(actual - paid, actual_liability, payment_made)
