"""
Withholding Tax and VAT Helpers
===============================
Companion calculations used alongside the PIT audit: withholding tax (WHT)
on payments to contractors and service providers, and value added tax.

Rates use the same forms as the statutory deductions (proportion, "%"
string or RateSpec) and go through deductions.normalize_rate.
"""

import datetime

import numpy as np
import pandas as pd

from config import (
    PERIOD_MONTHLY,
    WHT_DEFAULT_RATE,
    WHT_THRESHOLD,
    WHT_RATES_PERCENT,
    VAT_RATE,
    VAT_REGISTRATION_THRESHOLD,
    VAT_FILING_DAY,
    VAT_EXEMPT_ITEMS,
    WHT_EXEMPT_SERVICES,
    WHT_FILING_DAY,
    WHT_FILING_MONTHS,
)
from calculator_common import is_collection, shaped_like, round_amount
from deductions import RateSpec, RateLike, exempt_amount, normalize_rate
from remittance import to_date
from validators import (
    InvalidInput,
    UnknownTransactionType,
    as_amounts,
    check_period,
    check_same_length,
)


# ─── Withholding Tax ─────────────────────────────────────────────────────────


def wht_rate_lookup(transaction_type: str) -> float:
    """
    WHT rate (as a proportion) for a transaction type.

    Raises:
        UnknownTransactionType: Type not in the rate schedule.
    """
    key = str(transaction_type).strip().lower()
    if key not in WHT_RATES_PERCENT:
        raise UnknownTransactionType(f"Unknown transaction type: {transaction_type!r}")
    return normalize_rate(RateSpec.whole_percent(WHT_RATES_PERCENT[key]))


def compute_wht(amount, rate: RateLike = WHT_DEFAULT_RATE):
    """Withholding tax on a payment, rounded to 2 decimals."""
    wht = exempt_amount(amount, rate)
    return shaped_like(round_amount(as_amounts(wht, "wht")), amount)


def apply_wht_to_invoice(invoice_amount, rate: RateLike = WHT_DEFAULT_RATE):
    """Net amount payable on an invoice after withholding."""
    gross = as_amounts(invoice_amount, "invoice_amount")
    wht = as_amounts(compute_wht(invoice_amount, rate), "wht")
    return shaped_like(round_amount(gross - wht), invoice_amount)


def wht_threshold_check(transaction_amount, threshold: float = WHT_THRESHOLD):
    """True where a transaction reaches the WHT threshold."""
    amounts = as_amounts(transaction_amount, "transaction_amount")
    return shaped_like(amounts >= threshold, transaction_amount)


def validate_wht_deductions(payments: pd.DataFrame) -> pd.DataFrame:
    """
    Rows where more WHT was withheld than the rate allows.

    Expects columns: amount, rate, wht_applied. The rate column holds
    proportions or "%" strings.
    """
    _require_columns(payments, ("amount", "rate", "wht_applied"))
    expected = compute_wht(payments["amount"], list(payments["rate"]))
    applied = as_amounts(payments["wht_applied"], "wht_applied")
    return payments[applied > np.asarray(expected) + 0.005]


def wht_summary(data: pd.DataFrame) -> pd.DataFrame:
    """Total WHT withheld per company."""
    _require_columns(data, ("company_id", "wht_applied"))
    as_amounts(data["wht_applied"], "wht_applied")
    summary = data.groupby("company_id", sort=True)["wht_applied"].sum().reset_index()
    summary.columns = ["company_id", "total_wht"]
    return summary


def wht_exempt_services() -> tuple:
    """Payment types that are not subject to withholding."""
    return WHT_EXEMPT_SERVICES


def wht_filing_deadline_check(date):
    """
    True where a date is a quarterly WHT filing deadline.

    Deadlines fall on the 21st of January, April, July and October.
    Accepts a single date or a collection of dates.
    """
    items = list(date) if is_collection(date) else [date]
    checked = np.array(
        [
            d.month in WHT_FILING_MONTHS and d.day == WHT_FILING_DAY
            for d in (to_date(item, "date") for item in items)
        ],
        dtype=bool,
    )
    return shaped_like(checked, date)


# ─── VAT ─────────────────────────────────────────────────────────────────────


def compute_vat(amount, rate: RateLike = VAT_RATE):
    """VAT on an amount, rounded to 2 decimals."""
    vat = exempt_amount(amount, rate)
    return shaped_like(round_amount(as_amounts(vat, "vat")), amount)


def net_vat_payable(output_vat, input_vat):
    """Output VAT less recoverable input VAT."""
    output = as_amounts(output_vat, "output_vat")
    inputs = as_amounts(input_vat, "input_vat")
    check_same_length(output_vat=output, input_vat=inputs)
    return shaped_like(round_amount(output - inputs), output_vat, input_vat)


def vat_exempt_items() -> tuple:
    """Goods and services exempt from VAT."""
    return VAT_EXEMPT_ITEMS


def vat_summary(data: pd.DataFrame) -> pd.DataFrame:
    """
    One-row summary of a VAT transaction table.

    Expects columns: amount, vat. Missing amounts are skipped in the sums.
    """
    _require_columns(data, ("amount", "vat"))
    amount = as_amounts(data["amount"], "amount", allow_missing=True)
    vat = as_amounts(data["vat"], "vat", allow_missing=True)
    return pd.DataFrame(
        {
            "total_transactions": [len(data)],
            "total_amount": [round_amount(np.nansum(amount))],
            "total_vat": [round_amount(np.nansum(vat))],
        }
    )


def vat_threshold_check(revenue, threshold: float = VAT_REGISTRATION_THRESHOLD):
    """True where revenue reaches the VAT registration threshold."""
    amounts = as_amounts(revenue, "revenue")
    return shaped_like(amounts >= threshold, revenue)


def vat_filing_deadline(date) -> datetime.date:
    """VAT return deadline: the 21st of the month of the given date."""
    return to_date(date, "date").replace(day=VAT_FILING_DAY)


def vat_report(data: pd.DataFrame, period: str = PERIOD_MONTHLY) -> pd.DataFrame:
    """
    Aggregate transaction amount and VAT by month or by year.

    Expects columns: date, amount, vat.
    """
    _require_columns(data, ("date", "amount", "vat"))
    check_period(period)
    as_amounts(data["amount"], "amount")
    as_amounts(data["vat"], "vat")

    dates = pd.to_datetime(data["date"], errors="coerce")
    if dates.isna().any():
        raise InvalidInput("date column contains values that are not dates")

    fmt = "%Y-%m" if period == PERIOD_MONTHLY else "%Y"
    key = "month" if period == PERIOD_MONTHLY else "year"
    grouped = (
        data.assign(**{key: dates.dt.strftime(fmt)})
        .groupby(key, sort=True)[["amount", "vat"]]
        .sum()
        .reset_index()
    )
    return grouped


# ─── Reconciliation ──────────────────────────────────────────────────────────


def reconcile_payments(expected, actual):
    """Expected less actual payment (positive means underpaid)."""
    exp = as_amounts(expected, "expected")
    act = as_amounts(actual, "actual")
    check_same_length(expected=exp, actual=act)
    return shaped_like(round_amount(exp - act), expected, actual)


def _require_columns(df: pd.DataFrame, columns) -> None:
    if not isinstance(df, pd.DataFrame):
        raise InvalidInput("Input must be a DataFrame")
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise InvalidInput(f"Missing required columns: {', '.join(missing)}")
