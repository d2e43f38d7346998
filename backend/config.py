"""
Centralized configuration for the PIT audit backend.

Single source of truth for:
  - Statutory default rates (pension, housing fund, health insurance)
  - Relief, interest and penalty constants
  - Withholding tax / VAT defaults
  - Audit store path and connection management
  - Logging configuration

Every value here is read-only after import. Functions that use these
defaults accept an explicit override parameter instead of mutating them.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

# ─── Audit Store ─────────────────────────────────────────────────────────────

AUDIT_DB_PATH = Path(__file__).parent / "pit_audits.db"


@contextmanager
def get_db(db_path=None):
    """
    Context-managed database connection.

    Usage:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT ...")

    The connection is automatically closed when the block exits,
    even if an exception occurs.
    """
    conn = sqlite3.connect(db_path or AUDIT_DB_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


# ─── Periods ─────────────────────────────────────────────────────────────────

PERIOD_YEARLY = "yearly"
PERIOD_MONTHLY = "monthly"
VALID_PERIODS = (PERIOD_YEARLY, PERIOD_MONTHLY)


# ─── Statutory Deduction Rates ───────────────────────────────────────────────

# Pension contribution, on gross earnings
PENSION_RATE = 0.08

# National Housing Fund, on basic salary
NHF_RATE = 0.025

# National Health Insurance Scheme, on gross earnings
NHIS_RATE = 0.05


# ─── Relief Constants ────────────────────────────────────────────────────────

# Consolidated relief allowance: max(1% of gross income, floor) + 20% of gross income
CRA_BASE_RELIEF_YEARLY = 200_000
CRA_BASE_RELIEF_MONTHLY = CRA_BASE_RELIEF_YEARLY / 12  # 16,666.67
CRA_INCOME_FLOOR_RATE = 0.01
CRA_GROSS_INCOME_RATE = 0.20

# Rent relief: lower of the cap or 20% of annual rent paid
RENT_RELIEF_CAP = 200_000
RENT_RELIEF_RATE = 0.20


# ─── Remittance Constants ────────────────────────────────────────────────────

ANNUAL_INTEREST_RATE = 0.21
DAYS_PER_YEAR = 365

EMPLOYER_INDIVIDUAL = "individual"
EMPLOYER_CORPORATE = "corporate"
VALID_EMPLOYER_CLASSES = (EMPLOYER_INDIVIDUAL, EMPLOYER_CORPORATE)

INDIVIDUAL_EMPLOYER_PENALTY = 50_000
CORPORATE_EMPLOYER_PENALTY = 500_000
PROPORTIONAL_PENALTY_RATE = 0.10


# ─── Withholding Tax / VAT ───────────────────────────────────────────────────

WHT_DEFAULT_RATE = 0.05
WHT_THRESHOLD = 1_000_000

# Whole-number percentages, as published in the rate schedule
WHT_RATES_PERCENT = {
    "contract": 5,
    "professional_services": 10,
    "dividends": 10,
    "interest": 10,
}

VAT_RATE = 0.075
VAT_REGISTRATION_THRESHOLD = 25_000_000
VAT_FILING_DAY = 21

# Quarterly WHT returns fall due on the 21st of these months
WHT_FILING_MONTHS = (1, 4, 7, 10)
WHT_FILING_DAY = 21

WHT_EXEMPT_SERVICES = ("salaries", "reimbursements", "loan repayments")

VAT_EXEMPT_ITEMS = (
    "Basic food items",
    "Medical services",
    "Pharmaceutical products",
    "Educational materials",
    "Agricultural products",
    "Rent on residential property",
)


# ─── Audit Summary ───────────────────────────────────────────────────────────

DEFAULT_AUDIT_CATEGORIES = (
    "Tax Computed",
    "Remittance",
    "Shortfall",
    "Penalty",
    "Interest",
    "Total Shortfall",
)


# ─── Logging ─────────────────────────────────────────────────────────────────

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level=logging.INFO):
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance."""
    return logging.getLogger(name)
