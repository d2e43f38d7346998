"""
Audit store for the PIT audit backend.

Each saved audit is a result table reduced to (category, value) pairs: the
first column names the line item and the last column holds its amount.
Audits are keyed by a container name of the form "audit_<period>", e.g.
"audit_2024-03".
"""

import re
from typing import Optional, Sequence

import pandas as pd

from config import AUDIT_DB_PATH, DEFAULT_AUDIT_CATEGORIES, get_db, get_logger
from validators import InvalidInput

logger = get_logger(__name__)

CONTAINER_PREFIX = "audit_"

# "audit_2024-03", "audit_2024-03.rda", "2024-03"
_TOKEN_RE = re.compile(r"^(?:audit_)?(?P<period>.+?)(?:\.[A-Za-z0-9]+)?$")


def create_database(db_path=None):
    """Create the audit store schema"""
    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # One row per line item of a saved audit; position keeps table order
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS audit_items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                container TEXT NOT NULL,
                period TEXT NOT NULL,
                position INTEGER NOT NULL,
                category TEXT,
                value REAL,
                saved_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(container, position)
            )
        """)

        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_audit_items_period ON audit_items(period)"
        )

        conn.commit()

    logger.info("Audit store ready at: %s", db_path or AUDIT_DB_PATH)


def container_name(period: str) -> str:
    """Container name for an audit period, e.g. 'audit_2024-03'."""
    return f"{CONTAINER_PREFIX}{period}"


def period_from_token(token: str) -> str:
    """
    Extract the period from a container name or file name.

        period_from_token("audit_2024-03.rda") -> "2024-03"
    """
    match = _TOKEN_RE.match(str(token).strip())
    if not match or not match.group("period"):
        raise InvalidInput(f"Cannot read an audit period from {token!r}")
    return match.group("period")


def save_audit(result: pd.DataFrame, period: str, db_path=None) -> str:
    """
    Save a result table under "audit_<period>", replacing any earlier save.

    Args:
        result: Table whose first column holds category labels and whose
            last column holds the amounts.
        period: Audit period label, e.g. "2024-03".

    Returns:
        The container name the audit was saved under.
    """
    if not isinstance(result, pd.DataFrame):
        raise InvalidInput("Audit result must be a DataFrame")
    if result.shape[1] < 2:
        raise InvalidInput("Audit result needs a category column and a value column")
    if result.empty:
        raise InvalidInput("Audit result has no rows")
    period = str(period).strip()
    if not period:
        raise InvalidInput("Audit period is required")

    categories = result.iloc[:, 0]
    values = pd.to_numeric(result.iloc[:, -1], errors="coerce")
    container = container_name(period)

    rows = [
        (
            container,
            period,
            position,
            None if pd.isna(category) else str(category),
            None if pd.isna(value) else float(value),
        )
        for position, (category, value) in enumerate(zip(categories, values))
    ]

    create_database(db_path)
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("DELETE FROM audit_items WHERE container = ?", (container,))
        cursor.executemany(
            """
            INSERT INTO audit_items (container, period, position, category, value)
            VALUES (?, ?, ?, ?, ?)
            """,
            rows,
        )
        conn.commit()

    logger.info("Audit saved to %s (%d items)", container, len(rows))
    return container


def list_audits(db_path=None) -> list[str]:
    """Saved container names, in period order."""
    create_database(db_path)
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT DISTINCT container, period FROM audit_items ORDER BY period"
        )
        return [row["container"] for row in cursor.fetchall()]


def generate_audit_summary(
    categories: Optional[Sequence[str]] = None,
    db_path=None,
) -> pd.DataFrame:
    """
    Category-by-period table across every saved audit.

    A category appears with its value for a period only when exactly one
    line of that audit carries the label; otherwise the cell is NaN.

    Raises:
        InvalidInput: No audits have been saved.
    """
    categories = list(categories or DEFAULT_AUDIT_CATEGORIES)

    create_database(db_path)
    with get_db(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("SELECT container, category, value FROM audit_items")
        rows = [dict(row) for row in cursor.fetchall()]

    items = pd.DataFrame(rows, columns=["container", "category", "value"])

    if items.empty:
        raise InvalidInput("No audits have been saved")

    items["period"] = items["container"].map(period_from_token)
    periods = sorted(items["period"].unique())

    # Labels repeated within one audit are ambiguous
    counts = items.groupby(["period", "category"])["value"].transform("size")
    unique_items = items[counts == 1]

    summary = unique_items.pivot(index="category", columns="period", values="value")
    summary = summary.reindex(index=categories, columns=periods)
    summary.index.name = None
    summary.columns.name = None
    return summary.astype(float)
