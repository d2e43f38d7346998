"""
Shared Calculation Utilities
============================
Helpers used across the tax pipeline modules:
  - returning results in the same shape the caller passed in
  - two-decimal rounding at the point of return
  - the "Total" row appended to assessment tables
  - a serialization-agnostic record view of result tables
"""

from typing import Any, Sequence

import numpy as np
import pandas as pd

from validators import InvalidInput

TOTAL_LABEL = "Total"


def is_collection(value: Any) -> bool:
    """True for lists, tuples, numpy arrays and pandas Series."""
    return isinstance(value, (list, tuple, np.ndarray, pd.Series))


def shaped_like(values: np.ndarray, *templates: Any):
    """
    Return `values` in the shape of the first collection among `templates`.

    A Series template yields a Series on the same index, any other collection
    yields the numpy array, and all-scalar templates yield a float.
    """
    for template in templates:
        if isinstance(template, pd.Series):
            return pd.Series(values, index=template.index, name=template.name)
        if is_collection(template):
            return values
    return values[0].item()


def round_amount(values: np.ndarray) -> np.ndarray:
    """Round to two decimal places (kobo precision)."""
    return np.round(values, 2)


def add_total_row(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """
    Append a "Total" row holding column sums for the given columns.

    String cells in the summed columns are coerced to numbers where possible
    and missing values are ignored. All other columns are left blank on the
    total row, and the original column order is preserved.

    Args:
        df: Result table.
        columns: Columns to sum.

    Returns:
        New DataFrame with the total row appended under the index label "Total".
    """
    if not isinstance(df, pd.DataFrame):
        raise InvalidInput("Input must be a DataFrame")
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise InvalidInput(f"Columns not found in table: {', '.join(missing)}")

    result = df.copy()
    for col in columns:
        result[col] = pd.to_numeric(result[col], errors="coerce")

    totals = {col: result[col].sum(skipna=True) for col in columns}
    total_row = pd.DataFrame([totals], index=[TOTAL_LABEL])
    result = pd.concat([result, total_row])
    return result[list(df.columns)]


def to_records(df: pd.DataFrame) -> list[dict]:
    """
    Convert a result table into a list of plain dicts.

    The index is kept under the "row" key, numpy scalars become Python
    numbers and NaN becomes None, so any persistence layer or JSON encoder
    can consume the output.
    """
    records = []
    for label, row in df.iterrows():
        record = {"row": label.item() if isinstance(label, np.generic) else label}
        for col, value in row.items():
            if value is pd.NA or value is pd.NaT:
                value = None
            elif isinstance(value, pd.Timestamp):
                value = value.date().isoformat()
            elif isinstance(value, np.generic):
                value = value.item()
            if isinstance(value, float) and np.isnan(value):
                value = None
            record[col] = value
        records.append(record)
    return records
