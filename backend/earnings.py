"""
Earnings Aggregation
====================
Row-wise sum of earnings components (basic pay, allowances, bonuses,
arrears, ...) into gross earnings.
"""

from typing import Sequence

import numpy as np
import pandas as pd

from calculator_common import shaped_like
from validators import InvalidInput, as_amounts, check_same_length


def gross_earnings(*components):
    """
    Sum earnings components row by row.

    Each component is a scalar or a same-length collection. Missing values
    (None/NaN) count as zero, so a row where every component is missing
    sums to zero.

    Raises:
        InvalidInput: No components, non-numeric or negative entries, or
            components of different lengths.
    """
    if not components:
        raise InvalidInput("At least one earnings component is required")

    arrays = {
        f"component_{i + 1}": as_amounts(c, f"earnings component {i + 1}", allow_missing=True)
        for i, c in enumerate(components)
    }
    check_same_length(**arrays)

    stacked = np.column_stack(list(arrays.values()))
    return shaped_like(np.nansum(stacked, axis=1), *components)


def gross_earnings_from_frame(df: pd.DataFrame, columns: Sequence[str]) -> pd.Series:
    """
    Gross earnings for every row of a payroll table.

    Listed columns that are absent from the table are optional components
    and count as zero; at least one of them must be present.
    """
    present = [c for c in columns if c in df.columns]
    if not present:
        raise InvalidInput(
            f"None of the earnings columns are present: {', '.join(columns)}"
        )
    total = gross_earnings(*(df[c] for c in present))
    return pd.Series(total, index=df.index, name="gross_earnings")
