"""
Validation Module
=================
Input validation shared by the tax pipeline and the Flask API.

Two layers:
  - Amount validation for the calculation modules. Scalars, lists, numpy
    arrays and pandas Series are coerced into float arrays, and the whole
    batch is checked before any computation runs.
  - Declarative validators for Flask request parameters.

Usage:
    from validators import as_amounts, InvalidInput

    gross = as_amounts(df["gross_earnings"], "gross_earnings")

    # In endpoint:
    params, error = validate_params(request.args, [PERIOD, PENALTY_POLICY])
    if error:
        return error
"""

import math
from dataclasses import dataclass
from typing import Optional, Union, Set, Tuple, Any

import numpy as np
import pandas as pd

from config import VALID_PERIODS, VALID_EMPLOYER_CLASSES


class InvalidInput(ValueError):
    """Raised when caller-supplied data cannot be used for a computation."""


class UnknownTransactionType(InvalidInput):
    """Raised when a rate lookup key is not in the published schedule."""


# ═══════════════════════════════════════════════════════════════════════════════
# AMOUNT VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════


def _is_number(value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return False
    return isinstance(value, (int, float, np.integer, np.floating))


def _is_missing(value: Any) -> bool:
    if value is None or value is pd.NA or value is pd.NaT:
        return True
    return _is_number(value) and math.isnan(value)


def _as_items(values: Any) -> list:
    if isinstance(values, pd.Series):
        return values.tolist()
    if isinstance(values, np.ndarray):
        return values.ravel().tolist()
    if isinstance(values, (list, tuple)):
        return list(values)
    return [values]


def as_amounts(
    values: Any,
    name: str,
    allow_missing: bool = False,
    allow_negative: bool = False,
) -> np.ndarray:
    """
    Coerce a scalar or a collection of amounts into a 1-D float array.

    Args:
        values: A number, list/tuple, numpy array or pandas Series.
        name: Argument name used in error messages.
        allow_missing: Keep None/NaN/pd.NA as NaN instead of rejecting them.
        allow_negative: Accept values below zero.

    Returns:
        numpy float array (missing entries as NaN when allowed).

    Raises:
        InvalidInput: On any non-numeric, missing, infinite or negative entry.
    """
    cleaned = []
    for item in _as_items(values):
        if _is_missing(item):
            if not allow_missing:
                raise InvalidInput(f"{name} contains missing values")
            cleaned.append(np.nan)
        elif _is_number(item):
            cleaned.append(float(item))
        else:
            raise InvalidInput(f"{name} must be numeric, got {item!r}")

    arr = np.array(cleaned, dtype=float)
    if np.any(np.isinf(arr)):
        raise InvalidInput(f"{name} must be finite")
    if not allow_negative and np.any(arr[~np.isnan(arr)] < 0):
        raise InvalidInput(f"{name} cannot be negative")
    return arr


def check_same_length(**arrays: np.ndarray) -> int:
    """Ensure all named arrays share one length and return it."""
    lengths = {name: len(arr) for name, arr in arrays.items()}
    if len(set(lengths.values())) > 1:
        detail = ", ".join(f"{k}={v}" for k, v in lengths.items())
        raise InvalidInput(f"All inputs must have the same length ({detail})")
    return next(iter(lengths.values()), 0)


def check_period(period: str) -> str:
    """Validate a period token ('yearly' or 'monthly')."""
    if period not in VALID_PERIODS:
        raise InvalidInput(
            f"Invalid period {period!r}. Choose either 'yearly' or 'monthly'"
        )
    return period


# ═══════════════════════════════════════════════════════════════════════════════
# REQUEST PARAMETER VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class ParamValidator:
    """
    Declarative validator for a single request parameter.

    Attributes:
        name: Parameter name in request.args
        param_type: Expected type (str, int, float)
        default: Default value if not provided (None means optional)
        valid_values: Set of valid string values (for str type only)
        min_val: Minimum value (for int/float)
        max_val: Maximum value (for int/float)
        error_msg: Custom error message format
    """
    name: str
    param_type: type
    default: Any = None
    valid_values: Optional[Set[str]] = None
    min_val: Optional[Union[int, float]] = None
    max_val: Optional[Union[int, float]] = None
    error_msg: Optional[str] = None

    def validate(self, args: dict) -> Tuple[Optional[Any], Optional[Tuple]]:
        """
        Validate a parameter from request args.

        Returns:
            (value, None) on success
            (None, (jsonify_response, 400)) on error
        """
        from flask import jsonify

        raw = args.get(self.name)

        if raw is None or raw == "":
            if self.default is not None:
                return self.default, None
            return None, None

        try:
            if self.param_type == str:
                value = str(raw).lower()
            elif self.param_type == int:
                value = int(raw)
            elif self.param_type == float:
                value = float(raw)
            else:
                value = raw
        except (ValueError, TypeError):
            msg = self.error_msg or f"'{self.name}' must be a valid {self.param_type.__name__}"
            return None, (jsonify({"error": msg}), 400)

        if self.valid_values and value not in self.valid_values:
            options = ", ".join(f"'{v}'" for v in sorted(self.valid_values))
            msg = self.error_msg or f"{self.name} must be one of: {options}"
            return None, (jsonify({"error": msg}), 400)

        if self.min_val is not None and value < self.min_val:
            msg = self.error_msg or f"{self.name} must be >= {self.min_val}"
            return None, (jsonify({"error": msg}), 400)

        if self.max_val is not None and value > self.max_val:
            msg = self.error_msg or f"{self.name} must be <= {self.max_val}"
            return None, (jsonify({"error": msg}), 400)

        return value, None


def validate_params(
    args: dict,
    validators: list[ParamValidator]
) -> Tuple[dict, Optional[Tuple]]:
    """
    Validate multiple parameters at once.

    Returns:
        (params_dict, None) on success
        ({}, error_tuple) on first validation error
    """
    result = {}
    for v in validators:
        value, error = v.validate(args)
        if error:
            return {}, error
        result[v.name] = value
    return result, None


# ═══════════════════════════════════════════════════════════════════════════════
# PREDEFINED VALIDATORS
# ═══════════════════════════════════════════════════════════════════════════════

PERIOD = ParamValidator(
    name="period",
    param_type=str,
    default="yearly",
    valid_values=set(VALID_PERIODS),
    error_msg="period must be 'yearly' or 'monthly'",
)

EMPLOYER_CLASS = ParamValidator(
    name="employer_class",
    param_type=str,
    default="corporate",
    valid_values=set(VALID_EMPLOYER_CLASSES),
    error_msg="employer_class must be 'individual' or 'corporate'",
)

# No default: the caller has to pick a penalty regime
PENALTY_POLICY = ParamValidator(
    name="penalty_policy",
    param_type=str,
    default=None,
    valid_values={"fixed", "proportional"},
    error_msg="penalty_policy must be 'fixed' or 'proportional'",
)

RELIEF_REGIME = ParamValidator(
    name="relief_regime",
    param_type=str,
    default="consolidated",
    valid_values={"consolidated", "rent"},
    error_msg="relief_regime must be 'consolidated' or 'rent'",
)


def required_float(name: str, min_val: Optional[float] = 0) -> ParamValidator:
    """Create a validator for a numeric amount parameter."""
    return ParamValidator(
        name=name,
        param_type=float,
        default=None,
        min_val=min_val,
        error_msg=f"'{name}' must be a non-negative number",
    )
