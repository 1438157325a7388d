"""Parsing helpers for values returned by SHOW statements.

SHOW BACKENDS and friends return strings such as ``"85.23 %"`` or
``"1.500 TB"``; these helpers turn them into floats. Unparseable values
become None (or the given default) rather than raising.
"""

import re
from typing import Any, Optional

import numpy as np
import pandas as pd

_SIZE_UNITS_IN_GB = {
    "B": 1.0 / 1024 ** 3,
    "KB": 1.0 / 1024 ** 2,
    "MB": 1.0 / 1024,
    "GB": 1.0,
    "TB": 1024.0,
    "PB": 1024.0 ** 2,
}

_SIZE_PATTERN = re.compile(r"^\s*([-+]?\d+(?:\.\d+)?)\s*([KMGTP]?B)?\s*$", re.IGNORECASE)


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Convert a scalar to float; None, NaN and garbage give default."""
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
        if not value:
            return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if np.isnan(result):
        return default
    return result


def to_int(value: Any, default: int = 0) -> int:
    """Convert a scalar to int (via float), falling back to default."""
    result = to_float(value)
    return default if result is None else int(result)


def parse_percent(value: Any) -> Optional[float]:
    """Parse ``"85.23 %"``, ``"85.23"`` or 85.23 into 85.23."""
    return to_float(value)


def parse_storage_size(value: Any) -> Optional[float]:
    """Parse a human-readable size into gigabytes.

    Parameters
    ----------
    value : str or number
        e.g. "512.000 MB", "1.5 TB", "0.000 " (bare numbers are GB)

    Returns
    -------
    float or None
        Size in GB
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return to_float(value)

    match = _SIZE_PATTERN.match(value)
    if not match:
        return None
    number = float(match.group(1))
    unit = (match.group(2) or "GB").upper()
    return number * _SIZE_UNITS_IN_GB[unit]


def column(df: pd.DataFrame, *names: str) -> Optional[pd.Series]:
    """Return the first column present among names (case-insensitive)."""
    if df is None or df.empty:
        return None
    lookup = {str(c).lower(): c for c in df.columns}
    for name in names:
        actual = lookup.get(name.lower())
        if actual is not None:
            return df[actual]
    return None


def numeric_column(df: pd.DataFrame, *names: str) -> pd.Series:
    """Like column(), parsed to float with unparseable cells as NaN."""
    series = column(df, *names)
    if series is None:
        return pd.Series(dtype=float)
    return series.map(lambda v: to_float(v, default=np.nan)).astype(float)


def row_value(row: pd.Series, *names: str, default: Any = None) -> Any:
    """Return the first present, non-null field of a row (case-insensitive)."""
    lookup = {str(k).lower(): k for k in row.index}
    for name in names:
        actual = lookup.get(name.lower())
        if actual is not None:
            value = row[actual]
            if value is not None and not (isinstance(value, float) and np.isnan(value)):
                return value
    return default
