from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)


def excel_round(x, decimals: int = 0):
    """Half away from zero rounding (what the dashboard displays), vectorized."""
    m = 10 ** decimals
    x = np.asarray(x, dtype=float)
    return np.sign(x) * (np.floor(np.abs(x) * m + 0.5) / m)


def round_half_up(value: float, decimals: int = 0) -> float:
    """Scalar form of excel_round."""
    return float(excel_round(value, decimals))


def parse_date(value) -> Optional[pd.Timestamp]:
    """
    Parse a record date into a midnight Timestamp.

    Accepts ISO strings ("2025-01-16", "2025-01-16T00:00:00"), date/datetime
    objects and pandas Timestamps. Blank or unparseable values return None;
    callers decide whether that deserves a diagnostic.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if isinstance(value, (datetime, date, pd.Timestamp)):
        try:
            ts = pd.Timestamp(value)
        except (ValueError, OverflowError):
            return None
    else:
        ts = pd.to_datetime(value, errors="coerce")
    if ts is None or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    # record frames are datetime64[ns]; anything outside that range is unusable
    if not pd.Timestamp.min <= ts <= pd.Timestamp.max:
        return None
    return ts.normalize()


def to_amount(value, default: float = 0.0) -> float:
    """
    Coerce a monetary/numeric field.

    None and blank strings give `default`. Strings with thousands separators
    ("1,200.50") are accepted. Anything else that cannot be read as a finite
    number also gives `default` and is logged.
    """
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value:
            return default
    try:
        out = float(value)
    except (TypeError, ValueError):
        logger.warning("Unparseable numeric value %r, using %s", value, default)
        return default
    if not np.isfinite(out):
        logger.warning("Non-finite numeric value %r, using %s", value, default)
        return default
    return out


def month_start(as_of) -> pd.Timestamp:
    ts = pd.Timestamp(as_of)
    return pd.Timestamp(year=ts.year, month=ts.month, day=1)


def month_windows(start, n_months: int) -> List[Tuple[pd.Timestamp, pd.Timestamp]]:
    """
    Calendar month windows for a projection.

    The first window is the month containing `start` (even when `start` is
    mid-month). Each window is (first day, last day), both inclusive.
    """
    first = month_start(start)
    windows = []
    for k in range(n_months):
        begin = first + relativedelta(months=k)
        end = begin + relativedelta(months=1) - pd.Timedelta(days=1)
        windows.append((pd.Timestamp(begin), pd.Timestamp(end)))
    return windows


def days_between(start: pd.Series, end) -> pd.Series:
    """Fractional days from `start` to `end` (Series or scalar)."""
    return (end - start) / pd.Timedelta(days=1)
