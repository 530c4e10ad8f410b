"""
R2 of a variable against time: univariate linear trend model (y ~ 1 + t), weighted or not.
Missing or infinite data handled by case-wise deletion (optionally imputing missing y first).
Degenerate inputs return sentinels instead of raising:
    INSUFFICIENT_DATA (+inf) - fewer than 2 non-missing values, nothing to fit
    SINGULAR_FIT (nan)       - fit undefined (constant time, constant y, zero total weight)
"""
import logging
from typing import Callable, Optional

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression
from sklearn.metrics import r2_score

from config.settings import MIN_OBSERVATIONS

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA = float("inf")
SINGULAR_FIT = float("nan")


class ShapeMismatchError(ValueError):
    """values, time and weights do not have the same length."""


def _as_float_array(x, label: str) -> np.ndarray:
    """Coerce to float ndarray; None/pd.NA/NaT become nan."""
    ser = x if isinstance(x, pd.Series) else pd.Series(x)
    if not pd.api.types.is_numeric_dtype(ser):
        try:
            ser = pd.to_numeric(ser, errors="raise")
        except (TypeError, ValueError) as e:
            raise TypeError(f"{label} must be numeric: {e}") from e
    return ser.to_numpy(dtype=float, na_value=np.nan)


def to_time_axis(dates) -> np.ndarray:
    """Numeric time axis: days since epoch for datetimes, the raw numbers otherwise."""
    dates = pd.Series(dates)
    if pd.api.types.is_datetime64_any_dtype(dates):
        if getattr(dates.dt, "tz", None) is not None:
            dates = dates.dt.tz_convert("UTC").dt.tz_localize(None)
        days = (dates - pd.Timestamp("1970-01-01")) / pd.Timedelta(days=1)
        return days.to_numpy(dtype=float, na_value=np.nan)
    return _as_float_array(dates, "time")


def weighted_mean(values, weights, normalize: bool = True) -> float:
    """
    Weighted mean, dropping pairs where value or weight is missing.
    normalize rescales weights to sum to the number of observations; the mean is unchanged by it.
    Returns nan for no observations or zero total weight.
    """
    x = _as_float_array(values, "values")
    w = _as_float_array(weights, "weights")
    if len(x) != len(w):
        raise ShapeMismatchError(f"values ({len(x)}) and weights ({len(w)}) differ in length")
    keep = ~(np.isnan(x) | np.isnan(w))
    x, w = x[keep], w[keep]
    total = w.sum()
    if len(x) == 0 or total == 0:
        return float("nan")
    if normalize:
        w = w * len(w) / total
        total = w.sum()
    return float(np.dot(w, x) / total)


def calc_r2(
    values,
    time,
    weights=None,
    impute_value: Optional[float] = None,
    name: Optional[str] = None,
    observer: Optional[Callable[[str], None]] = None,
) -> float:
    """
    R2 of values ~ time by OLS, or WLS when weights are given.

    values: response, may contain missing entries.
    time: numeric (or datetime) time axis; missing entries are dropped like any other covariate.
    weights: optional non-negative row weights.
    impute_value: if set, missing values are filled with it before fitting.
    name / observer: progress notice "Calculating R2 of <name>" is logged and, if given, passed to observer(name).

    Returns R2 (may be negative), INSUFFICIENT_DATA or SINGULAR_FIT.
    """
    label = name if name is not None else "<unnamed>"
    logger.info("Calculating R2 of %s", label)
    if observer is not None:
        observer(label)

    y = _as_float_array(values, "values")
    t = to_time_axis(time)
    if len(t) != len(y):
        raise ShapeMismatchError(f"values ({len(y)}) and time ({len(t)}) differ in length")
    w = None
    if weights is not None:
        w = _as_float_array(weights, "weights")
        if len(w) != len(y):
            raise ShapeMismatchError(f"values ({len(y)}) and weights ({len(w)}) differ in length")

    # Checked on the raw variable, before imputation
    if np.count_nonzero(~np.isnan(y)) < MIN_OBSERVATIONS:
        logger.debug("%s has fewer than %d non-missing values", label, MIN_OBSERVATIONS)
        return INSUFFICIENT_DATA

    if impute_value is not None:
        y = np.where(np.isnan(y), float(impute_value), y)

    # Case-wise deletion wherever y, t or w is missing or infinite
    drop = ~np.isfinite(y) | ~np.isfinite(t)
    if w is not None:
        drop |= ~np.isfinite(w)
    y, t = y[~drop], t[~drop]
    if w is not None:
        w = w[~drop]

    if len(y) < MIN_OBSERVATIONS:
        logger.debug("%s: %d rows left after case-wise deletion", label, len(y))
        return SINGULAR_FIT
    if w is not None:
        if w.sum() <= 0:
            logger.debug("%s: zero total weight", label)
            return SINGULAR_FIT
        support = w > 0
    else:
        support = np.ones(len(y), dtype=bool)
    if np.ptp(t[support]) == 0 or np.ptp(y[support]) == 0:
        logger.debug("%s: constant time or constant response, fit undefined", label)
        return SINGULAR_FIT

    x = t.reshape(-1, 1)
    model = LinearRegression()
    model.fit(x, y, sample_weight=w)
    # r2_score weights the total sum of squares around the weighted mean, as weighted_mean does
    return float(r2_score(y, model.predict(x), sample_weight=w))
