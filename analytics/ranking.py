"""
Ranking: order dataset variables by how strongly they trend over time.
Numeric variables come first, sorted by R2 of var ~ date (highest first); unscoreable ones sink to the end.
Categorical/discrete variables follow in alphabetical order.
"""
import logging
import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from config.settings import K_SAMPLE, RANDOM_STATE
from etl.date_window import resolve_build_window
from etl.schema_inference import infer_schema, variable_columns
from analytics.r2 import calc_r2

logger = logging.getLogger(__name__)


class DataQualityWarning(UserWarning):
    """Non-fatal data problem; affected rows are dropped case-wise when scoring."""


def _check_missing(df: pd.DataFrame, date_col: str, weight_col: Optional[str]) -> None:
    """Warn (do not fail) when the weight or date column has missing values."""
    if weight_col is not None and df[weight_col].isna().any():
        logger.warning("Weights column %s contains NAs--will be deleted casewise", weight_col)
        warnings.warn(
            f"Weights column {weight_col!r} contains NAs--will be deleted casewise",
            DataQualityWarning,
            stacklevel=3,
        )
    if df[date_col].isna().any():
        logger.warning("Date column %s contains NAs--will be deleted casewise", date_col)
        warnings.warn(
            f"Date column {date_col!r} contains NAs--will be deleted casewise",
            DataQualityWarning,
            stacklevel=3,
        )


def _require_columns(df: pd.DataFrame, *cols: Optional[str]) -> None:
    missing = [c for c in cols if c is not None and c not in df.columns]
    if missing:
        raise KeyError(f"Columns not in dataset: {missing}")


def build_sample(
    df: pd.DataFrame,
    date_col: str,
    start,
    end,
    k_sample: int = K_SAMPLE,
    random_state=RANDOM_STATE,
) -> pd.DataFrame:
    """Rows with start <= date <= end, uniformly subsampled without replacement to at most k_sample rows."""
    if k_sample is not None and k_sample < 1:
        raise ValueError(f"k_sample must be a positive integer, got {k_sample}")
    dates = df[date_col]
    in_window = df[(dates >= start) & (dates <= end)]
    if k_sample is None or len(in_window) <= k_sample:
        return in_window
    logger.info("Sampling %d of %d rows in build window", k_sample, len(in_window))
    return in_window.sample(n=k_sample, replace=False, random_state=random_state)


def score_variables(
    df: pd.DataFrame,
    variables: List[str],
    date_col: str,
    weight_col: Optional[str] = None,
    observer: Optional[Callable[[str], None]] = None,
    n_jobs: int = 1,
) -> Dict[str, float]:
    """R2 of each variable against date_col on the same rows. Keys follow the order of variables."""
    time = df[date_col]
    weights = df[weight_col] if weight_col is not None else None

    def _score(var: str) -> float:
        return calc_r2(df[var], time, weights=weights, impute_value=None, name=var, observer=observer)

    if n_jobs is not None and n_jobs > 1 and len(variables) > 1:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            scores = list(pool.map(_score, variables))
    else:
        scores = [_score(v) for v in variables]
    return dict(zip(variables, scores))


def sort_by_score(scores: Dict[str, float]) -> List[str]:
    """Descending score, ties in input order. Sentinels (inf, nan) go last, in input order."""
    finite = [v for v, s in scores.items() if math.isfinite(s)]
    unscoreable = [v for v, s in scores.items() if not math.isfinite(s)]
    return sorted(finite, key=lambda v: scores[v], reverse=True) + unscoreable


def order_by_r2(
    df: pd.DataFrame,
    date_col: str,
    build_window=None,
    weight_col: Optional[str] = None,
    k_sample: int = K_SAMPLE,
    schema: Optional[Dict[str, Any]] = None,
    random_state=RANDOM_STATE,
    observer: Optional[Callable[[str], None]] = None,
    n_jobs: int = 1,
) -> List[str]:
    """
    Variable names ordered by R2 of a linear model var ~ date_col.
    Every other column is returned: numeric ones by score, then categorical, text and
    extra date columns alphabetically.

    build_window: None (whole dataset), (start, end) in the default date format,
        or (start, end, format); bounds are inclusive. See etl.date_window.
        A start after end warns and leaves every numeric variable unscored.
    weight_col: optional row weights; rows with missing weights are dropped when scoring.
    k_sample: score on at most this many rows of the build window, sampled once and shared by all variables.
    schema: column typing from etl.schema_inference; inferred from df if not given.
    random_state: seed or numpy Generator for the subsample.
    observer: called with each variable name as it is scored.
    n_jobs: score variables on this many threads; output order does not depend on it.
    """
    _require_columns(df, date_col, weight_col)
    _check_missing(df, date_col, weight_col)

    # Window bounds come from the full dataset, not the sample
    start, end = resolve_build_window(build_window, df[date_col])
    if start > end:
        logger.warning("Build window start %s is after end %s--no rows will be scored", start, end)
        warnings.warn(
            f"Build window start {start} is after end {end}--no rows will be scored",
            DataQualityWarning,
            stacklevel=2,
        )

    if schema is None:
        schema = infer_schema(df)
    num_vars, cat_vars = variable_columns(schema, exclude=[date_col, weight_col])
    _require_columns(df, *num_vars, *cat_vars)

    if not num_vars:
        return sorted(cat_vars)

    sample = build_sample(df, date_col, start, end, k_sample=k_sample, random_state=random_state)
    logger.info(
        "Ranking %d numeric variables on %d rows (window %s to %s)",
        len(num_vars), len(sample), start, end,
    )
    scores = score_variables(sample, num_vars, date_col, weight_col, observer=observer, n_jobs=n_jobs)
    return sort_by_score(scores) + sorted(cat_vars)
