"""
Transform: prepare a raw frame for ranking. Coerce date, weight, numeric and categorical columns,
sort by date, and tag column types once (date and weight are kept out of the variable lists).
"""
import logging
from typing import Dict, Any, Optional, Tuple

import pandas as pd

from etl.schema_inference import (
    infer_schema,
    normalize_column_names,
    TYPE_DATE,
    TYPE_NUMERIC,
)

logger = logging.getLogger(__name__)

LIST_KEYS = ("date_columns", "numeric_columns", "categorical_columns", "text_columns", "unknown_columns")


def _get_schema_lists(schema: Dict) -> tuple:
    """Extract date/numeric/categorical lists from inferred_schema."""
    if not schema:
        return [], [], []
    return (
        schema.get("date_columns") or [],
        schema.get("numeric_columns") or [],
        schema.get("categorical_columns") or [],
    )


def coerce_date(ser: pd.Series, date_format: Optional[str] = None) -> pd.Series:
    """Date column to datetime64 (unparseable -> NaT). Numeric columns (e.g. days since epoch) are left numeric."""
    if pd.api.types.is_datetime64_any_dtype(ser):
        return ser
    if pd.api.types.is_numeric_dtype(ser) and not pd.api.types.is_bool_dtype(ser):
        return ser.astype(float)
    if date_format:
        return pd.to_datetime(ser, errors="coerce", format=date_format)
    return pd.to_datetime(ser, errors="coerce", format="mixed")


def coerce_weights(ser: pd.Series) -> pd.Series:
    """Weights to float; non-numeric -> NaN. Negative weights are rejected."""
    w = pd.to_numeric(ser, errors="coerce").astype(float)
    if (w < 0).any():
        raise ValueError(f"Weights column {ser.name!r} has negative values")
    return w


def _retag(schema: Dict[str, Any], col: str, new_type: str, listed: bool = True) -> Dict[str, Any]:
    """Copy of schema with col tagged new_type. listed=False keeps col out of every column list."""
    schema = {**schema, "column_types": dict(schema.get("column_types") or {})}
    for key in LIST_KEYS:
        schema[key] = [c for c in (schema.get(key) or []) if c != col]
    if listed:
        schema[f"{new_type}_columns"].append(col)
    info = dict(schema["column_types"].get(col) or {})
    info["inferred"] = new_type
    schema["column_types"][col] = info
    return schema


def prepare_dataset(
    df: pd.DataFrame,
    date_col: str,
    weight_col: Optional[str] = None,
    schema: Optional[Dict[str, Any]] = None,
    *,
    date_format: Optional[str] = None,
    normalize_names: bool = False,
) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Prepare df for ranking. Returns (df, schema).
    The date column is tagged date and the weight column is tagged neither numeric nor categorical,
    so ranking never scores them. Rows are sorted by date (NaT last).
    """
    if normalize_names:
        df = normalize_column_names(df)
    for col in (date_col, weight_col):
        if col is not None and col not in df.columns:
            raise KeyError(f"Column {col!r} not in dataset")

    df = df.copy()
    df[date_col] = coerce_date(df[date_col], date_format)
    if weight_col is not None:
        df[weight_col] = coerce_weights(df[weight_col])

    schema = schema or infer_schema(df)
    schema = _retag(schema, date_col, TYPE_DATE)
    if weight_col is not None:
        schema = _retag(schema, weight_col, TYPE_NUMERIC, listed=False)
        schema["weight_column"] = weight_col
    schema["date_column"] = date_col

    _, numeric_cols, cat_cols = _get_schema_lists(schema)
    for col in numeric_cols:
        if col in df.columns and not pd.api.types.is_numeric_dtype(df[col]):
            df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in cat_cols:
        if col in df.columns and not isinstance(df[col].dtype, pd.CategoricalDtype):
            df[col] = df[col].astype("category")

    df = df.sort_values(date_col, kind="mergesort", na_position="last").reset_index(drop=True)
    n_bad_dates = int(df[date_col].isna().sum())
    if n_bad_dates:
        logger.warning("%d rows have no usable date in %s", n_bad_dates, date_col)

    logger.info(
        "Prepared %d rows: %d numeric, %d categorical columns",
        len(df), len(numeric_cols), len(cat_cols),
    )
    return df, schema
