"""
Schema inference: detect data types, date/numeric/categorical columns.
Generic - no business assumptions. Column types are tagged once here and read by ranking.
"""
import logging
from typing import Dict, List, Any, Optional

import pandas as pd

from config.date_columns import DATE_COLUMN_PRIORITY, MIN_PARSE_RATIO

logger = logging.getLogger(__name__)

# Type categories for downstream preparation and ranking
TYPE_DATE = "date"
TYPE_NUMERIC = "numeric"
TYPE_CATEGORICAL = "categorical"
TYPE_TEXT = "text"
TYPE_UNKNOWN = "unknown"


def _parses_as_dates(series: pd.Series) -> bool:
    """True if most non-null values of an object column parse as dates."""
    sample = series.dropna().head(100)
    if len(sample) == 0:
        return False
    try:
        parsed = pd.to_datetime(sample.astype(str), errors="coerce", format="mixed")
    except (TypeError, ValueError):
        return False
    return parsed.notna().sum() / max(len(sample), 1) > 0.8


def _infer_column_type(series: pd.Series) -> str:
    """Infer high-level type: date, numeric, categorical, or text."""
    if isinstance(series.dtype, pd.CategoricalDtype) or pd.api.types.is_bool_dtype(series):
        return TYPE_CATEGORICAL
    if pd.api.types.is_datetime64_any_dtype(series):
        return TYPE_DATE
    # All-missing numeric columns stay numeric so ranking can report them as unscoreable
    if pd.api.types.is_numeric_dtype(series):
        return TYPE_NUMERIC
    if series.isna().all():
        return TYPE_UNKNOWN
    if _parses_as_dates(series):
        return TYPE_DATE
    # Object/string
    n_unique = series.nunique()
    n_total = len(series.dropna())
    # High cardinality -> text; low -> categorical
    if n_unique / n_total > 0.5 or n_unique > 100:
        return TYPE_TEXT
    return TYPE_CATEGORICAL


def infer_schema(df: pd.DataFrame, overrides: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Infer schema: dtype per column, and lists of date/numeric/categorical columns.
    overrides maps column name -> TYPE_* and wins over inference (e.g. integer-coded categories).
    """
    overrides = overrides or {}
    column_types = {}
    buckets = {TYPE_DATE: [], TYPE_NUMERIC: [], TYPE_CATEGORICAL: [], TYPE_TEXT: [], TYPE_UNKNOWN: []}

    for col in df.columns:
        col_type = overrides.get(col) or _infer_column_type(df[col])
        if col_type not in buckets:
            raise ValueError(f"Unknown column type {col_type!r} for column {col!r}")
        column_types[col] = {
            "inferred": col_type,
            "dtype": str(df[col].dtype),
            "nullable": bool(df[col].isna().any()),
        }
        buckets[col_type].append(col)

    return {
        "columns": list(df.columns),
        "column_types": column_types,
        "date_columns": buckets[TYPE_DATE],
        "numeric_columns": buckets[TYPE_NUMERIC],
        "categorical_columns": buckets[TYPE_CATEGORICAL],
        "text_columns": buckets[TYPE_TEXT],
        "unknown_columns": buckets[TYPE_UNKNOWN],
        "row_count": int(len(df)),
        "column_count": int(len(df.columns)),
    }


def infer_date_column(df: pd.DataFrame) -> Optional[str]:
    """Pick the date column: priority names first (order_date, date, ...), then any datetime-typed column."""
    cols_lower = {c: str(c).lower().strip() for c in df.columns}
    for preferred in DATE_COLUMN_PRIORITY:
        for col in df.columns:
            if preferred not in cols_lower[col]:
                continue
            ser = df[col]
            if pd.api.types.is_datetime64_any_dtype(ser):
                return col
            if pd.api.types.is_numeric_dtype(ser):
                continue
            parsed = pd.to_datetime(ser, errors="coerce", format="mixed")
            if parsed.notna().sum() / max(len(df), 1) > MIN_PARSE_RATIO:
                return col
    for col in df.columns:
        if pd.api.types.is_datetime64_any_dtype(df[col]):
            return col
    logger.warning("No date column found among %d columns", len(df.columns))
    return None


def normalize_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize column names: lowercase, replace spaces/special with underscore."""
    df = df.copy()
    new_names = []
    for c in df.columns:
        s = str(c).strip().lower()
        s = "".join(c if c.isalnum() or c == "_" else "_" for c in s)
        s = "_".join(s.split())
        new_names.append(s or "unnamed")
    df.columns = new_names
    return df


def variable_columns(schema: Dict[str, Any], exclude: Optional[List[str]] = None) -> tuple:
    """
    Split schema columns into (numeric, discrete) lists, original column order kept.
    Discrete covers categorical, text, all-missing and date columns; the ranking date column
    is dropped through exclude like any other.
    """
    exclude = set(c for c in (exclude or []) if c is not None)
    column_types = schema.get("column_types") or {}
    numeric_set = set(schema.get("numeric_columns") or [])
    discrete_set = (
        set(schema.get("categorical_columns") or [])
        | set(schema.get("text_columns") or [])
        | set(schema.get("unknown_columns") or [])
        | set(schema.get("date_columns") or [])
    )
    order = schema.get("columns") or list(column_types)
    numeric = [c for c in order if c in numeric_set and c not in exclude]
    discrete = [c for c in order if c in discrete_set and c not in exclude]
    return numeric, discrete
