"""
Build window: the closed date interval rows must fall in to be used for ranking.
Accepts None, (start, end) in the default date format, or (start, end, format) with any strptime format.
The following both select all of 2014:
    ("2014-01-01", "2014-12-31")
    ("01JAN2014", "31DEC2014", "%d%h%Y")
"""
import logging
from dataclasses import dataclass
from numbers import Real
from typing import Any, Tuple, Union

import pandas as pd

from config.settings import DEFAULT_DATE_FORMAT

logger = logging.getLogger(__name__)

EPOCH = pd.Timestamp("1970-01-01")

# C library aliases that Python's strptime does not know
FORMAT_ALIASES = {"%h": "%b"}


class MalformedWindowError(ValueError):
    """Build window has the wrong shape or its dates do not parse."""


@dataclass(frozen=True)
class NoWindow:
    """Use the full date range of the dataset."""


@dataclass(frozen=True)
class DateRange:
    start: Any
    end: Any


@dataclass(frozen=True)
class DateRangeWithFormat:
    start: Any
    end: Any
    fmt: str


BuildWindow = Union[NoWindow, DateRange, DateRangeWithFormat]


def parse_build_window(value) -> BuildWindow:
    """Turn None / (start, end) / (start, end, format) into a window variant."""
    if value is None:
        return NoWindow()
    if isinstance(value, (NoWindow, DateRange, DateRangeWithFormat)):
        return value
    if isinstance(value, (str, bytes)):
        raise MalformedWindowError(f"Build window must be a sequence of dates, got string {value!r}")
    try:
        items = list(value)
    except TypeError as e:
        raise MalformedWindowError(f"Build window must be None or a sequence, got {type(value).__name__}") from e
    if len(items) == 0:
        return NoWindow()
    if len(items) == 2:
        return DateRange(items[0], items[1])
    if len(items) == 3:
        if not isinstance(items[2], str):
            raise MalformedWindowError(f"Build window format must be a string, got {items[2]!r}")
        return DateRangeWithFormat(items[0], items[1], items[2])
    raise MalformedWindowError(f"Build window must have length 0, 2 or 3, got {len(items)}")


def normalize_format(fmt: str) -> str:
    """Map C strptime aliases (e.g. %h) onto Python directives."""
    for alias, directive in FORMAT_ALIASES.items():
        fmt = fmt.replace(alias, directive)
    return fmt


def _parse_date(value, fmt: str) -> pd.Timestamp:
    """
    Parse one window bound. Strings use fmt; numbers are days since epoch,
    as in numeric date columns; date-like objects are taken as is.
    """
    try:
        if isinstance(value, str):
            ts = pd.to_datetime(value, format=fmt)
        elif isinstance(value, Real) and not isinstance(value, bool):
            ts = EPOCH + pd.Timedelta(days=float(value))
        else:
            ts = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedWindowError(f"Cannot parse window date {value!r} with format {fmt!r}: {e}") from e
    if pd.isna(ts):
        raise MalformedWindowError(f"Window date {value!r} is missing")
    return ts


def _to_native(ts: pd.Timestamp, dates: pd.Series):
    """Express a parsed bound in the date column's own comparable type."""
    if pd.api.types.is_datetime64_any_dtype(dates):
        tz = getattr(dates.dt, "tz", None)
        if tz is not None and ts.tzinfo is None:
            ts = ts.tz_localize(tz)
        return ts
    # Numeric date columns are days since epoch
    return (ts - EPOCH) / pd.Timedelta(days=1)


def resolve_build_window(window, dates: pd.Series) -> Tuple[Any, Any]:
    """
    Resolve a build window into (start, end), both inclusive, comparable with dates.
    No window -> (min, max) of dates. Raises MalformedWindowError on bad shape or bad dates.
    A start after end is returned as given and selects no rows.
    """
    window = parse_build_window(window)
    if isinstance(window, NoWindow):
        return dates.min(), dates.max()

    numeric_dates = pd.api.types.is_numeric_dtype(dates) and not pd.api.types.is_bool_dtype(dates)
    if (
        isinstance(window, DateRange)
        and numeric_dates
        and all(isinstance(v, Real) and not isinstance(v, bool) for v in (window.start, window.end))
    ):
        # Numeric bounds on a numeric date column need no parsing
        start, end = float(window.start), float(window.end)
    else:
        fmt = DEFAULT_DATE_FORMAT if isinstance(window, DateRange) else normalize_format(window.fmt)
        start = _to_native(_parse_date(window.start, fmt), dates)
        end = _to_native(_parse_date(window.end, fmt), dates)

    logger.debug("Resolved build window %s to [%s, %s]", window, start, end)
    return start, end
