from __future__ import annotations

import numpy as np
import pandas as pd
import pytest


@pytest.fixture()
def rng() -> np.random.Generator:
    return np.random.default_rng(0)


@pytest.fixture()
def trend_frame(rng: np.random.Generator) -> pd.DataFrame:
    """200 daily rows from 2014-01-01: a perfect trend, a noisy trend, pure noise, two categoricals."""
    n = 200
    idx = np.arange(n, dtype=float)
    return pd.DataFrame(
        {
            "date": pd.date_range("2014-01-01", periods=n, freq="D"),
            "flat": rng.normal(0.0, 1.0, n),
            "segment": pd.Categorical(np.resize(["b", "a", "c"], n)),
            "noisy": idx + rng.normal(0.0, 50.0, n),
            "linear": 2.0 * idx,
            "region": pd.Categorical(np.resize(["north", "south"], n)),
        }
    )


@pytest.fixture()
def two_year_frame(rng: np.random.Generator) -> pd.DataFrame:
    """Daily rows from 2013-07-01 to 2015-06-30; 'late' trends only in 2014, 'steady' trends throughout."""
    dates = pd.date_range("2013-07-01", "2015-06-30", freq="D")
    n = len(dates)
    idx = np.arange(n, dtype=float)
    in_2014 = dates.year == 2014
    return pd.DataFrame(
        {
            "date": dates,
            "steady": idx + rng.normal(0.0, 80.0, n),
            "late": np.where(in_2014, 3.0 * idx, 0.0) + rng.normal(0.0, 400.0, n),
            "kind": pd.Categorical(np.resize(["x", "y"], n)),
        }
    )
