from __future__ import annotations

import warnings

import numpy as np
import pandas as pd
import pytest

from analytics.r2 import calc_r2
from analytics.ranking import (
    DataQualityWarning,
    build_sample,
    order_by_r2,
    score_variables,
    sort_by_score,
)
from etl.date_window import MalformedWindowError
from etl.schema_inference import infer_schema


def _ols_r2(y, t) -> float:
    slope, intercept = np.polyfit(t, y, 1)
    resid = y - (slope * t + intercept)
    return 1.0 - np.sum(resid ** 2) / np.sum((y - y.mean()) ** 2)


def test_numeric_by_r2_then_categoricals_alphabetical(trend_frame: pd.DataFrame) -> None:
    assert order_by_r2(trend_frame, "date") == ["linear", "noisy", "flat", "region", "segment"]


def test_order_matches_independent_ols(trend_frame: pd.DataFrame) -> None:
    t = np.arange(len(trend_frame), dtype=float)
    numeric = ["flat", "noisy", "linear"]
    expected = sorted(numeric, key=lambda c: _ols_r2(trend_frame[c].to_numpy(), t), reverse=True)
    assert order_by_r2(trend_frame, "date")[:3] == expected


def test_repeated_calls_agree(trend_frame: pd.DataFrame) -> None:
    assert order_by_r2(trend_frame, "date") == order_by_r2(trend_frame, "date")
    sampled = [order_by_r2(trend_frame, "date", k_sample=40, random_state=7) for _ in range(2)]
    assert sampled[0] == sampled[1]


def test_unscoreable_variables_sink_below_scored_ones(trend_frame: pd.DataFrame) -> None:
    df = trend_frame.copy()
    df.insert(1, "sparse", np.nan)
    df.loc[3, "sparse"] = 1.0
    df.insert(2, "constant", 5.0)
    ranked = order_by_r2(df, "date")
    assert ranked == ["linear", "noisy", "flat", "sparse", "constant", "region", "segment"]


def test_infinite_values_do_not_abort_ranking(trend_frame: pd.DataFrame) -> None:
    df = trend_frame.copy()
    df["spiky"] = df["noisy"]
    df.loc[[4, 50], "spiky"] = [np.inf, -np.inf]
    ranked = order_by_r2(df, "date")
    assert ranked[0] == "linear"
    assert set(ranked) == {"linear", "noisy", "flat", "spiky", "region", "segment"}
    assert ranked[-2:] == ["region", "segment"]
    finite = df.drop(index=[4, 50])
    scores = score_variables(df, ["spiky"], "date")
    assert scores["spiky"] == pytest.approx(calc_r2(finite["noisy"], finite["date"]))


def test_sort_by_score_is_stable() -> None:
    scores = {"a": 0.2, "b": float("inf"), "c": 0.9, "d": 0.2, "e": float("nan")}
    assert sort_by_score(scores) == ["c", "a", "d", "b", "e"]


def test_categorical_only_dataset_skips_scoring() -> None:
    df = pd.DataFrame(
        {
            "date": pd.date_range("2014-01-01", periods=6, freq="D"),
            "zone": pd.Categorical(list("xyzxyz")),
            "channel": pd.Categorical(list("aabbab")),
        }
    )
    seen = []
    assert order_by_r2(df, "date", observer=seen.append) == ["channel", "zone"]
    assert seen == []


def test_date_and_weight_columns_are_never_candidates(trend_frame: pd.DataFrame) -> None:
    df = trend_frame.copy()
    df["day"] = (df["date"] - pd.Timestamp("1970-01-01")).dt.days.astype(float)
    df["w"] = 1.0
    schema = infer_schema(df)
    assert {"day", "w"} <= set(schema["numeric_columns"])
    seen = []
    ranked = order_by_r2(df, "day", weight_col="w", schema=schema, observer=seen.append)
    assert "day" not in ranked and "w" not in ranked
    assert sorted(seen) == ["flat", "linear", "noisy"]


def test_extra_date_columns_rank_with_categoricals(trend_frame: pd.DataFrame) -> None:
    df = trend_frame.copy()
    df.insert(1, "opened", df["date"] - pd.Timedelta(days=30))
    seen = []
    ranked = order_by_r2(df, "date", observer=seen.append)
    assert ranked == ["linear", "noisy", "flat", "opened", "region", "segment"]
    assert "opened" not in seen


def test_reversed_window_warns_and_scores_nothing(trend_frame: pd.DataFrame) -> None:
    seen = []
    with pytest.warns(DataQualityWarning, match="after end"):
        ranked = order_by_r2(
            trend_frame, "date", build_window=("2014-06-30", "2014-01-01"), observer=seen.append
        )
    assert ranked == ["flat", "noisy", "linear", "region", "segment"]
    assert seen == ["flat", "noisy", "linear"]


def test_observer_sees_each_numeric_variable_once(trend_frame: pd.DataFrame) -> None:
    seen = []
    order_by_r2(trend_frame, "date", observer=seen.append)
    assert seen == ["flat", "noisy", "linear"]


def test_threaded_scoring_gives_same_ranking(trend_frame: pd.DataFrame) -> None:
    assert order_by_r2(trend_frame, "date", n_jobs=4) == order_by_r2(trend_frame, "date", n_jobs=1)


def test_sampling_is_noop_when_cap_covers_window(trend_frame: pd.DataFrame) -> None:
    start, end = trend_frame["date"].min(), trend_frame["date"].max()
    sample = build_sample(trend_frame, "date", start, end, k_sample=len(trend_frame))
    pd.testing.assert_frame_equal(sample, trend_frame)
    scores = score_variables(sample, ["noisy"], "date")
    assert scores["noisy"] == pytest.approx(calc_r2(trend_frame["noisy"], trend_frame["date"]))


def test_sample_is_capped_and_within_window(trend_frame: pd.DataFrame) -> None:
    start, end = pd.Timestamp("2014-02-01"), pd.Timestamp("2014-05-31")
    sample = build_sample(trend_frame, "date", start, end, k_sample=50, random_state=3)
    assert len(sample) == 50
    assert sample.index.is_unique
    assert sample["date"].between(start, end).all()


def test_sampling_accepts_generator(trend_frame: pd.DataFrame) -> None:
    ranked = order_by_r2(trend_frame, "date", k_sample=100, random_state=np.random.default_rng(1))
    assert ranked[0] == "linear"
    assert ranked[-2:] == ["region", "segment"]


def test_window_bounds_are_inclusive(trend_frame: pd.DataFrame) -> None:
    sample = build_sample(
        trend_frame, "date", pd.Timestamp("2014-01-10"), pd.Timestamp("2014-01-19"), k_sample=1000
    )
    assert len(sample) == 10


def test_equivalent_window_formats_rank_identically(two_year_frame: pd.DataFrame) -> None:
    by_default = order_by_r2(two_year_frame, "date", build_window=("2014-01-01", "2014-12-31"))
    by_format = order_by_r2(two_year_frame, "date", build_window=("01JAN2014", "31DEC2014", "%d%h%Y"))
    assert by_default == by_format
    assert by_default[-1] == "kind"


def test_day_number_window_on_datetime_column(trend_frame: pd.DataFrame) -> None:
    by_days = order_by_r2(trend_frame, "date", build_window=(16080, 16089))
    by_dates = order_by_r2(trend_frame, "date", build_window=("2014-01-10", "2014-01-19"))
    assert by_days == by_dates
    assert by_days[0] == "linear"


def test_window_selects_rows_before_scoring(two_year_frame: pd.DataFrame) -> None:
    seen = []
    in_2014 = two_year_frame[two_year_frame["date"].dt.year == 2014]
    expected = calc_r2(in_2014["late"], in_2014["date"])
    scores = score_variables(
        build_sample(two_year_frame, "date", pd.Timestamp("2014-01-01"), pd.Timestamp("2014-12-31")),
        ["late"],
        "date",
        observer=seen.append,
    )
    assert len(in_2014) == 365
    assert scores["late"] == pytest.approx(expected)
    assert seen == ["late"]


def test_numeric_day_column_with_string_window() -> None:
    days = np.arange(16060.0, 16090.0)
    df = pd.DataFrame({"day": days, "up": days * 3.0, "down": -days + np.resize([0.0, 40.0], 30)})
    ranked = order_by_r2(df, "day", build_window=("2014-01-01", "2014-01-20"))
    assert ranked == ["up", "down"]


@pytest.mark.parametrize(
    "window",
    [("2014-01-01",), ("2014-01-01", "2014-06-30", "%Y-%m-%d", "extra"), ("01JAN2014", "31DEC2014", "%Y")],
)
def test_malformed_window_aborts(trend_frame: pd.DataFrame, window) -> None:
    with pytest.raises(MalformedWindowError):
        order_by_r2(trend_frame, "date", build_window=window)


def test_missing_weights_and_dates_warn_but_continue(trend_frame: pd.DataFrame) -> None:
    df = trend_frame.copy()
    df["w"] = 1.0
    df.loc[[5, 9], "w"] = np.nan
    df.loc[12, "date"] = pd.NaT
    with pytest.warns(DataQualityWarning) as record:
        ranked = order_by_r2(df, "date", weight_col="w")
    messages = [str(r.message) for r in record]
    assert any("Weights column" in m for m in messages)
    assert any("Date column" in m for m in messages)
    assert ranked[0] == "linear"


def test_clean_input_does_not_warn(trend_frame: pd.DataFrame) -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error", DataQualityWarning)
        order_by_r2(trend_frame, "date")


def test_unknown_column_raises(trend_frame: pd.DataFrame) -> None:
    with pytest.raises(KeyError):
        order_by_r2(trend_frame, "when")
    with pytest.raises(KeyError):
        order_by_r2(trend_frame, "date", weight_col="weight")
