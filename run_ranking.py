"""
Ranking runner: read a CSV, prepare it, print variables ordered by R2 against the date column.
Invoked from the command line. Numeric variables first (strongest linear trend over time), then categoricals.
"""
import sys
import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config.settings import K_SAMPLE, RANDOM_STATE, LOG_LEVEL, LOG_FORMAT, LOG_DATEFMT
from etl.schema_inference import infer_date_column
from etl.transform import prepare_dataset
from analytics.ranking import order_by_r2

logger = logging.getLogger(__name__)


def run_ranking(
    csv_path: str,
    date_col: Optional[str] = None,
    weight_col: Optional[str] = None,
    build_window: Optional[List[str]] = None,
    k_sample: int = K_SAMPLE,
    random_state: int = RANDOM_STATE,
    n_jobs: int = 1,
) -> List[str]:
    """Read csv_path, prepare, rank. Returns the ordered variable names."""
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    df = pd.read_csv(path)
    if df.empty:
        raise ValueError(f"Data file has no rows: {path}")

    date_col = date_col or infer_date_column(df)
    if not date_col:
        raise ValueError("No date column found; pass --date-column")
    logger.info("Ranking %s: %d rows, date column %s", path.name, len(df), date_col)

    df, schema = prepare_dataset(df, date_col, weight_col)
    ranked = order_by_r2(
        df,
        date_col,
        build_window=build_window,
        weight_col=weight_col,
        k_sample=k_sample,
        schema=schema,
        random_state=random_state,
        n_jobs=n_jobs,
    )
    logger.info("Ranking complete: %d variables", len(ranked))
    return ranked


def main(argv: Optional[List[str]] = None) -> int:
    import argparse
    p = argparse.ArgumentParser(description="Order variables by R2 of a linear trend over time.")
    p.add_argument("csv_path")
    p.add_argument("--date-column", help="Date column (inferred from names like order_date/date if omitted)")
    p.add_argument("--weight-column", help="Optional row weight column")
    p.add_argument(
        "--build-window",
        nargs="+",
        metavar="DATE",
        help="START END [FORMAT], inclusive; e.g. 2014-01-01 2014-12-31 or 01JAN2014 31DEC2014 %%d%%h%%Y",
    )
    p.add_argument("--k-sample", type=int, default=K_SAMPLE, help="Max rows sampled from the build window")
    p.add_argument("--seed", type=int, default=RANDOM_STATE)
    p.add_argument("--jobs", type=int, default=1, help="Threads used to score variables")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    ranked = run_ranking(
        args.csv_path,
        date_col=args.date_column,
        weight_col=args.weight_column,
        build_window=args.build_window,
        k_sample=args.k_sample,
        random_state=args.seed,
        n_jobs=args.jobs,
    )
    for name in ranked:
        print(name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
