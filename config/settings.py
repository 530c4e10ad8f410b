"""
Ranking settings. All overridable from environment variables.
Defaults mirror the interactive EDA workflow: rank on at most 50k sampled rows with a fixed seed.
"""
import os
import logging

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    """Read an integer setting from env; fall back to default on empty or bad values."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default


K_SAMPLE = _env_int("TRENDIQ_K_SAMPLE", 50000)
RANDOM_STATE = _env_int("TRENDIQ_RANDOM_STATE", 42)
DEFAULT_DATE_FORMAT = os.environ.get("TRENDIQ_DATE_FORMAT", "%Y-%m-%d")
LOG_LEVEL = os.environ.get("TRENDIQ_LOG_LEVEL", "INFO").upper()

# Fewer non-missing values than this and a variable cannot be scored
MIN_OBSERVATIONS = 2

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
