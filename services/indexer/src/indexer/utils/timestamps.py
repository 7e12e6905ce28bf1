"""Unix timestamp helpers for APY windows (UTC)."""

import time
from datetime import datetime, timezone

ONE_DAY = 86_400

# Lookback windows used for the materialized APY figures
TIME_PERIODS = {
    "1d": ONE_DAY,
    "7d": 7 * ONE_DAY,
    "1y": 365 * ONE_DAY,
}


def now_timestamp() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


def window(period: str, end_ts: int) -> tuple[int, int]:
    """Inclusive (from_ts, to_ts) for a named period ending at end_ts."""
    if period not in TIME_PERIODS:
        raise ValueError(f"Unknown period: {period}")
    return end_ts - TIME_PERIODS[period], end_ts


def to_datetime(ts: int | None) -> datetime | None:
    """Unix timestamp to timezone-aware UTC datetime."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)
