"""Utility modules."""

from services.indexer.src.indexer.utils.timestamps import (
    TIME_PERIODS,
    now_timestamp,
    to_datetime,
    window,
)

__all__ = [
    "TIME_PERIODS",
    "now_timestamp",
    "to_datetime",
    "window",
]
