"""Tests for timestamp utilities."""

from datetime import datetime, timezone

import pytest

from services.indexer.src.indexer.utils.timestamps import (
    TIME_PERIODS,
    now_timestamp,
    to_datetime,
    window,
)


class TestWindow:

    def test_one_day(self):
        assert window("1d", 1_000_000) == (1_000_000 - 86_400, 1_000_000)

    def test_seven_days(self):
        assert window("7d", 1_000_000) == (1_000_000 - 604_800, 1_000_000)

    def test_one_year(self):
        assert TIME_PERIODS["1y"] == 31_536_000

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            window("2w", 0)


class TestToDatetime:

    def test_returns_utc(self):
        result = to_datetime(1_700_000_000)

        assert result == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_none_passthrough(self):
        assert to_datetime(None) is None


def test_now_timestamp_is_whole_seconds():
    assert isinstance(now_timestamp(), int)
