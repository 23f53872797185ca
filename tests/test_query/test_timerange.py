"""Tests for millisecond timestamps and bucket-aligned windows."""

from datetime import UTC, datetime

import pytest

from ledgertrades.query.timerange import (
    TimeWindow,
    from_millis,
    normalize,
    round_down,
    round_up,
    to_millis,
)

MINUTE = 60_000


class TestMillis:
    def test_epoch(self):
        assert to_millis(datetime(1970, 1, 1, tzinfo=UTC)) == 0

    def test_keeps_milliseconds(self):
        ts = datetime(2026, 2, 10, 14, 30, 0, 123000, tzinfo=UTC)
        assert to_millis(ts) % 1000 == 123
        assert from_millis(to_millis(ts)) == ts

    def test_naive_treated_as_utc(self):
        assert to_millis(datetime(1970, 1, 1, 0, 1)) == MINUTE

    def test_from_millis_is_utc(self):
        assert from_millis(90_000) == datetime(1970, 1, 1, 0, 1, 30, tzinfo=UTC)


class TestRounding:
    def test_round_down(self):
        assert round_down(150_000, MINUTE) == 120_000

    def test_round_down_aligned(self):
        assert round_down(120_000, MINUTE) == 120_000

    def test_round_up_to_next_bucket(self):
        assert round_up(90_000, MINUTE) == 120_000

    def test_round_up_aligned_unchanged(self):
        assert round_up(120_000, MINUTE) == 120_000

    @pytest.mark.parametrize("t", [1, 59_999, 60_001, 3_599_999, 1_500_000_000_123])
    def test_round_up_is_bucket_aligned(self, t):
        # (t / res) * (res + 1) would not be aligned; the next boundary is.
        rounded = round_up(t, MINUTE)
        assert rounded % MINUTE == 0
        assert t < rounded <= t + MINUTE


class TestNormalize:
    def test_boundary_rounding(self):
        window = normalize(90_000, 150_000, MINUTE)
        assert window.start_time == 120_000
        assert window.end_time == 120_000

    def test_crossed_bounds_are_empty(self):
        assert normalize(90_000, 150_000, MINUTE).is_empty

    def test_aligned_bounds_unchanged(self):
        window = normalize(60_000, 600_000, MINUTE)
        assert window == TimeWindow(start_time=60_000, end_time=600_000)
        assert not window.is_empty

    def test_non_positive_bounds_are_unbounded(self):
        window = normalize(0, -5, MINUTE)
        assert window.start_time is None
        assert window.end_time is None
        assert not window.has_start and not window.has_end

    def test_none_bounds_are_unbounded(self):
        assert normalize(None, None, MINUTE) == TimeWindow()

    def test_end_rounding_to_zero_stays_bounded(self):
        window = normalize(0, 30_000, MINUTE)
        assert window.end_time == 0
        assert window.has_end
        assert not window.contains(0)


class TestTimeWindowContains:
    def test_half_open(self):
        window = TimeWindow(start_time=60_000, end_time=120_000)
        assert window.contains(60_000)
        assert window.contains(119_999)
        assert not window.contains(120_000)
        assert not window.contains(59_999)

    def test_unbounded(self):
        assert TimeWindow().contains(0)
        assert TimeWindow(end_time=10).contains(-1_000)
