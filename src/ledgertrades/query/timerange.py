"""Millisecond timestamps and bucket-aligned time windows."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pydantic import BaseModel

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def to_millis(ts: datetime) -> int:
    """Milliseconds since the Unix epoch.  Naive datetimes are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return (ts - EPOCH) // _ONE_MS


def from_millis(millis: int) -> datetime:
    """UTC datetime for a millisecond timestamp."""
    return EPOCH + timedelta(milliseconds=millis)


def round_down(millis: int, resolution: int) -> int:
    """Start of the bucket containing *millis*."""
    return (millis // resolution) * resolution


def round_up(millis: int, resolution: int) -> int:
    """Start of the next bucket, unless *millis* already sits on a boundary."""
    if millis % resolution != 0:
        return round_down(millis, resolution) + resolution
    return millis


class TimeWindow(BaseModel):
    """A half-open [start_time, end_time) window in epoch milliseconds.

    A bound of None leaves the window open on that side.
    """

    start_time: int | None = None
    end_time: int | None = None

    model_config = {"frozen": True}

    @property
    def has_start(self) -> bool:
        return self.start_time is not None

    @property
    def has_end(self) -> bool:
        return self.end_time is not None

    @property
    def is_empty(self) -> bool:
        """True when both bounds are set and they have met or crossed."""
        return (
            self.start_time is not None
            and self.end_time is not None
            and self.start_time >= self.end_time
        )

    def contains(self, millis: int) -> bool:
        if self.start_time is not None and millis < self.start_time:
            return False
        if self.end_time is not None and millis >= self.end_time:
            return False
        return True


def normalize(start_time: int | None, end_time: int | None, resolution: int) -> TimeWindow:
    """Align a caller's time range to whole buckets.

    The start is pushed up to the next boundary and the end pulled down to
    the previous one, so neither the first nor the last bucket is partial.
    A bound that is None or <= 0 leaves that side unbounded.  The result
    may be empty (start 90000, end 150000 at resolution 60000 gives
    [120000, 120000)); that is a valid window with no buckets.
    """
    start_fixed = round_up(start_time, resolution) if start_time and start_time > 0 else None
    end_fixed = round_down(end_time, resolution) if end_time and end_time > 0 else None
    return TimeWindow(start_time=start_fixed, end_time=end_fixed)
