"""Time-bucketed trade aggregation.

Trades for one asset pair are grouped into fixed-width buckets aligned to
the Unix epoch: a trade closing at t milliseconds falls into the bucket
starting at ``floor(t / resolution) * resolution``.  Each bucket reports
OHLC prices, an unweighted average price, and base/counter volumes.

An ``AggregateQueryPlan`` describes one such query as an immutable value.
Stores either evaluate it in memory with ``aggregate_rows`` or compile it
to SQL; both must give the same buckets.
"""

from __future__ import annotations

from collections.abc import Iterable
from itertools import islice
from typing import Literal

from pydantic import BaseModel, Field

from ledgertrades.errors import InvalidResolution
from ledgertrades.ingestion.models import TradeRow
from ledgertrades.query.pair import AssetPairQuery, trade_price
from ledgertrades.query.timerange import TimeWindow, normalize, to_millis

DEFAULT_RESOLUTION = 1
DEFAULT_AGGREGATION_LIMIT = 200


class TradeAggregation(BaseModel):
    """Summary of every trade closing in [timestamp, timestamp + resolution)."""

    timestamp: int = Field(description="Bucket start, ms since epoch")
    count: int = Field(description="Number of trades in the bucket")
    base_volume: int = Field(description="Sum of base amounts")
    counter_volume: int = Field(description="Sum of counter amounts")
    avg: float = Field(description="Unweighted mean of per-trade prices")
    high: float
    low: float
    open: float = Field(description="Price of the earliest trade")
    close: float = Field(description="Price of the latest trade")

    model_config = {"frozen": True}


def normalize_resolution(resolution: int | None) -> int:
    """Validate a bucket width.

    0 (or None) becomes 1: per-millisecond buckets, the legacy default
    when no resolution was requested.

    Raises:
        InvalidResolution: If resolution is negative.
    """
    if not resolution:
        return DEFAULT_RESOLUTION
    if resolution < 0:
        raise InvalidResolution(f"resolution must be a positive number of ms, got {resolution}")
    return resolution


def bucket_key(closed_at_millis: int, resolution: int) -> int:
    return (closed_at_millis // resolution) * resolution


class BucketAccumulator:
    """Running statistics for one bucket.

    Feed (row, price) pairs in any order via add(); open and close are
    picked by (closed_at, operation_id, order), not by arrival order.
    """

    __slots__ = (
        "count",
        "_base_volume",
        "_counter_volume",
        "_price_sum",
        "_high",
        "_low",
        "_first",
        "_last",
    )

    def __init__(self) -> None:
        self.count = 0
        self._base_volume = 0
        self._counter_volume = 0
        self._price_sum = 0.0
        self._high: float | None = None
        self._low: float | None = None
        self._first: tuple[tuple[int, int, int], float] | None = None
        self._last: tuple[tuple[int, int, int], float] | None = None

    def add(self, row: TradeRow, price: float, flipped: bool = False) -> None:
        if flipped:
            self._base_volume += row.counter_amount
            self._counter_volume += row.base_amount
        else:
            self._base_volume += row.base_amount
            self._counter_volume += row.counter_amount

        self._price_sum += price
        self._high = price if self._high is None else max(self._high, price)
        self._low = price if self._low is None else min(self._low, price)

        position = (to_millis(row.closed_at), row.operation_id, row.order)
        if self._first is None or position < self._first[0]:
            self._first = (position, price)
        if self._last is None or position > self._last[0]:
            self._last = (position, price)
        self.count += 1

    def to_aggregation(self, timestamp: int) -> TradeAggregation:
        assert self.count > 0, "Cannot aggregate an empty bucket"
        assert self._high is not None and self._low is not None
        assert self._first is not None and self._last is not None

        return TradeAggregation(
            timestamp=timestamp,
            count=self.count,
            base_volume=self._base_volume,
            counter_volume=self._counter_volume,
            avg=self._price_sum / self.count,
            high=self._high,
            low=self._low,
            open=self._first[1],
            close=self._last[1],
        )


class AggregateQueryPlan(BaseModel):
    """One bucketed aggregate query, built up by pure with_* transformations."""

    resolution: int = DEFAULT_RESOLUTION
    pair: AssetPairQuery | None = None
    window: TimeWindow = Field(default_factory=TimeWindow)
    order: Literal["asc", "desc"] = "asc"
    limit: int = DEFAULT_AGGREGATION_LIMIT

    model_config = {"frozen": True}

    def with_asset_pair(self, pair: AssetPairQuery) -> AggregateQueryPlan:
        return self.model_copy(update={"pair": pair})

    def with_time_window(
        self, start_time: int | None, end_time: int | None
    ) -> AggregateQueryPlan:
        """Bucket-align the range and use it as the plan's window."""
        return self.model_copy(
            update={"window": normalize(start_time, end_time, self.resolution)}
        )

    def with_order(self, order: Literal["asc", "desc"]) -> AggregateQueryPlan:
        return self.model_copy(update={"order": order})

    def with_limit(self, limit: int) -> AggregateQueryPlan:
        return self.model_copy(update={"limit": limit})

    @property
    def flipped(self) -> bool:
        return self.pair is not None and self.pair.flipped


def bucket(
    resolution: int | None,
    pair: AssetPairQuery,
    start_time: int | None = None,
    end_time: int | None = None,
    order: Literal["asc", "desc"] = "asc",
    limit: int = DEFAULT_AGGREGATION_LIMIT,
) -> AggregateQueryPlan:
    """Build the aggregate plan for a canonical pair and a caller's time range."""
    plan = AggregateQueryPlan(resolution=normalize_resolution(resolution))
    return (
        plan.with_asset_pair(pair)
        .with_time_window(start_time, end_time)
        .with_order(order)
        .with_limit(limit)
    )


def aggregate_rows(rows: Iterable[TradeRow], plan: AggregateQueryPlan) -> list[TradeAggregation]:
    """Evaluate *plan* over stored rows.

    Rows outside the plan's pair or window are ignored.  Buckets come back
    ordered by timestamp in the plan's order, at most ``plan.limit`` of them.
    """
    if plan.pair is None:
        raise ValueError("Aggregate plan has no asset pair")
    if plan.window.is_empty:
        return []

    flipped = plan.flipped
    buckets: dict[int, BucketAccumulator] = {}
    for row in rows:
        if not plan.pair.matches(row):
            continue
        closed_ms = to_millis(row.closed_at)
        if not plan.window.contains(closed_ms):
            continue
        key = bucket_key(closed_ms, plan.resolution)
        acc = buckets.get(key)
        if acc is None:
            acc = buckets[key] = BucketAccumulator()
        acc.add(row, trade_price(row, flipped), flipped=flipped)

    keys = sorted(buckets, reverse=plan.order == "desc")
    return [buckets[k].to_aggregation(k) for k in islice(keys, plan.limit)]
