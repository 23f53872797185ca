"""Query layer: pair canonicalization, bucketing, time windows and paging."""

from ledgertrades.query.buckets import (
    AggregateQueryPlan,
    BucketAccumulator,
    TradeAggregation,
    aggregate_rows,
    bucket,
    normalize_resolution,
)
from ledgertrades.query.continuation import (
    Continuation,
    Exhausted,
    NextCursor,
    NextWindow,
    plan_next_window,
)
from ledgertrades.query.pair import AssetPairQuery, canonicalize, trade_price
from ledgertrades.query.paging import PageCursor, PageQuery, TradeCursorPager, page_query
from ledgertrades.query.timerange import TimeWindow, normalize

__all__ = [
    # Pairs
    "AssetPairQuery",
    "canonicalize",
    "trade_price",
    # Buckets
    "AggregateQueryPlan",
    "BucketAccumulator",
    "TradeAggregation",
    "aggregate_rows",
    "bucket",
    "normalize_resolution",
    # Time windows
    "TimeWindow",
    "normalize",
    # Paging
    "PageCursor",
    "PageQuery",
    "TradeCursorPager",
    "page_query",
    # Continuations
    "Continuation",
    "Exhausted",
    "NextCursor",
    "NextWindow",
    "plan_next_window",
]
