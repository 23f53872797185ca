"""Trade query service: turns request parameters into store queries and pages.

This is the layer a transport (HTTP handler, CLI) talks to.  It validates
paging parameters, resolves asset descriptors to ids, canonicalizes the
pair, runs exactly one store query, mirrors results for flipped pairs, and
attaches the continuation for the next page.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ledgertrades.config import QueryConfig
from ledgertrades.errors import MissingPairedFilter
from ledgertrades.ingestion.models import Asset, Trade
from ledgertrades.query.buckets import AggregateQueryPlan, TradeAggregation, bucket
from ledgertrades.query.continuation import Continuation, plan_next_window
from ledgertrades.query.pair import AssetPairQuery, canonicalize
from ledgertrades.query.paging import TradeCursorPager, page_query
from ledgertrades.storage.base import TradeStore


class TradePage(BaseModel):
    """One page of raw trades in the caller's base/counter orientation."""

    records: list[Trade]
    limit: int
    order: Literal["asc", "desc"]
    cursor: str = Field(description="Paging token of the last record returned")
    next: Continuation = Field(discriminator="kind")


class AggregationPage(BaseModel):
    """One page of buckets plus the plan that produced it."""

    records: list[TradeAggregation]
    plan: AggregateQueryPlan
    next: Continuation = Field(discriminator="kind")

    @property
    def limit(self) -> int:
        return self.plan.limit

    @property
    def order(self) -> str:
        return self.plan.order

    @property
    def resolution(self) -> int:
        return self.plan.resolution


class TradeQueryService:
    """Answers raw-trade and trade-aggregation queries against a TradeStore."""

    def __init__(self, store: TradeStore, config: QueryConfig | None = None) -> None:
        self._store = store
        self._config = config or QueryConfig()

    def resolve_pair(self, base_asset: Asset, counter_asset: Asset) -> AssetPairQuery:
        """Look up both assets and put them in storage order.

        Raises:
            AssetNotFound: If either asset is unregistered (no such market).
        """
        base_id = self._store.get_asset_id(base_asset)
        counter_id = self._store.get_asset_id(counter_asset)
        return canonicalize(base_id, counter_id)

    def trades(
        self,
        base_asset: Asset | None = None,
        counter_asset: Asset | None = None,
        cursor: str | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> TradePage:
        """Page through raw trades, optionally for one asset pair.

        Raises:
            MissingPairedFilter: If exactly one of the two assets is given.
            AssetNotFound: If a given asset is unregistered.
            InvalidCursor, InvalidPageQuery: For bad paging parameters.
            StorageFailure: If the store query fails.
        """
        page = page_query(
            cursor,
            order,
            limit,
            default_limit=self._config.default_limit,
            max_limit=self._config.max_limit,
        )

        if (base_asset is None) != (counter_asset is None):
            raise MissingPairedFilter("base_asset" if base_asset is not None else "counter_asset")

        pair = None
        if base_asset is not None and counter_asset is not None:
            pair = self.resolve_pair(base_asset, counter_asset)

        records = self._store.select_trades(pair, page)
        if pair is not None and pair.flipped:
            records = [t.mirrored() for t in records]

        pager = TradeCursorPager(page)
        return TradePage(
            records=records,
            limit=page.limit,
            order=page.order,
            cursor=pager.cursor_after(records),
            next=pager.continuation(records),
        )

    def plan_aggregations(
        self,
        base_asset: Asset,
        counter_asset: Asset,
        resolution: int | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> AggregateQueryPlan:
        """Validate parameters and build the aggregate plan without running it.

        Raises:
            AssetNotFound: If either asset is unregistered.
            InvalidResolution, InvalidPageQuery: For bad parameters.
        """
        page = page_query(
            None,
            order,
            limit,
            default_limit=self._config.default_limit,
            max_limit=self._config.max_limit,
        )
        if resolution is None:
            resolution = self._config.default_resolution
        pair = self.resolve_pair(base_asset, counter_asset)
        return bucket(resolution, pair, start_time, end_time, order=page.order, limit=page.limit)

    def run_aggregations(self, plan: AggregateQueryPlan) -> AggregationPage:
        """Execute a plan (a fresh one or a continuation) and plan the next page."""
        records = self._store.select_aggregations(plan)
        return AggregationPage(records=records, plan=plan, next=plan_next_window(plan, records))

    def trade_aggregations(
        self,
        base_asset: Asset,
        counter_asset: Asset,
        resolution: int | None = None,
        start_time: int | None = None,
        end_time: int | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> AggregationPage:
        """Bucketed OHLC aggregates for one asset pair.

        ``start_time``/``end_time`` are epoch milliseconds; None or <= 0
        leaves that side unbounded.  Both are aligned to whole buckets.
        """
        plan = self.plan_aggregations(
            base_asset, counter_asset, resolution, start_time, end_time, order, limit
        )
        return self.run_aggregations(plan)
