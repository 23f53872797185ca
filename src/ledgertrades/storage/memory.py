"""In-memory trade store.

Evaluates queries with the same pager and bucketing code the SQL store is
compiled from, which makes it the reference for expected results in tests
and a convenient store for local experiments.
"""

from __future__ import annotations

from datetime import datetime

from ledgertrades.errors import AssetNotFound
from ledgertrades.ingestion.models import Asset, Trade, TradeRow
from ledgertrades.query.buckets import AggregateQueryPlan, TradeAggregation, aggregate_rows
from ledgertrades.query.pair import AssetPairQuery
from ledgertrades.query.paging import PageQuery, TradeCursorPager
from ledgertrades.storage.base import TradeStore


class MemoryStore(TradeStore):
    """Keeps assets and canonical trade rows in dictionaries."""

    def __init__(self) -> None:
        self._asset_ids: dict[Asset, int] = {}
        self._assets: dict[int, Asset] = {}
        self._rows: dict[tuple[int, int], TradeRow] = {}

    @property
    def name(self) -> str:
        return "memory"

    # ── Assets ────────────────────────────────────────────────────────────

    def get_asset_id(self, asset: Asset) -> int:
        try:
            return self._asset_ids[asset]
        except KeyError:
            raise AssetNotFound(asset) from None

    def get_create_asset_id(self, asset: Asset) -> int:
        asset_id = self._asset_ids.get(asset)
        if asset_id is None:
            asset_id = len(self._asset_ids) + 1
            self._asset_ids[asset] = asset_id
            self._assets[asset_id] = asset
        return asset_id

    # ── Trades ────────────────────────────────────────────────────────────

    def insert_trade(self, row: TradeRow) -> bool:
        if row.base_asset_id >= row.counter_asset_id:
            raise ValueError(
                f"Trade {row.operation_id}-{row.order} is not in canonical order: "
                f"base asset {row.base_asset_id} >= counter asset {row.counter_asset_id}"
            )
        if row.sort_key in self._rows:
            return False
        self._rows[row.sort_key] = row
        return True

    def _pair_rows(self, pair: AssetPairQuery | None) -> list[TradeRow]:
        if pair is None:
            return list(self._rows.values())
        return [r for r in self._rows.values() if pair.matches(r)]

    def select_trades(self, pair: AssetPairQuery | None, page: PageQuery) -> list[Trade]:
        rows = TradeCursorPager(page).paginate(self._pair_rows(pair))
        return [
            r.to_trade(self._assets[r.base_asset_id], self._assets[r.counter_asset_id])
            for r in rows
        ]

    def select_aggregations(self, plan: AggregateQueryPlan) -> list[TradeAggregation]:
        return aggregate_rows(self._rows.values(), plan)

    def get_trade_count(self, pair: AssetPairQuery | None = None) -> int:
        return len(self._pair_rows(pair))

    def get_last_closed_at(self) -> datetime | None:
        if not self._rows:
            return None
        return max(r.closed_at for r in self._rows.values())
