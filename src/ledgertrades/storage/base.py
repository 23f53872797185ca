"""Abstract base class for trade stores."""

from abc import ABC, abstractmethod
from datetime import datetime

from ledgertrades.ingestion.models import Asset, Trade, TradeRow
from ledgertrades.query.buckets import AggregateQueryPlan, TradeAggregation
from ledgertrades.query.pair import AssetPairQuery
from ledgertrades.query.paging import PageQuery


class TradeStore(ABC):
    """Interface that every trade store must implement.

    Stores hold trades in canonical order (base asset id < counter asset
    id) and answer queries in that order.  Mirroring raw trades for a
    flipped pair is left to the caller; aggregate plans carry the flip
    themselves because prices must be inverted before they are averaged.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier for this store, e.g. 'postgres'."""
        ...

    @abstractmethod
    def get_asset_id(self, asset: Asset) -> int:
        """Look up the id registered for *asset*.

        Raises:
            AssetNotFound: If the asset has never been registered.
        """
        ...

    @abstractmethod
    def get_create_asset_id(self, asset: Asset) -> int:
        """Look up the id for *asset*, registering it first if needed.

        Only the ingestion write path calls this.
        """
        ...

    @abstractmethod
    def insert_trade(self, row: TradeRow) -> bool:
        """Store one canonical trade row.

        Idempotent: re-inserting an existing (operation_id, order) is a
        no-op.

        Returns:
            True if a new row was written.
        """
        ...

    @abstractmethod
    def select_trades(self, pair: AssetPairQuery | None, page: PageQuery) -> list[Trade]:
        """Fetch one page of trades in storage orientation.

        Args:
            pair: Restrict to one canonical pair, or None for all trades.
            page: Cursor, order and limit.

        Returns:
            Trades ordered by (operation_id, order) in the page's order.
        """
        ...

    @abstractmethod
    def select_aggregations(self, plan: AggregateQueryPlan) -> list[TradeAggregation]:
        """Evaluate a bucketed aggregate plan in a single query."""
        ...

    @abstractmethod
    def get_trade_count(self, pair: AssetPairQuery | None = None) -> int:
        """Count stored trades, optionally for one canonical pair."""
        ...

    @abstractmethod
    def get_last_closed_at(self) -> datetime | None:
        """Close time of the most recent stored trade."""
        ...
