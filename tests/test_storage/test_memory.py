"""Tests for the in-memory trade store."""

from datetime import UTC, datetime

import pytest

from ledgertrades.errors import AssetNotFound
from ledgertrades.ingestion.models import Asset, TradeRow
from ledgertrades.query.pair import canonicalize
from ledgertrades.query.paging import page_query
from ledgertrades.storage.memory import MemoryStore


def _row(op: int, base_id: int = 1, counter_id: int = 2) -> TradeRow:
    return TradeRow(
        operation_id=op,
        order=0,
        closed_at=datetime(2026, 2, 10, 14, op, tzinfo=UTC),
        offer_id=op,
        base_account="GBASE",
        base_asset_id=base_id,
        base_amount=100,
        counter_account="GCOUNTER",
        counter_asset_id=counter_id,
        counter_amount=250,
        base_is_seller=True,
    )


class TestAssets:
    def test_ids_assigned_in_registration_order(self, store, eur, usd):
        assert store.get_create_asset_id(usd) == 1
        assert store.get_create_asset_id(eur) == 2
        assert store.get_create_asset_id(usd) == 1

    def test_lookup_does_not_register(self, store):
        with pytest.raises(AssetNotFound):
            store.get_asset_id(Asset.native())
        assert store.get_create_asset_id(Asset.native()) == 1
        assert store.get_asset_id(Asset.native()) == 1


class TestTrades:
    def test_insert_is_idempotent(self, store, eur, usd):
        store.get_create_asset_id(eur)
        store.get_create_asset_id(usd)
        assert store.insert_trade(_row(1)) is True
        assert store.insert_trade(_row(1)) is False
        assert store.get_trade_count() == 1

    def test_rejects_non_canonical_row(self, store):
        with pytest.raises(ValueError, match="canonical"):
            store.insert_trade(_row(1, base_id=2, counter_id=1))

    def test_select_resolves_assets(self, store, eur, usd):
        store.get_create_asset_id(eur)
        store.get_create_asset_id(usd)
        store.insert_trade(_row(1))
        (trade,) = store.select_trades(canonicalize(1, 2), page_query())
        assert trade.base_asset == eur
        assert trade.counter_asset == usd
        assert trade.price == 2.5

    def test_count_per_pair(self, populated_store):
        assert populated_store.get_trade_count() == 10
        assert populated_store.get_trade_count(canonicalize(2, 1)) == 10
        assert populated_store.get_trade_count(canonicalize(1, 3)) == 0

    def test_last_closed_at(self, populated_store):
        assert MemoryStore().get_last_closed_at() is None
        assert populated_store.get_last_closed_at() == datetime(1970, 1, 1, 0, 9, tzinfo=UTC)

    def test_name(self, store):
        assert store.name == "memory"
