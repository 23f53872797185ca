"""Tests for the canonical-order write path."""

from datetime import UTC, datetime

import pytest

from ledgertrades.ingestion.models import Asset, OfferMatch
from ledgertrades.ingestion.recorder import canonical_row, record_trade
from ledgertrades.query.paging import page_query

CLOSED = datetime(2026, 2, 10, 14, 0, tzinfo=UTC)


@pytest.fixture
def match(eur, usd) -> OfferMatch:
    """GSELLER's offer sold 300 EUR for 600 USD."""
    return OfferMatch(
        seller="GSELLER",
        offer_id=55,
        asset_sold=eur,
        amount_sold=300,
        asset_bought=usd,
        amount_bought=600,
    )


class TestCanonicalRow:
    def test_seller_on_base_side(self, match):
        row = canonical_row(10, 0, "GBUYER", match, CLOSED, sold_asset_id=1, bought_asset_id=2)
        assert (row.base_asset_id, row.counter_asset_id) == (1, 2)
        assert (row.base_account, row.base_amount) == ("GSELLER", 300)
        assert (row.counter_account, row.counter_amount) == ("GBUYER", 600)
        assert row.base_is_seller is True
        assert row.offer_id == 55

    def test_seller_on_counter_side(self, match):
        row = canonical_row(10, 0, "GBUYER", match, CLOSED, sold_asset_id=2, bought_asset_id=1)
        assert (row.base_asset_id, row.counter_asset_id) == (1, 2)
        assert (row.base_account, row.base_amount) == ("GBUYER", 600)
        assert (row.counter_account, row.counter_amount) == ("GSELLER", 300)
        assert row.base_is_seller is False


class TestRecordTrade:
    def test_registers_assets_sold_first(self, store, match, eur, usd):
        row = record_trade(store, 10, 0, "GBUYER", match, CLOSED)
        assert store.get_asset_id(eur) == 1
        assert store.get_asset_id(usd) == 2
        assert row.base_is_seller is True
        assert store.get_trade_count() == 1

    def test_existing_ids_decide_orientation(self, store, match, eur, usd):
        store.get_create_asset_id(usd)
        row = record_trade(store, 10, 0, "GBUYER", match, CLOSED)
        assert row.base_asset_id == store.get_asset_id(usd)
        assert row.base_account == "GBUYER"
        assert row.base_is_seller is False

    def test_duplicate_is_ignored(self, store, match, caplog):
        record_trade(store, 10, 0, "GBUYER", match, CLOSED)
        with caplog.at_level("DEBUG", logger="ledgertrades.ingestion.recorder"):
            record_trade(store, 10, 0, "GBUYER", match, CLOSED)
        assert store.get_trade_count() == 1
        assert "already recorded" in caplog.text

    def test_native_asset(self, store, usd):
        match = OfferMatch(
            seller="GSELLER",
            offer_id=1,
            asset_sold=usd,
            amount_sold=10,
            asset_bought=Asset.native(),
            amount_bought=40,
        )
        record_trade(store, 1, 0, "GBUYER", match, CLOSED)
        (trade,) = store.select_trades(None, page_query())
        assert trade.base_asset == usd
        assert trade.counter_asset == Asset.native()
        assert trade.price == 4.0
