"""Shared fixtures: an in-memory store seeded with a known trade series."""

import pytest

from ledgertrades.ingestion.models import Asset, OfferMatch
from ledgertrades.ingestion.recorder import record_trade
from ledgertrades.query.timerange import from_millis
from ledgertrades.service import TradeQueryService
from ledgertrades.storage.memory import MemoryStore

MINUTE = 60_000


def populate_trades(
    store: MemoryStore,
    base: Asset,
    counter: Asset,
    start: int = 0,
    count: int = 10,
    spacing: int = MINUTE,
    first_operation_id: int = 1,
) -> None:
    """Record *count* trades, one every *spacing* ms from *start*.

    Trade i (1-based) sells 100*i of *base* for 100*i*i of *counter*, so
    its price is exactly i.
    """
    for i in range(1, count + 1):
        match = OfferMatch(
            seller="GSELLER",
            offer_id=i,
            asset_sold=base,
            amount_sold=100 * i,
            asset_bought=counter,
            amount_bought=100 * i * i,
        )
        record_trade(
            store,
            operation_id=first_operation_id + i - 1,
            order=0,
            buyer="GBUYER",
            match=match,
            closed_at=from_millis(start + (i - 1) * spacing),
        )


@pytest.fixture
def eur() -> Asset:
    return Asset.credit("EUR", "GEURISSUER")


@pytest.fixture
def usd() -> Asset:
    return Asset.credit("USD", "GUSDISSUER")


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def populated_store(store: MemoryStore, eur: Asset, usd: Asset) -> MemoryStore:
    """Ten EUR/USD trades one minute apart from t=0; EUR registers first (id 1)."""
    populate_trades(store, eur, usd)
    return store


@pytest.fixture
def service(populated_store: MemoryStore) -> TradeQueryService:
    return TradeQueryService(populated_store)


@pytest.fixture
def populate():
    """The populate_trades helper, for tests that seed their own stores."""
    return populate_trades
