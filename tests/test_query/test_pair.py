"""Tests for canonical asset-pair ordering and per-trade prices."""

from datetime import UTC, datetime

import pytest

from ledgertrades.ingestion.models import TradeRow
from ledgertrades.query.pair import AssetPairQuery, canonicalize, trade_price


def _row(base_id: int = 1, counter_id: int = 2, base: int = 200, counter: int = 100) -> TradeRow:
    return TradeRow(
        operation_id=10,
        order=0,
        closed_at=datetime(2026, 2, 10, 14, 0, 0, tzinfo=UTC),
        offer_id=7,
        base_account="GBASE",
        base_asset_id=base_id,
        base_amount=base,
        counter_account="GCOUNTER",
        counter_asset_id=counter_id,
        counter_amount=counter,
        base_is_seller=True,
    )


class TestCanonicalize:
    def test_already_ordered(self):
        pair = canonicalize(3, 9)
        assert pair == AssetPairQuery(base_asset_id=3, counter_asset_id=9, flipped=False)

    def test_reversed_is_flipped(self):
        pair = canonicalize(9, 3)
        assert pair == AssetPairQuery(base_asset_id=3, counter_asset_id=9, flipped=True)

    @pytest.mark.parametrize("a,b", [(1, 2), (2, 1), (5, 500), (42, 7)])
    def test_symmetry(self, a, b):
        forward = canonicalize(a, b)
        backward = canonicalize(b, a)
        assert (forward.base_asset_id, forward.counter_asset_id) == (
            backward.base_asset_id,
            backward.counter_asset_id,
        )
        assert forward.flipped is not backward.flipped
        assert forward.base_asset_id < forward.counter_asset_id

    def test_equal_ids_not_flipped(self):
        pair = canonicalize(4, 4)
        assert pair.flipped is False
        assert pair.base_asset_id == pair.counter_asset_id == 4

    def test_frozen(self):
        pair = canonicalize(1, 2)
        with pytest.raises(Exception):
            pair.flipped = True  # type: ignore[misc]


class TestMatches:
    def test_matches_canonical_row(self):
        assert canonicalize(2, 1).matches(_row(1, 2))

    def test_other_pair_does_not_match(self):
        assert not canonicalize(1, 3).matches(_row(1, 2))


class TestTradePrice:
    def test_counter_per_base(self):
        assert trade_price(_row(base=200, counter=100)) == 0.5

    def test_flipped_is_reciprocal(self):
        row = _row(base=200, counter=100)
        assert trade_price(row, flipped=True) == 2.0
        assert trade_price(row) * trade_price(row, flipped=True) == pytest.approx(1.0)
