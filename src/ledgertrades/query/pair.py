"""Canonical asset-pair ordering.

Every unordered asset pair has exactly one storage representation: the
asset with the lower id is the base.  Queries may name the pair either
way round; when the caller's base is the stored counter, the query is
"flipped" and results are mirrored before they reach the caller.
"""

from pydantic import BaseModel

from ledgertrades.ingestion.models import TradeRow


class AssetPairQuery(BaseModel):
    """Storage-order asset ids plus whether the caller asked for the reverse."""

    base_asset_id: int
    counter_asset_id: int
    flipped: bool = False

    model_config = {"frozen": True}

    def matches(self, row: TradeRow) -> bool:
        return (
            row.base_asset_id == self.base_asset_id
            and row.counter_asset_id == self.counter_asset_id
        )


def canonicalize(id_a: int, id_b: int) -> AssetPairQuery:
    """Order two asset ids canonically.

    ``canonicalize(a, b)`` and ``canonicalize(b, a)`` return the same ids
    with opposite ``flipped`` flags.  Equal ids give an unflipped pair that
    no stored trade can match.
    """
    low, high = (id_a, id_b) if id_a <= id_b else (id_b, id_a)
    return AssetPairQuery(base_asset_id=low, counter_asset_id=high, flipped=id_a != low)


def trade_price(row: TradeRow, flipped: bool = False) -> float:
    """Price of one stored trade as seen by the caller.

    Computed per trade, before any aggregation, so averaging a flipped
    pair averages the reciprocals rather than inverting the average.
    """
    if flipped:
        return row.base_amount / row.counter_amount
    return row.counter_amount / row.base_amount
