"""Canonical-order write path for executed offer matches.

Each claimed offer in a ledger operation becomes one trade row.  The
sides are assigned by asset id, not by who sold: whichever asset has the
lower id is the base, and base_is_seller records whether the seller of
the matched offer ended up on the base side.
"""

import logging
from datetime import datetime

from ledgertrades.ingestion.models import OfferMatch, TradeRow
from ledgertrades.query.pair import canonicalize
from ledgertrades.storage.base import TradeStore

logger = logging.getLogger(__name__)


def canonical_row(
    operation_id: int,
    order: int,
    buyer: str,
    match: OfferMatch,
    closed_at: datetime,
    sold_asset_id: int,
    bought_asset_id: int,
) -> TradeRow:
    """Map a seller/buyer offer match onto base/counter storage order."""
    pair = canonicalize(sold_asset_id, bought_asset_id)
    seller_is_base = not pair.flipped

    if seller_is_base:
        base_account, base_amount = match.seller, match.amount_sold
        counter_account, counter_amount = buyer, match.amount_bought
    else:
        base_account, base_amount = buyer, match.amount_bought
        counter_account, counter_amount = match.seller, match.amount_sold

    return TradeRow(
        operation_id=operation_id,
        order=order,
        closed_at=closed_at,
        offer_id=match.offer_id,
        base_account=base_account,
        base_asset_id=pair.base_asset_id,
        base_amount=base_amount,
        counter_account=counter_account,
        counter_asset_id=pair.counter_asset_id,
        counter_amount=counter_amount,
        base_is_seller=seller_is_base,
    )


def record_trade(
    store: TradeStore,
    operation_id: int,
    order: int,
    buyer: str,
    match: OfferMatch,
    closed_at: datetime,
) -> TradeRow:
    """Register both assets (if new) and store the match as a canonical trade.

    Returns:
        The row as written (or as it already existed).
    """
    sold_id = store.get_create_asset_id(match.asset_sold)
    bought_id = store.get_create_asset_id(match.asset_bought)
    row = canonical_row(operation_id, order, buyer, match, closed_at, sold_id, bought_id)
    if not store.insert_trade(row):
        logger.debug("Trade %d-%d already recorded", operation_id, order)
    return row
