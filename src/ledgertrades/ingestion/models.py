"""Trade data models."""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ledgertrades.errors import InvalidAsset

MAX_INT32 = 2**31 - 1
MAX_INT64 = 2**63 - 1

# Amounts are int64 fixed-point values with 7 decimal places.
AMOUNT_DECIMALS = 7

ASSET_TYPE_NATIVE = "native"
ASSET_TYPE_ALPHANUM4 = "credit_alphanum4"
ASSET_TYPE_ALPHANUM12 = "credit_alphanum12"
ASSET_TYPES = (ASSET_TYPE_NATIVE, ASSET_TYPE_ALPHANUM4, ASSET_TYPE_ALPHANUM12)

_CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{1,12}$")


def amount_to_decimal(amount: int) -> Decimal:
    """Convert a fixed-point amount to its Decimal value, e.g. 10000000 -> 1.0000000."""
    return Decimal(amount).scaleb(-AMOUNT_DECIMALS)


class Asset(BaseModel):
    """An asset descriptor: the native asset, or a code issued by an account."""

    asset_type: str = ASSET_TYPE_NATIVE
    code: str = ""
    issuer: str = ""

    model_config = {"frozen": True}

    @classmethod
    def native(cls) -> Asset:
        return cls()

    @classmethod
    def credit(cls, code: str, issuer: str) -> Asset:
        """Build a credit asset, picking alphanum4/alphanum12 from the code length."""
        if not _CODE_PATTERN.match(code):
            raise InvalidAsset(f"Invalid asset code {code!r}")
        if not issuer:
            raise InvalidAsset(f"Asset {code!r} is missing an issuer")
        asset_type = ASSET_TYPE_ALPHANUM4 if len(code) <= 4 else ASSET_TYPE_ALPHANUM12
        return cls(asset_type=asset_type, code=code, issuer=issuer)

    @classmethod
    def from_parts(cls, asset_type: str, code: str = "", issuer: str = "") -> Asset:
        """Build an asset from the (type, code, issuer) triple used in storage."""
        if asset_type not in ASSET_TYPES:
            raise InvalidAsset(f"Unknown asset type {asset_type!r}")
        if asset_type == ASSET_TYPE_NATIVE:
            if code or issuer:
                raise InvalidAsset("Native asset takes no code or issuer")
            return cls.native()
        asset = cls.credit(code, issuer)
        if asset.asset_type != asset_type:
            raise InvalidAsset(f"Code {code!r} does not fit asset type {asset_type}")
        return asset

    @classmethod
    def parse(cls, text: str) -> Asset:
        """Parse 'native' or 'CODE:ISSUER'.

        Raises:
            InvalidAsset: If the text is neither form.
        """
        if text == ASSET_TYPE_NATIVE:
            return cls.native()
        code, sep, issuer = text.partition(":")
        if not sep:
            raise InvalidAsset(f"Expected 'native' or 'CODE:ISSUER', got {text!r}")
        return cls.credit(code, issuer)

    @property
    def is_native(self) -> bool:
        return self.asset_type == ASSET_TYPE_NATIVE

    def __str__(self) -> str:
        if self.is_native:
            return ASSET_TYPE_NATIVE
        return f"{self.code}:{self.issuer}"


class OfferMatch(BaseModel):
    """One claimed offer from a ledger operation: the seller's side of a match."""

    seller: str = Field(description="Account that owned the matched offer")
    offer_id: int
    asset_sold: Asset
    amount_sold: int = Field(gt=0)
    asset_bought: Asset
    amount_bought: int = Field(gt=0)

    model_config = {"frozen": True}


class TradeRow(BaseModel):
    """A trade exactly as stored: canonical asset order, asset ids not descriptors."""

    operation_id: int = Field(ge=0, le=MAX_INT64)
    order: int = Field(ge=0, le=MAX_INT32)
    closed_at: datetime
    offer_id: int
    base_account: str
    base_asset_id: int
    base_amount: int = Field(gt=0)
    counter_account: str
    counter_asset_id: int
    counter_amount: int = Field(gt=0)
    base_is_seller: bool

    model_config = {"frozen": True}

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.operation_id, self.order)

    def to_trade(self, base_asset: Asset, counter_asset: Asset) -> Trade:
        return Trade(
            operation_id=self.operation_id,
            order=self.order,
            closed_at=self.closed_at,
            offer_id=self.offer_id,
            base_account=self.base_account,
            base_asset=base_asset,
            base_amount=self.base_amount,
            counter_account=self.counter_account,
            counter_asset=counter_asset,
            counter_amount=self.counter_amount,
            base_is_seller=self.base_is_seller,
        )


class Trade(BaseModel):
    """A single executed match between two offers.

    Amounts are kept as the ledger's int64 fixed-point values; use the
    *_decimal properties for display.  Trades are immutable once recorded.
    """

    operation_id: int = Field(description="Id of the operation that produced the trade")
    order: int = Field(description="Position of the trade within its operation")
    closed_at: datetime = Field(description="Close time of the ledger, UTC")
    offer_id: int
    base_account: str
    base_asset: Asset
    base_amount: int
    counter_account: str
    counter_asset: Asset
    counter_amount: int
    base_is_seller: bool

    model_config = {"frozen": True}

    @property
    def paging_token(self) -> str:
        """Cursor for this trade, e.g. '4294967297-0'."""
        return f"{self.operation_id}-{self.order}"

    @property
    def price(self) -> float:
        """Counter units paid per base unit."""
        return self.counter_amount / self.base_amount

    @property
    def base_amount_decimal(self) -> Decimal:
        return amount_to_decimal(self.base_amount)

    @property
    def counter_amount_decimal(self) -> Decimal:
        return amount_to_decimal(self.counter_amount)

    def mirrored(self) -> Trade:
        """The same trade seen from the other side of the pair.

        Swaps base and counter (accounts, assets, amounts) and inverts
        base_is_seller, so price becomes its reciprocal.
        """
        return self.model_copy(
            update={
                "base_account": self.counter_account,
                "base_asset": self.counter_asset,
                "base_amount": self.counter_amount,
                "counter_account": self.base_account,
                "counter_asset": self.base_asset,
                "counter_amount": self.base_amount,
                "base_is_seller": not self.base_is_seller,
            }
        )
