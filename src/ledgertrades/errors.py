"""Errors raised while planning and executing trade queries.

Client input problems all derive from ClientInputError so a caller can map
them to one "bad request" outcome.  AssetNotFound is kept separate: an
unknown asset means the market does not exist, which is not the same as a
market with no trades.
"""


class TradeQueryError(Exception):
    """Base class for every error raised by ledgertrades queries."""


class ClientInputError(TradeQueryError):
    """The caller supplied parameters that cannot be turned into a query."""


class MissingPairedFilter(ClientInputError):
    """Only one side of a base/counter asset filter was supplied."""

    def __init__(self, supplied: str) -> None:
        super().__init__(
            f"this endpoint supports asset pairs but only one asset supplied ({supplied})"
        )
        self.supplied = supplied


class InvalidCursor(ClientInputError):
    """A paging token could not be parsed into (operation_id, order)."""

    def __init__(self, cursor: str, reason: str) -> None:
        super().__init__(f"Invalid cursor {cursor!r}: {reason}")
        self.cursor = cursor


class InvalidPageQuery(ClientInputError):
    """Limit or order are outside the accepted values."""


class InvalidResolution(ClientInputError):
    """Bucket resolution is not a positive number of milliseconds."""


class InvalidAsset(ClientInputError):
    """An asset descriptor is malformed."""


class AssetNotFound(TradeQueryError):
    """An asset descriptor has no registered identifier."""

    def __init__(self, asset: object) -> None:
        super().__init__(f"Asset not found: {asset}")
        self.asset = asset


class StorageFailure(TradeQueryError):
    """The backing store failed to execute a query."""
