"""Cursor paging over the raw trade log.

Trades are totally ordered by (operation_id, order), and a trade's paging
token encodes exactly that pair, e.g. ``"4294967297-3"``.  A page holds the
rows strictly after (ascending) or strictly before (descending) the
cursor, so consecutive pages never overlap and never skip a row.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Literal

from pydantic import BaseModel

from ledgertrades.errors import InvalidCursor, InvalidPageQuery
from ledgertrades.ingestion.models import MAX_INT32, MAX_INT64, Trade, TradeRow
from ledgertrades.query.continuation import Continuation, Exhausted, NextCursor

Order = Literal["asc", "desc"]
ORDERS = ("asc", "desc")

DEFAULT_LIMIT = 10
MAX_LIMIT = 200
DEFAULT_PAIR_SEP = "-"

_UINT_PATTERN = re.compile(r"[0-9]+")

# Digit counts of MAX_INT64 and MAX_INT32.
_INT64_DIGITS = len(str(MAX_INT64))
_INT32_DIGITS = len(str(MAX_INT32))


class PageCursor(BaseModel):
    """A position in the trade log: the (operation_id, order) of the last row seen."""

    operation_id: int
    order: int

    model_config = {"frozen": True}

    @classmethod
    def parse(cls, token: str) -> PageCursor:
        """Decode a paging token.

        The order half is clamped to the 32-bit range rather than rejected.

        Raises:
            InvalidCursor: If the token is not two non-negative integers
                joined by '-', or the operation id overflows int64.
        """
        parts = token.split(DEFAULT_PAIR_SEP)
        if len(parts) != 2:
            raise InvalidCursor(token, "expected '<operation_id>-<order>'")
        if not all(_UINT_PATTERN.fullmatch(p) for p in parts):
            raise InvalidCursor(token, "both parts must be non-negative integers")

        op_digits = parts[0].lstrip("0") or "0"
        if len(op_digits) > _INT64_DIGITS or int(op_digits) > MAX_INT64:
            raise InvalidCursor(token, "operation id out of range")

        idx_digits = parts[1].lstrip("0") or "0"
        if len(idx_digits) > _INT32_DIGITS:
            idx = MAX_INT32
        else:
            idx = min(int(idx_digits), MAX_INT32)
        return cls(operation_id=int(op_digits), order=idx)

    @property
    def token(self) -> str:
        return f"{self.operation_id}{DEFAULT_PAIR_SEP}{self.order}"

    @property
    def key(self) -> tuple[int, int]:
        return (self.operation_id, self.order)


class PageQuery(BaseModel):
    """Validated paging parameters.  Build with page_query()."""

    cursor: str = ""
    order: Order = "asc"
    limit: int = DEFAULT_LIMIT

    model_config = {"frozen": True}

    @property
    def position(self) -> PageCursor | None:
        """The decoded cursor; None for an empty cursor (start of the log
        for ascending pages, end of the log for descending ones)."""
        if not self.cursor:
            return None
        return PageCursor.parse(self.cursor)


def page_query(
    cursor: str | None = None,
    order: str | None = None,
    limit: int | None = None,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> PageQuery:
    """Validate raw paging parameters.

    Raises:
        InvalidPageQuery: For an unknown order or a limit outside 1..max_limit.
        InvalidCursor: For an unparseable cursor.
    """
    order = order or "asc"
    if order not in ORDERS:
        raise InvalidPageQuery(f"order must be one of {ORDERS}, got {order!r}")

    if limit is None:
        limit = default_limit
    if limit < 1 or limit > max_limit:
        raise InvalidPageQuery(f"limit must be between 1 and {max_limit}, got {limit}")

    if cursor:
        PageCursor.parse(cursor)
    return PageQuery(cursor=cursor or "", order=order, limit=limit)


class TradeCursorPager:
    """Applies one PageQuery to the trade log.

    The same predicate is exposed two ways: ``paginate`` filters rows in
    memory, ``where_clause``/``order_by`` render it for SQL.
    """

    def __init__(self, page: PageQuery) -> None:
        self._page = page
        self._position = page.position

    @property
    def page(self) -> PageQuery:
        return self._page

    @property
    def descending(self) -> bool:
        return self._page.order == "desc"

    def admits(self, key: tuple[int, int]) -> bool:
        """True if a row with this (operation_id, order) belongs after the cursor."""
        if self._position is None:
            return True
        if self.descending:
            return key < self._position.key
        return key > self._position.key

    def paginate(self, rows: Iterable[TradeRow]) -> list[TradeRow]:
        selected = [r for r in rows if self.admits(r.sort_key)]
        selected.sort(key=lambda r: r.sort_key, reverse=self.descending)
        return selected[: self._page.limit]

    def where_clause(self, alias: str = "htrd") -> tuple[str, list[int]]:
        """SQL predicate for the cursor, or ('', []) when there is none."""
        if self._position is None:
            return "", []
        op = "<" if self.descending else ">"
        sql = (
            f"({alias}.history_operation_id {op} %s "
            f"OR ({alias}.history_operation_id = %s AND {alias}.\"order\" {op} %s))"
        )
        pos = self._position
        return sql, [pos.operation_id, pos.operation_id, pos.order]

    def order_by(self, alias: str = "htrd") -> str:
        direction = "DESC" if self.descending else "ASC"
        return f"{alias}.history_operation_id {direction}, {alias}.\"order\" {direction}"

    def cursor_after(self, records: Sequence[Trade]) -> str:
        """Token of the last record, or the incoming cursor for an empty page."""
        if records:
            return records[-1].paging_token
        return self._page.cursor

    def continuation(self, records: Sequence[Trade]) -> Continuation:
        """A full page may have more behind it; a short page is the end."""
        if len(records) < self._page.limit or not records:
            return Exhausted()
        return NextCursor(token=records[-1].paging_token)
