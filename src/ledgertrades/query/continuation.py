"""Continuation descriptors and the aggregate next-page planner.

A page of results tells its consumer how to fetch the next one with a
small typed value rather than a prebuilt link:

- ``Exhausted``: nothing further in the requested range.
- ``NextCursor``: re-issue the raw-trade query from this paging token.
- ``NextWindow``: re-issue the aggregate query with this time window.

Buckets have no row id to anchor a cursor on, so aggregate paging moves
one bound of the time window past the last bucket returned.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

if TYPE_CHECKING:
    from ledgertrades.query.buckets import AggregateQueryPlan, TradeAggregation


class Exhausted(BaseModel):
    kind: Literal["exhausted"] = "exhausted"

    model_config = {"frozen": True}


class NextCursor(BaseModel):
    kind: Literal["cursor"] = "cursor"
    token: str

    model_config = {"frozen": True}


class NextWindow(BaseModel):
    """The next aggregate page's window, already bucket-aligned."""

    kind: Literal["window"] = "window"
    start_time: int | None = None
    end_time: int | None = None

    model_config = {"frozen": True}

    def apply(self, plan: AggregateQueryPlan) -> AggregateQueryPlan:
        """The follow-up plan: same pair, resolution, order and limit."""
        return plan.with_time_window(self.start_time, self.end_time)


Continuation = Exhausted | NextCursor | NextWindow


def plan_next_window(
    plan: AggregateQueryPlan, records: Sequence[TradeAggregation]
) -> Continuation:
    """Work out where the page after *records* starts.

    A page shorter than the plan's limit means the window is used up.
    Ascending pages move the start to just past the last bucket; the page
    is terminal once that reaches the end bound.  Descending pages move the
    end down to the last bucket (exclusive); once that reaches the start
    bound the window is clamped shut and the page is terminal.
    """
    if len(records) < plan.limit or not records:
        return Exhausted()

    window = plan.window
    last = records[-1].timestamp

    if plan.order == "asc":
        new_start = last + plan.resolution
        if window.end_time is not None and new_start >= window.end_time:
            return Exhausted()
        return NextWindow(start_time=new_start, end_time=window.end_time)

    new_end = last
    if new_end <= (window.start_time or 0):
        return Exhausted()
    return NextWindow(start_time=window.start_time, end_time=new_end)
