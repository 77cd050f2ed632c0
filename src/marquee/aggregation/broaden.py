"""Broaden-and-retry search for callers that want a minimum result count.

When a search comes back thin, retry it with progressively looser
parameters: first without date bounds (upcoming events only), then without
the keyword. Each pass is a complete, independent aggregator call; this
module only merges what the passes return. Broadened passes sort by date.
"""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from marquee.aggregation.aggregator import EventAggregator
from marquee.models import (
    AggregatedResult,
    SearchParams,
    SortKey,
    SourceBreakdown,
    utc_now_bound,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_RESULTS = 5
DEFAULT_LIMIT = 20


class BroadenPass(str, Enum):
    """Which parameter set a search pass used."""

    ORIGINAL = "original"
    WITHOUT_DATES = "without_dates"
    WITHOUT_KEYWORD = "without_keyword"


class BroadenedResult(BaseModel):
    """Merged result of one or more search passes."""

    result: AggregatedResult
    passes: list[BroadenPass] = Field(default_factory=list)


def _merge(current: AggregatedResult, extra: AggregatedResult, limit: int) -> AggregatedResult:
    existing_ids = {event.id for event in current.events}
    additional = [event for event in extra.events if event.id not in existing_ids]

    counts = dict(current.sources.counts)
    for name, count in extra.sources.counts.items():
        counts[name] = counts.get(name, 0) + count

    return AggregatedResult(
        events=(current.events + additional)[:limit],
        total=current.total + len(additional),
        sources=SourceBreakdown(
            counts=counts,
            duplicates_removed=current.sources.duplicates_removed
            + extra.sources.duplicates_removed,
        ),
    )


async def search_with_broadening(
    aggregator: EventAggregator,
    params: SearchParams,
    min_results: int = DEFAULT_MIN_RESULTS,
    limit: int = DEFAULT_LIMIT,
) -> BroadenedResult:
    """Search, then loosen the filters while fewer than ``min_results`` come back.

    Args:
        aggregator: Aggregator to run each pass through.
        params: The caller's original parameters.
        min_results: Result count below which the search is broadened.
        limit: Maximum number of events in the merged list.

    Returns:
        BroadenedResult with the merged events and the passes that ran.
    """
    result = await aggregator.search_all_sources(params)
    passes = [BroadenPass.ORIGINAL]

    has_dates = params.start_datetime is not None or params.end_datetime is not None
    if len(result.events) < min_results and has_dates:
        logger.info("Few results, retrying without date restriction")
        broader = await aggregator.search_all_sources(
            params.model_copy(
                update={
                    "start_datetime": utc_now_bound(),
                    "end_datetime": None,
                    "sort": SortKey.DATE.value,
                }
            )
        )
        passes.append(BroadenPass.WITHOUT_DATES)
        if len(broader.events) > len(result.events):
            result = _merge(result, broader, limit)

    if len(result.events) < min_results and params.keyword:
        logger.info("Still few results, retrying without keyword")
        broader = await aggregator.search_all_sources(
            params.model_copy(update={"keyword": None, "sort": SortKey.DATE.value})
        )
        passes.append(BroadenPass.WITHOUT_KEYWORD)
        if broader.events:
            result = _merge(result, broader, limit)

    return BroadenedResult(result=result, passes=passes)


__all__ = ["BroadenPass", "BroadenedResult", "search_with_broadening"]
