"""Aggregator for multi-source event search.

Queries every source adapter concurrently, merges the results through the
deduplication engine, then sorts and slices out the requested page.

Native source pagination never lines up with the merged, deduplicated feed,
so every call re-fetches each source from its first page through enough
records to cover the requested page.
"""

import asyncio
import logging
from collections.abc import Mapping

from marquee.adapters.base import AdapterConfigError, AdapterError, EventSourceAdapter
from marquee.aggregation.dedup import deduplicate_all_sources
from marquee.aggregation.ordering import paginate, sort_events
from marquee.config import DEFAULT_MAX_FETCH_SIZE, Settings, get_settings
from marquee.models import (
    AdapterSearchParams,
    AggregatedResult,
    Event,
    EventSource,
    SearchParams,
    SourceBreakdown,
    SourceResult,
)

logger = logging.getLogger(__name__)


def compute_fetch_size(page: int, size: int, max_fetch_size: int = DEFAULT_MAX_FETCH_SIZE) -> int:
    """Records to request from each source to cover ``page`` after dedup.

    Example: page 2 of size 20 needs the first 60 records of every source.
    """
    return min((page + 1) * size, max_fetch_size)


class EventAggregator:
    """Multi-source event search engine.

    Adapters are queried in registration order, which is also the order the
    deduplication engine sees them in, so earlier sources win ties.

    Attributes:
        adapters: Mapping of source name to adapter, in trust order.
    """

    def __init__(
        self,
        adapters: Mapping[str, EventSourceAdapter] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            adapters: Dict mapping source names to adapter instances.
            settings: Optional Settings instance.
        """
        self._adapters = dict(adapters or {})
        self._settings = settings or get_settings()

    @property
    def adapters(self) -> dict[str, EventSourceAdapter]:
        return dict(self._adapters)

    async def search_all_sources(self, params: SearchParams) -> AggregatedResult:
        """Search all sources and return one deduplicated, sorted page.

        Args:
            params: Location, filters, zero-based page, page size and sort key.

        Returns:
            AggregatedResult with the page slice, the deduplicated total and
            raw per-source counts.

        Raises:
            AdapterConfigError: If a source that cannot run without a
                credential is missing it.
        """
        fetch_size = compute_fetch_size(params.page, params.size, self._settings.max_fetch_size)
        adapter_params = AdapterSearchParams(
            latitude=params.latitude,
            longitude=params.longitude,
            radius=params.radius,
            keyword=params.keyword,
            event_type=params.event_type,
            start_datetime=params.start_datetime,
            end_datetime=params.end_datetime,
            page=0,
            size=fetch_size,
            sort=params.sort,
        )
        logger.info(
            f"Aggregating page {params.page} (size {params.size}) across "
            f"{len(self._adapters)} sources, fetch_size={fetch_size}"
        )

        source_results = await self._query_sources_concurrently(adapter_params)

        counts = {name: len(result.events) for name, result in source_results.items()}
        logger.info(f"Raw results from all sources: {counts}")

        dedup = deduplicate_all_sources([result.events for result in source_results.values()])
        ordered = sort_events(dedup.events, params.sort)
        page_events = paginate(ordered, params.page, params.size)

        return AggregatedResult(
            events=page_events,
            total=len(dedup.events),
            sources=SourceBreakdown(counts=counts, duplicates_removed=dedup.duplicates_removed),
        )

    async def _query_sources_concurrently(
        self,
        params: AdapterSearchParams,
    ) -> dict[str, SourceResult]:
        """Query every adapter concurrently and wait for all of them.

        Returns dict mapping source name to result, in registration order.
        A failed source maps to an empty result.
        """

        async def query_single(source_name: str, adapter: EventSourceAdapter) -> SourceResult:
            try:
                result = await adapter.search(params)
                logger.debug(f"Source {source_name} returned {len(result.events)} events")
                return result
            except AdapterConfigError:
                raise
            except AdapterError as e:
                logger.warning(f"Adapter {source_name} failed: {e}")
                return SourceResult.empty()
            except Exception as e:
                logger.error(f"Unexpected error from {source_name}: {e}")
                return SourceResult.empty()

        names = list(self._adapters)
        results = await asyncio.gather(
            *(query_single(name, self._adapters[name]) for name in names)
        )
        return dict(zip(names, results))

    async def get_event_by_id(self, event_id: str) -> Event | None:
        """Look up one event by its composite id (e.g. ``tm_G5v0Z9``).

        The id prefix selects the adapter; the remainder is the source-local
        id. Unknown prefixes and unregistered sources return None.
        """
        prefix, _, source_id = event_id.partition("_")
        source = next((s for s in EventSource if s.id_prefix == prefix), None)
        if source is None or not source_id:
            logger.debug(f"Unrecognized event id: {event_id}")
            return None

        adapter = self._adapters.get(source.value)
        if adapter is None:
            logger.warning(f"No adapter registered for source: {source.value}")
            return None

        return await adapter.get_by_id(source_id)

    async def close(self) -> None:
        """Close every registered adapter."""
        for adapter in self._adapters.values():
            await adapter.close()


__all__ = ["EventAggregator", "compute_fetch_size"]
