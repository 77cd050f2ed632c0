"""Tests for the multi-source EventAggregator."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from marquee.adapters.base import (
    AdapterConfigError,
    AdapterParseError,
    AdapterTimeoutError,
)
from marquee.aggregation.aggregator import EventAggregator, compute_fetch_size
from marquee.config import Settings
from marquee.models import (
    AdapterSearchParams,
    Event,
    EventSource,
    EventType,
    SearchParams,
    SourceResult,
)


def mock_adapter(
    name: str,
    events: list[Event] | None = None,
    side_effect: Exception | None = None,
) -> MagicMock:
    adapter = MagicMock()
    adapter.source_name = name
    adapter.search = AsyncMock(
        return_value=SourceResult(events=events or [], total=len(events or [])),
        side_effect=side_effect,
    )
    adapter.get_by_id = AsyncMock(return_value=None)
    adapter.close = AsyncMock()
    return adapter


class TestComputeFetchSize:
    def test_first_page(self) -> None:
        assert compute_fetch_size(0, 20) == 20

    def test_covers_requested_page(self) -> None:
        """Page 2 of size 20 needs the first 60 records of every source."""
        assert compute_fetch_size(2, 20) == 60

    def test_capped(self) -> None:
        assert compute_fetch_size(20, 20) == 200
        assert compute_fetch_size(3, 20, max_fetch_size=50) == 50


class TestSearchAllSources:
    """Tests for EventAggregator.search_all_sources."""

    @pytest.mark.asyncio
    async def test_every_source_fetched_from_first_page(self, settings: Settings) -> None:
        tm = mock_adapter("ticketmaster")
        sg = mock_adapter("seatgeek")
        aggregator = EventAggregator({"ticketmaster": tm, "seatgeek": sg}, settings)

        await aggregator.search_all_sources(
            SearchParams(
                latitude=40.75,
                longitude=-73.99,
                radius=15,
                keyword="jazz",
                event_type=EventType.MUSIC,
                page=2,
                size=20,
            )
        )

        for adapter in (tm, sg):
            adapter.search.assert_awaited_once()
            sent: AdapterSearchParams = adapter.search.await_args.args[0]
            assert sent.page == 0
            assert sent.size == 60
            assert sent.radius == 15
            assert sent.keyword == "jazz"
            assert sent.event_type == EventType.MUSIC

    @pytest.mark.asyncio
    async def test_fetch_size_respects_configured_cap(self, settings: Settings) -> None:
        settings.max_fetch_size = 50
        tm = mock_adapter("ticketmaster")
        aggregator = EventAggregator({"ticketmaster": tm}, settings)

        await aggregator.search_all_sources(
            SearchParams(latitude=40.75, longitude=-73.99, page=4, size=20)
        )

        assert tm.search.await_args.args[0].size == 50

    @pytest.mark.asyncio
    async def test_merges_dedups_and_counts(
        self, settings: Settings, make_event: Callable[..., Event]
    ) -> None:
        tm_legend = make_event("John Legend Live", source=EventSource.TICKETMASTER)
        tm_hamilton = make_event("Hamilton", start_date="2025-06-02")
        sg_legend = make_event("Live: John Legend", source=EventSource.SEATGEEK)
        sg_knicks = make_event(
            "Knicks vs Celtics", source=EventSource.SEATGEEK, start_date="2025-06-03"
        )
        aggregator = EventAggregator(
            {
                "ticketmaster": mock_adapter("ticketmaster", [tm_legend, tm_hamilton]),
                "seatgeek": mock_adapter("seatgeek", [sg_legend, sg_knicks]),
            },
            settings,
        )

        result = await aggregator.search_all_sources(SearchParams(latitude=40.75, longitude=-73.99))

        assert result.events == [tm_legend, tm_hamilton, sg_knicks]
        assert result.total == 3
        assert result.sources.counts == {"ticketmaster": 2, "seatgeek": 2}
        assert result.sources.duplicates_removed == 1

    @pytest.mark.asyncio
    async def test_total_is_deduplicated_count_not_page_size(
        self, settings: Settings, make_event: Callable[..., Event]
    ) -> None:
        events = [make_event(f"Show {i}", start_date=f"2025-06-{i + 1:02d}") for i in range(25)]
        aggregator = EventAggregator(
            {"ticketmaster": mock_adapter("ticketmaster", events)}, settings
        )

        result = await aggregator.search_all_sources(
            SearchParams(latitude=40.75, longitude=-73.99, page=1, size=10)
        )

        assert result.total == 25
        assert [e.name for e in result.events] == [f"Show {i}" for i in range(10, 20)]
        assert result.total_pages(10) == 3

    @pytest.mark.asyncio
    async def test_sorted_before_pagination(
        self, settings: Settings, make_event: Callable[..., Event]
    ) -> None:
        late = make_event("Late", start_date="2025-06-05")
        early = make_event("Early", source=EventSource.SEATGEEK, start_date="2025-06-01")
        aggregator = EventAggregator(
            {
                "ticketmaster": mock_adapter("ticketmaster", [late]),
                "seatgeek": mock_adapter("seatgeek", [early]),
            },
            settings,
        )

        result = await aggregator.search_all_sources(
            SearchParams(latitude=40.75, longitude=-73.99, size=1)
        )

        assert result.events == [early]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_failed_source_is_skipped(
        self, settings: Settings, make_event: Callable[..., Event]
    ) -> None:
        """A source that times out contributes nothing; the others still answer."""
        event = make_event("Yankees vs Red Sox", source=EventSource.SEATGEEK)
        aggregator = EventAggregator(
            {
                "ticketmaster": mock_adapter(
                    "ticketmaster", side_effect=AdapterTimeoutError("ticketmaster", 10.0)
                ),
                "seatgeek": mock_adapter("seatgeek", [event]),
                "web": mock_adapter("web", side_effect=AdapterParseError("web", "HTTP 500")),
            },
            settings,
        )

        result = await aggregator.search_all_sources(SearchParams(latitude=40.75, longitude=-73.99))

        assert result.events == [event]
        assert result.sources.counts == {"ticketmaster": 0, "seatgeek": 1, "web": 0}

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_skipped(
        self, settings: Settings, make_event: Callable[..., Event]
    ) -> None:
        event = make_event("Hamilton")
        aggregator = EventAggregator(
            {
                "ticketmaster": mock_adapter("ticketmaster", [event]),
                "seatgeek": mock_adapter("seatgeek", side_effect=RuntimeError("boom")),
            },
            settings,
        )

        result = await aggregator.search_all_sources(SearchParams(latitude=40.75, longitude=-73.99))

        assert result.events == [event]

    @pytest.mark.asyncio
    async def test_config_error_propagates(self, settings: Settings) -> None:
        aggregator = EventAggregator(
            {
                "ticketmaster": mock_adapter(
                    "ticketmaster", side_effect=AdapterConfigError("ticketmaster", "no key")
                ),
                "seatgeek": mock_adapter("seatgeek"),
            },
            settings,
        )

        with pytest.raises(AdapterConfigError):
            await aggregator.search_all_sources(SearchParams(latitude=40.75, longitude=-73.99))

    @pytest.mark.asyncio
    async def test_all_sources_empty(self, settings: Settings) -> None:
        aggregator = EventAggregator(
            {"ticketmaster": mock_adapter("ticketmaster"), "seatgeek": mock_adapter("seatgeek")},
            settings,
        )

        result = await aggregator.search_all_sources(SearchParams(latitude=40.75, longitude=-73.99))

        assert result.events == []
        assert result.total == 0
        assert result.sources.duplicates_removed == 0

    @pytest.mark.asyncio
    async def test_no_adapters(self, settings: Settings) -> None:
        result = await EventAggregator({}, settings).search_all_sources(
            SearchParams(latitude=40.75, longitude=-73.99)
        )

        assert result.events == []
        assert result.sources.counts == {}


class TestGetEventById:
    @pytest.mark.asyncio
    async def test_routes_by_prefix(
        self, settings: Settings, make_event: Callable[..., Event]
    ) -> None:
        event = make_event("Yankees vs Red Sox", source=EventSource.SEATGEEK, source_id="5512346")
        tm = mock_adapter("ticketmaster")
        sg = mock_adapter("seatgeek")
        sg.get_by_id.return_value = event
        aggregator = EventAggregator({"ticketmaster": tm, "seatgeek": sg}, settings)

        found = await aggregator.get_event_by_id("sg_5512346")

        assert found is event
        sg.get_by_id.assert_awaited_once_with("5512346")
        tm.get_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_keeps_underscores_in_source_id(self, settings: Settings) -> None:
        tm = mock_adapter("ticketmaster")
        aggregator = EventAggregator({"ticketmaster": tm}, settings)

        await aggregator.get_event_by_id("tm_vv1A_7Zf")

        tm.get_by_id.assert_awaited_once_with("vv1A_7Zf")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("event_id", ["xx_123", "123", "tm_", ""])
    async def test_unrecognized_ids(self, settings: Settings, event_id: str) -> None:
        tm = mock_adapter("ticketmaster")
        aggregator = EventAggregator({"ticketmaster": tm}, settings)

        assert await aggregator.get_event_by_id(event_id) is None
        tm.get_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unregistered_source(self, settings: Settings) -> None:
        aggregator = EventAggregator({"ticketmaster": mock_adapter("ticketmaster")}, settings)

        assert await aggregator.get_event_by_id("sg_5512346") is None


class TestAggregatorLifecycle:
    def test_adapters_property_is_a_copy(self, settings: Settings) -> None:
        aggregator = EventAggregator({"ticketmaster": mock_adapter("ticketmaster")}, settings)

        aggregator.adapters.clear()

        assert list(aggregator.adapters) == ["ticketmaster"]

    @pytest.mark.asyncio
    async def test_close_closes_every_adapter(self, settings: Settings) -> None:
        tm = mock_adapter("ticketmaster")
        sg = mock_adapter("seatgeek")
        aggregator = EventAggregator({"ticketmaster": tm, "seatgeek": sg}, settings)

        await aggregator.close()

        tm.close.assert_awaited_once()
        sg.close.assert_awaited_once()
