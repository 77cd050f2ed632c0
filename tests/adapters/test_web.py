"""Tests for the web search adapter."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest

from marquee.adapters.base import AdapterAuthError, AdapterParseError, AdapterTimeoutError
from marquee.adapters.web import (
    EXTRACT_TOOL,
    ExtractedEvent,
    WebSearchAdapter,
    map_web_event,
)
from marquee.config import Settings
from marquee.models import AdapterSearchParams, EventSource, EventType

ANTHROPIC_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")

BLUE_NOTE = {
    "name": "Late Set: Ron Carter",
    "venue": "Blue Note",
    "city": "New York",
    "state": "NY",
    "latitude": 40.7309,
    "longitude": -74.0006,
    "date": "2025-06-01",
    "time": "22:30:00",
    "eventType": "music",
    "url": "https://www.bluenotejazz.com/nyc/shows/ron-carter",
    "priceMin": 35,
    "priceMax": 55,
}


def search_params(**overrides) -> AdapterSearchParams:
    values = {
        "latitude": 40.7505,
        "longitude": -73.9934,
        "radius": 10,
        "keyword": "jazz",
        "size": 20,
    }
    values.update(overrides)
    return AdapterSearchParams(**values)


def tool_response(events: list[dict]) -> SimpleNamespace:
    return SimpleNamespace(
        content=[
            SimpleNamespace(type="server_tool_use", name="web_search", input={"query": "jazz"}),
            SimpleNamespace(type="text", text="Here is what I found."),
            SimpleNamespace(type="tool_use", name="extract_events", input={"events": events}),
        ]
    )


def mock_client(response: object = None, side_effect: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=response, side_effect=side_effect)
    client.close = AsyncMock()
    return client


def adapter_with_client(settings: Settings, client: MagicMock) -> WebSearchAdapter:
    adapter = WebSearchAdapter(settings)
    adapter._client = client
    return adapter


class TestMapWebEvent:
    def test_maps_full_event(self) -> None:
        event = map_web_event(ExtractedEvent.model_validate(BLUE_NOTE))

        assert event is not None
        assert event.source == EventSource.WEB
        assert event.id == f"web_{event.source_id}"
        assert len(event.source_id) == 12
        assert event.event_type == EventType.MUSIC
        assert event.start_time == "22:30:00"
        assert event.venue.name == "Blue Note"
        assert event.price_range is not None
        assert event.price_range.min == 35
        assert event.popularity is None

    def test_source_id_is_stable(self) -> None:
        first = map_web_event(ExtractedEvent.model_validate(BLUE_NOTE))
        second = map_web_event(ExtractedEvent.model_validate(dict(BLUE_NOTE)))

        assert first is not None and second is not None
        assert first.id == second.id

    @pytest.mark.parametrize("missing", ["name", "venue", "date", "url", "latitude", "longitude"])
    def test_missing_required_field_dropped(self, missing: str) -> None:
        raw = {k: v for k, v in BLUE_NOTE.items() if k != missing}

        assert map_web_event(ExtractedEvent.model_validate(raw)) is None

    def test_unknown_event_type_maps_to_other(self) -> None:
        event = map_web_event(ExtractedEvent.model_validate({**BLUE_NOTE, "eventType": "gala"}))

        assert event is not None
        assert event.event_type == EventType.OTHER


class TestWebSearchAdapter:
    def test_source_name(self, settings: Settings) -> None:
        assert WebSearchAdapter(settings).source_name == "web"

    def test_extract_tool_requires_coordinates(self) -> None:
        required = EXTRACT_TOOL["input_schema"]["properties"]["events"]["items"]["required"]

        assert "latitude" in required
        assert "longitude" in required

    @pytest.mark.asyncio
    async def test_search_success(self, settings: Settings) -> None:
        """Incomplete and repeated records are dropped."""
        no_coordinates = {k: v for k, v in BLUE_NOTE.items() if k != "latitude"}
        other = {**BLUE_NOTE, "name": "Early Set: Ron Carter", "time": "20:00:00"}
        client = mock_client(tool_response([BLUE_NOTE, no_coordinates, BLUE_NOTE, other]))
        adapter = adapter_with_client(settings, client)

        result = await adapter.search(search_params())

        assert [e.name for e in result.events] == ["Late Set: Ron Carter", "Early Set: Ron Carter"]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_search_request_shape(self, settings: Settings) -> None:
        client = mock_client(tool_response([]))
        adapter = adapter_with_client(settings, client)

        await adapter.search(search_params(event_type=EventType.MUSIC))

        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["model"] == settings.web_search_model
        assert kwargs["tools"][0]["name"] == "extract_events"
        assert kwargs["tools"][1]["type"] == "web_search_20250305"
        assert kwargs["tools"][1]["max_uses"] == settings.web_search_max_uses
        prompt = kwargs["messages"][0]["content"]
        assert '"jazz"' in prompt
        assert "music" in prompt

    @pytest.mark.asyncio
    async def test_search_truncates_to_size(self, settings: Settings) -> None:
        events = [{**BLUE_NOTE, "name": f"Set {i}"} for i in range(5)]
        adapter = adapter_with_client(settings, mock_client(tool_response(events)))

        result = await adapter.search(search_params(size=3))

        assert len(result.events) == 3

    @pytest.mark.asyncio
    async def test_response_without_tool_use_is_empty(self, settings: Settings) -> None:
        response = SimpleNamespace(content=[SimpleNamespace(type="text", text="Nothing found")])
        adapter = adapter_with_client(settings, mock_client(response))

        result = await adapter.search(search_params())

        assert result.events == []

    @pytest.mark.asyncio
    async def test_no_api_key_returns_empty(self, bare_settings: Settings) -> None:
        client = mock_client(tool_response([BLUE_NOTE]))
        adapter = adapter_with_client(bare_settings, client)

        result = await adapter.search(search_params())

        assert result.events == []
        client.messages.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_keyword_returns_empty(self, settings: Settings) -> None:
        client = mock_client(tool_response([BLUE_NOTE]))
        adapter = adapter_with_client(settings, client)

        result = await adapter.search(search_params(keyword=None))

        assert result.events == []
        client.messages.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_later_pages_are_empty(self, settings: Settings) -> None:
        client = mock_client(tool_response([BLUE_NOTE]))
        adapter = adapter_with_client(settings, client)

        result = await adapter.search(search_params(page=1))

        assert result.events == []
        client.messages.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_raises_error(self, settings: Settings) -> None:
        client = mock_client(side_effect=anthropic.APITimeoutError(request=ANTHROPIC_REQUEST))
        adapter = adapter_with_client(settings, client)

        with pytest.raises(AdapterTimeoutError) as exc_info:
            await adapter.search(search_params())

        assert exc_info.value.source_name == "web"
        assert exc_info.value.timeout_seconds == settings.web_search_timeout

    @pytest.mark.asyncio
    async def test_rejected_key_raises_auth_error(self, settings: Settings) -> None:
        error = anthropic.AuthenticationError(
            "invalid x-api-key",
            response=httpx.Response(401, request=ANTHROPIC_REQUEST),
            body=None,
        )
        adapter = adapter_with_client(settings, mock_client(side_effect=error))

        with pytest.raises(AdapterAuthError):
            await adapter.search(search_params())

    @pytest.mark.asyncio
    async def test_connection_error_raises_parse_error(self, settings: Settings) -> None:
        error = anthropic.APIConnectionError(request=ANTHROPIC_REQUEST)
        adapter = adapter_with_client(settings, mock_client(side_effect=error))

        with pytest.raises(AdapterParseError):
            await adapter.search(search_params())

    @pytest.mark.asyncio
    async def test_get_by_id_is_unsupported(self, settings: Settings) -> None:
        assert await WebSearchAdapter(settings).get_by_id("abc123") is None

    @pytest.mark.asyncio
    async def test_health_check_reflects_credentials(
        self, settings: Settings, bare_settings: Settings
    ) -> None:
        assert await WebSearchAdapter(settings).health_check() is True
        assert await WebSearchAdapter(bare_settings).health_check() is False

    @pytest.mark.asyncio
    async def test_close_releases_client(self, settings: Settings) -> None:
        client = mock_client()
        adapter = adapter_with_client(settings, client)

        await adapter.close()

        client.close.assert_awaited_once()
        assert adapter._client is None
