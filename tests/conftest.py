"""Shared pytest fixtures for Marquee tests."""

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from marquee.config import Settings, reset_settings
from marquee.models import Event, EventSource, Venue

_MARQUEE_ENV_VARS = (
    "MARQUEE_TICKETMASTER_API_KEY",
    "MARQUEE_SEATGEEK_CLIENT_ID",
    "MARQUEE_ANTHROPIC_API_KEY",
    "MARQUEE_MAX_FETCH_SIZE",
    "MARQUEE_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep every test away from the real config file, env and settings singleton."""
    for name in _MARQUEE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("marquee.config.CONFIG_FILE_PATH", tmp_path / "no-config.toml")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    """Settings with every source credential configured."""
    return Settings(
        ticketmaster_api_key="tm-test-key",
        seatgeek_client_id="sg-test-id",
        anthropic_api_key="sk-ant-test",
    )


@pytest.fixture
def bare_settings() -> Settings:
    """Settings with no source credentials."""
    return Settings()


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory for canonical events at Madison Square Garden unless overridden."""

    def _make(
        name: str = "John Legend",
        source: EventSource = EventSource.TICKETMASTER,
        source_id: str | None = None,
        start_date: str = "2025-06-01",
        venue_name: str = "Madison Square Garden",
        latitude: float = 40.7505,
        longitude: float = -73.9934,
        **overrides: Any,
    ) -> Event:
        sid = source_id or f"{name.lower().replace(' ', '-')}-{start_date}"
        return Event(
            id=source.compose_id(sid),
            source=source,
            source_id=sid,
            name=name,
            start_date=start_date,
            venue=Venue(
                name=venue_name,
                city="New York",
                state="NY",
                latitude=latitude,
                longitude=longitude,
            ),
            url=f"https://example.com/events/{sid}",
            **overrides,
        )

    return _make
