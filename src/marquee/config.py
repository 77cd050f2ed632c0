"""Configuration and logging setup for Marquee."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Use tomllib for Python 3.11+, tomli for 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


# Default config file location
CONFIG_FILE_PATH = Path.home() / ".config" / "marquee" / "config.toml"

DEFAULT_MAX_FETCH_SIZE = 200

_CREDENTIAL_FIELDS = ("ticketmaster_api_key", "seatgeek_client_id", "anthropic_api_key")

# Error messages for missing credentials
_CREDENTIAL_ERROR_MESSAGES: dict[str, str] = {
    "ticketmaster": (
        "Ticketmaster requires an API key. "
        "Set MARQUEE_TICKETMASTER_API_KEY environment variable, "
        "or configure ticketmaster_api_key in ~/.config/marquee/config.toml"
    ),
    "seatgeek": (
        "SeatGeek requires a client id. "
        "Set MARQUEE_SEATGEEK_CLIENT_ID environment variable, "
        "or configure seatgeek_client_id in ~/.config/marquee/config.toml"
    ),
    "web": (
        "Web search requires an Anthropic API key. "
        "Set MARQUEE_ANTHROPIC_API_KEY environment variable, "
        "or configure anthropic_api_key in ~/.config/marquee/config.toml"
    ),
}


def _load_config_file(config_path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file if it exists.

    Args:
        config_path: Path to config file. Defaults to ~/.config/marquee/config.toml

    Returns:
        Dictionary of configuration values, empty dict if file doesn't exist
    """
    path = config_path or CONFIG_FILE_PATH
    if not path.exists():
        return {}

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        # Config file is optional
        logging.getLogger(__name__).warning(
            "Failed to load config file %s: %s", path, type(e).__name__
        )
        return {}


class Settings(BaseSettings):
    """Marquee settings loaded from environment variables.

    Settings are loaded in priority order:
    1. Environment variables (highest priority)
    2. .env file
    3. ~/.config/marquee/config.toml (lowest priority)

    Credentials are stored as SecretStr so they never show up in logs,
    repr, or error messages.
    """

    model_config = SettingsConfigDict(
        env_prefix="MARQUEE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Source credentials - NEVER log these
    ticketmaster_api_key: SecretStr | None = None
    seatgeek_client_id: SecretStr | None = None
    anthropic_api_key: SecretStr | None = None

    # Web search
    web_search_model: str = "claude-sonnet-4-5"
    web_search_max_uses: int = 5

    # Timeouts (seconds)
    request_timeout: float = 10.0
    web_search_timeout: float = 60.0

    # Aggregation
    max_fetch_size: int = DEFAULT_MAX_FETCH_SIZE

    # Logging
    log_level: str = "INFO"

    @model_validator(mode="before")
    @classmethod
    def load_from_config_file(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Load values from config file for any fields not set via env vars."""
        config_data = _load_config_file()

        if not config_data:
            return values

        # Config file uses the same keys as the settings fields
        for key in cls.model_fields:
            if key not in values or values[key] is None:
                if key in config_data:
                    values[key] = config_data[key]

        return values

    def has_ticketmaster_credentials(self) -> bool:
        """Check if a Ticketmaster API key is configured."""
        return bool(self.ticketmaster_api_key)

    def has_seatgeek_credentials(self) -> bool:
        """Check if a SeatGeek client id is configured."""
        return bool(self.seatgeek_client_id)

    def has_anthropic_credentials(self) -> bool:
        """Check if an Anthropic API key is configured."""
        return bool(self.anthropic_api_key)

    @staticmethod
    def get_credential_error_message(source: str) -> str:
        """Get a helpful error message for missing credentials.

        Args:
            source: The source name (ticketmaster, seatgeek, web)

        Returns:
            Human-readable message explaining how to configure credentials
        """
        source_lower = source.lower()
        if source_lower in _CREDENTIAL_ERROR_MESSAGES:
            return _CREDENTIAL_ERROR_MESSAGES[source_lower]
        return f"Unknown event source: {source}. No credential configuration available."

    def __repr__(self) -> str:
        """Safe repr that masks credential values."""
        fields = []
        for name in type(self).model_fields:
            value = getattr(self, name)
            if name in _CREDENTIAL_FIELDS:
                if value is not None:
                    fields.append(f"{name}=SecretStr('**********')")
                else:
                    fields.append(f"{name}=None")
            else:
                fields.append(f"{name}={value!r}")
        return f"Settings({', '.join(fields)})"

    def __str__(self) -> str:
        return self.__repr__()


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the singleton Settings instance.

    Primarily used for testing to ensure fresh settings are loaded.
    """
    global _settings
    _settings = None


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging for Marquee."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request URL at INFO, including query-string keys
    logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    "CONFIG_FILE_PATH",
    "DEFAULT_MAX_FETCH_SIZE",
]
