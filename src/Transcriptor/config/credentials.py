"""API credential loading and shape validation."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigurationError

__all__ = ["MAX_API_KEY_LENGTH", "Credentials", "validate_api_key", "load_api_key"]

LOGGER = logging.getLogger(__name__)

MAX_API_KEY_LENGTH = 500


class Credentials(BaseSettings):
    """Reads ``SCRAPE_CREATORS_API_KEY`` from the environment or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    api_key: Optional[SecretStr] = Field(
        default=None,
        alias="SCRAPE_CREATORS_API_KEY",
        description="API key for the transcript service",
    )


def validate_api_key(value: object) -> str:
    """Check that ``value`` looks like a usable API key and return it stripped.

    Raises:
        ConfigurationError: If the key is empty, too long, or contains
            control characters.
    """
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError("API key is missing. Set SCRAPE_CREATORS_API_KEY in .env")
    key = value.strip()
    if len(key) > MAX_API_KEY_LENGTH:
        raise ConfigurationError(f"API key exceeds {MAX_API_KEY_LENGTH} characters")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in key):
        raise ConfigurationError("API key contains control characters")
    return key


def load_api_key(credentials: Credentials | None = None) -> str:
    """Load and validate the API key from the environment."""
    creds = credentials or Credentials()
    key = validate_api_key(creds.api_key)
    LOGGER.debug("API key loaded from environment")
    return key
