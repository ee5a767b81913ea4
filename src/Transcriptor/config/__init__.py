"""Configuration models, layered loading and credentials."""

from .credentials import Credentials, load_api_key, validate_api_key
from .loader import load_config, parse_cli_overrides
from .models import (
    CacheSettings,
    HttpSettings,
    LoggingSettings,
    RetrySettings,
    StorageSettings,
    TranscriptorConfig,
)

__all__ = [
    "CacheSettings",
    "Credentials",
    "HttpSettings",
    "LoggingSettings",
    "RetrySettings",
    "StorageSettings",
    "TranscriptorConfig",
    "load_api_key",
    "load_config",
    "parse_cli_overrides",
    "validate_api_key",
]
