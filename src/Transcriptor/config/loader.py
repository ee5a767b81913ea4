"""
Configuration Loading with File/Env/CLI Precedence

Implements three-level config composition:
1. **File level** (YAML/JSON) - base configuration
2. **Environment level** - TRANSCRIPTOR_* prefixed variables override file
3. **CLI level** - ``--set section.field=value`` overrides win

Environment variables use double-underscore notation:
  TRANSCRIPTOR_HTTP__USER_AGENT="Custom UA"  ->  http.user_agent="Custom UA"
  TRANSCRIPTOR_RETRY__MAX_ATTEMPTS=5         ->  retry.max_attempts=5
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import TranscriptorConfig

__all__ = ["ENV_PREFIX", "load_config", "parse_cli_overrides"]

_LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "TRANSCRIPTOR_"


def _read_file(path: Path) -> dict[str, Any]:
    """
    Read YAML or JSON config file.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or malformed
    """
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ConfigurationError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _assign_nested(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    """
    Assign value to nested dict using dot notation.

    Example:
        _assign_nested(data, "http.user_agent", "MyUA")
        -> data["http"]["user_agent"] = "MyUA"
    """
    keys = dotted_key.split(".")
    current = data
    for key in keys[:-1]:
        nested = current.get(key)
        if not isinstance(nested, dict):
            nested = {}
            current[key] = nested
        current = nested
    current[keys[-1]] = value


def _coerce_value(value: str) -> Any:
    """Parse JSON scalars and collections, falling back to the raw string."""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _merge_env_overrides(data: dict[str, Any], env_prefix: str) -> dict[str, Any]:
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(env_prefix):
            continue
        dotted_key = env_key[len(env_prefix) :].lower().replace("__", ".")
        coerced = _coerce_value(env_value)
        _assign_nested(data, dotted_key, coerced)
        _LOGGER.debug(f"Environment override: {env_key} -> {dotted_key} = {coerced!r}")
    return data


def _merge_overrides(data: dict[str, Any], overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Recursively merge ``overrides`` into ``data``; later values win."""
    if not overrides:
        return data
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = _merge_overrides(data[key], value)
        else:
            data[key] = value
        _LOGGER.debug(f"CLI override: {key} = {value!r}")
    return data


def parse_cli_overrides(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Convert ``section.field=value`` strings into a nested override dict.

    Raises:
        ConfigurationError: If a pair has no ``=``
    """
    overrides: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(f"Override must look like section.field=value: {pair!r}")
        _assign_nested(overrides, key.strip(), _coerce_value(value.strip()))
    return overrides


def load_config(
    path: Path | None = None,
    env_prefix: str = ENV_PREFIX,
    cli_overrides: Mapping[str, Any] | None = None,
) -> TranscriptorConfig:
    """
    Load TranscriptorConfig from file, environment, and CLI with proper precedence.

    **Precedence:** defaults < file < environment < CLI

    Raises:
        ConfigurationError: If the file cannot be read or the result is invalid
    """
    data: dict[str, Any] = {}
    if path is not None:
        data = _read_file(path)
        _LOGGER.debug(f"Loaded config from {path}")

    data = _merge_env_overrides(data, env_prefix)
    data = _merge_overrides(data, cli_overrides)

    try:
        config = TranscriptorConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e

    _LOGGER.debug(f"Configuration validated. Config hash: {config.config_hash()[:8]}...")
    return config
