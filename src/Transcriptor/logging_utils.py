"""Logging configuration for Transcriptor.

A console handler prints ``LEVEL: message`` lines. When a JSON log file is
configured, a rotating handler additionally writes one masked JSON object
per record. Handlers installed here are tagged so calling
:func:`setup_logging` again replaces them instead of stacking duplicates.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging", "ROOT_LOGGER_NAME"]

ROOT_LOGGER_NAME = "Transcriptor"
_MANAGED_ATTR = "_transcriptor_managed"
_SENSITIVE_KEYS = {"authorization", "api_key", "apikey", "x-api-key", "token", "secret", "password"}
_MASK = "***masked***"


def mask_sensitive_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``payload`` with credential-like fields masked."""

    def _mask_value(value: Any, key_hint: Optional[str] = None) -> Any:
        if key_hint in _SENSITIVE_KEYS:
            return _MASK
        if isinstance(value, dict):
            return {k: _mask_value(v, str(k).lower()) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(_mask_value(item) for item in value)
        return value

    return {key: _mask_value(value, key.lower()) for key, value in payload.items()}


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra_fields") and isinstance(record.extra_fields, dict):
            payload.update(record.extra_fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def setup_logging(
    level: str = "INFO",
    json_log_file: Optional[Path] = None,
    *,
    max_log_size_mb: float = 5.0,
    propagate: bool = False,
) -> logging.Logger:
    """Configure the ``Transcriptor`` logger hierarchy."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_ATTR, False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.StreamHandler) and getattr(handler, "stream", None) in (
                sys.stdout,
                sys.stderr,
            ):
                continue
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    setattr(stream_handler, _MANAGED_ATTR, True)
    logger.addHandler(stream_handler)

    if json_log_file is not None:
        path = json_log_file.expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(JSONFormatter())
        # The JSON sidecar always records DEBUG detail regardless of console level.
        file_handler.setLevel(logging.DEBUG)
        setattr(file_handler, _MANAGED_ATTR, True)
        logger.addHandler(file_handler)
        stream_handler.setLevel(logger.level)
        logger.setLevel(logging.DEBUG)

    logger.propagate = propagate
    return logger
