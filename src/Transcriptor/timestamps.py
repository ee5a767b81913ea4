"""Acquisition timestamps.

Entries record ``acquired_at`` as ``YYMMDDTHHMM`` in local time. The format
is fixed width so plain string comparison orders entries chronologically.
The obsolete schema stored ``YYYY-MM-DD`` dates, converted here during
migration.
"""

from __future__ import annotations

import re
from datetime import datetime

__all__ = [
    "TIMESTAMP_FORMAT",
    "generate_acquired_at",
    "is_valid_timestamp",
    "is_legacy_date",
    "convert_legacy_date",
    "convert_date_to_prefix",
    "extract_date_prefix",
]

TIMESTAMP_FORMAT = "%y%m%dT%H%M"
DEFAULT_TIME = "0000"

TIMESTAMP_PATTERN = re.compile(r"^\d{6}T\d{4}$")
LEGACY_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def generate_acquired_at(now: datetime | None = None) -> str:
    """Format ``now`` (default: current local time) as ``YYMMDDTHHMM``."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def is_valid_timestamp(value: object) -> bool:
    """Check format and calendar validity of an ``acquired_at`` value."""
    if not isinstance(value, str) or not TIMESTAMP_PATTERN.match(value):
        return False
    try:
        datetime.strptime(value, TIMESTAMP_FORMAT)
    except ValueError:
        return False
    return True


def is_legacy_date(value: object) -> bool:
    return isinstance(value, str) and bool(LEGACY_DATE_PATTERN.match(value))


def _parse_legacy_date(value: str) -> datetime:
    if not is_legacy_date(value):
        raise ValueError(f"Expected YYYY-MM-DD date, got {value!r}")
    return datetime.strptime(value, "%Y-%m-%d")


def convert_legacy_date(value: str) -> str:
    """Convert ``YYYY-MM-DD`` to ``YYMMDDT0000``.

    Raises:
        ValueError: If ``value`` is not a real calendar date in that format.
    """
    return _parse_legacy_date(value).strftime("%y%m%d") + "T" + DEFAULT_TIME


def convert_date_to_prefix(value: str) -> str:
    """Convert ``YYYY-MM-DD`` to the ``YYMMDD`` prefix used for comparisons."""
    return _parse_legacy_date(value).strftime("%y%m%d")


def extract_date_prefix(timestamp: str) -> str:
    """Return the ``YYMMDD`` part of an ``acquired_at`` value."""
    if not is_valid_timestamp(timestamp):
        raise ValueError(f"Invalid timestamp: {timestamp!r}")
    return timestamp[:6]
