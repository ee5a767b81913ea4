"""Structural rules for the registry file.

The registry maps 11-character identifiers to entries with exactly the
fields ``acquired_at``, ``channel`` and ``title``.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..errors import SchemaViolationError
from ..identifiers import is_valid_identifier
from ..timestamps import is_valid_timestamp

__all__ = [
    "Registry",
    "Entry",
    "ENTRY_FIELDS",
    "validate_entry",
    "validate_registry",
    "ensure_valid",
]

Entry = Dict[str, Any]
Registry = Dict[str, Entry]

ENTRY_FIELDS = frozenset({"acquired_at", "channel", "title"})
MAX_CHANNEL_LENGTH = 200
MAX_TITLE_LENGTH = 500


def _check_text(identifier: str, field: str, value: Any, limit: int) -> List[str]:
    if not isinstance(value, str) or not value.strip():
        return [f"{identifier}: {field} must be a non-empty string"]
    if len(value) > limit:
        return [f"{identifier}: {field} exceeds {limit} characters"]
    return []


def validate_entry(identifier: Any, entry: Any) -> List[str]:
    """Return a list of problems with one entry (empty when valid)."""
    if not is_valid_identifier(identifier):
        return [f"Invalid video ID: {identifier!r}"]
    if not isinstance(entry, dict):
        return [f"{identifier}: entry must be an object"]

    errors: List[str] = []
    keys = set(entry)
    missing = sorted(ENTRY_FIELDS - keys)
    extra = sorted(keys - ENTRY_FIELDS)
    if missing:
        errors.append(f"{identifier}: missing field(s) {', '.join(missing)}")
    if extra:
        errors.append(f"{identifier}: unexpected field(s) {', '.join(extra)}")

    if "acquired_at" in entry and not is_valid_timestamp(entry["acquired_at"]):
        errors.append(f"{identifier}: acquired_at must be YYMMDDTHHMM, got {entry['acquired_at']!r}")
    if "channel" in entry:
        errors.extend(_check_text(identifier, "channel", entry["channel"], MAX_CHANNEL_LENGTH))
    if "title" in entry:
        errors.extend(_check_text(identifier, "title", entry["title"], MAX_TITLE_LENGTH))
    return errors


def validate_registry(data: Any) -> List[str]:
    if not isinstance(data, dict):
        return ["Registry must be a JSON object"]
    errors: List[str] = []
    for identifier, entry in data.items():
        errors.extend(validate_entry(identifier, entry))
    return errors


def ensure_valid(data: Any, context: str = "Registry") -> Registry:
    """Raise :class:`SchemaViolationError` unless ``data`` is a valid registry."""
    errors = validate_registry(data)
    if errors:
        preview = "; ".join(errors[:3])
        more = f" (+{len(errors) - 3} more)" if len(errors) > 3 else ""
        raise SchemaViolationError(f"{context} failed validation: {preview}{more}", errors=errors)
    return data
