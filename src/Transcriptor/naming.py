"""Title normalization and artifact file naming."""

from __future__ import annotations

import re
import unicodedata

__all__ = [
    "DEFAULT_PREFIX",
    "UNTITLED",
    "MAX_TITLE_LENGTH",
    "normalize_title",
    "artifact_filename",
    "artifact_glob_patterns",
    "legacy_filename_pattern",
]

DEFAULT_PREFIX = "tr"
UNTITLED = "untitled"
MAX_TITLE_LENGTH = 100

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9_-]+")
_REPEATED_SEPARATOR = re.compile(r"_+")


def normalize_title(value: str | None) -> str:
    """Normalize a title or channel name for use in filenames and entries.

    Accents are stripped, text is lowercased, whitespace runs become ``_``,
    anything other than ``a-z``, ``0-9``, ``_`` and ``-`` is dropped, repeated
    separators collapse, and the result is trimmed to 100 characters.

    >>> normalize_title("My Video!")
    'my_video'
    >>> normalize_title("   ")
    'untitled'
    """
    if not value:
        return UNTITLED
    text = unicodedata.normalize("NFKD", value)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.lower()
    text = _WHITESPACE.sub("_", text)
    text = _DISALLOWED.sub("", text)
    text = _REPEATED_SEPARATOR.sub("_", text).strip("_")
    text = text[:MAX_TITLE_LENGTH].rstrip("_")
    return text or UNTITLED


def artifact_filename(identifier: str, title: str | None = None, prefix: str = DEFAULT_PREFIX) -> str:
    """Build ``<prefix>_<id>_<title>.md`` (or ``<prefix>_<id>.md`` without a title)."""
    if title:
        return f"{prefix}_{identifier}_{title}.md"
    return f"{prefix}_{identifier}.md"


def artifact_glob_patterns(identifier: str, prefix: str = DEFAULT_PREFIX) -> tuple[str, str]:
    return (f"{prefix}_{identifier}.md", f"{prefix}_{identifier}_*.md")


def legacy_filename_pattern() -> re.Pattern[str]:
    """Match unprefixed artifact names ``<id>.md`` and ``<id>_<title>.md``."""
    return re.compile(r"^([A-Za-z0-9_-]{11})(_.*)?\.md$")
