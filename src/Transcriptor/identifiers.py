"""Video identifier validation and URL extraction.

Identifiers are 11-character tokens of letters, digits, underscore and dash.
This module validates them, builds the locator URLs handed to remote
services, and reads the batch input file (one URL per line).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import ErrorKind, TranscriptorError

__all__ = [
    "IDENTIFIER_PATTERN",
    "InputFileError",
    "ParseStats",
    "is_valid_identifier",
    "validate_locator",
    "build_watch_url",
    "build_short_url",
    "extract_identifier",
    "parse_input_text",
    "parse_input_file",
]

LOGGER = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")
LOCATOR_PATTERN = re.compile(r"^https?://(www\.)?(youtube\.com|youtu\.be)/", re.IGNORECASE)
MAX_LOCATOR_LENGTH = 2083

MAX_INPUT_FILE_BYTES = 10 * 1024 * 1024
MAX_INPUT_LINE_LENGTH = 10 * 1024
MAX_INPUT_URLS = 1000
NON_PRINTABLE_THRESHOLD = 0.1

_URL_PATTERNS = (
    re.compile(r"(?:https?://)?(?:www\.|m\.)?youtube\.com/watch\?(?:[^\s#]*&)?v=([A-Za-z0-9_-]{11})"),
    re.compile(r"(?:https?://)?youtu\.be/([A-Za-z0-9_-]{11})"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/embed/([A-Za-z0-9_-]{11})"),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/v/([A-Za-z0-9_-]{11})"),
)


class InputFileError(TranscriptorError):
    """The batch input file is missing, oversized, or not text."""

    default_kind = ErrorKind.VALIDATION


@dataclass(frozen=True)
class ParseStats:
    total_lines: int = 0
    skipped_lines: int = 0
    invalid_lines: int = 0
    duplicates: int = 0
    truncated: bool = False


def is_valid_identifier(value: object) -> bool:
    """Return True when ``value`` is an 11-character identifier string."""
    return isinstance(value, str) and bool(IDENTIFIER_PATTERN.match(value))


def validate_locator(locator: object) -> str:
    """Validate the URL passed to the transcript service.

    Raises:
        TranscriptorError: With kind ``validation`` when the locator is empty,
            too long, or not a YouTube URL.
    """
    if not isinstance(locator, str) or not locator.strip():
        raise TranscriptorError("Video URL must be a non-empty string", kind=ErrorKind.VALIDATION)
    if len(locator) > MAX_LOCATOR_LENGTH:
        raise TranscriptorError(
            f"Video URL exceeds {MAX_LOCATOR_LENGTH} characters",
            kind=ErrorKind.VALIDATION,
        )
    if not LOCATOR_PATTERN.match(locator):
        raise TranscriptorError(
            "Video URL must be a youtube.com or youtu.be URL",
            kind=ErrorKind.VALIDATION,
            context={"url": locator[:100]},
        )
    return locator


def build_watch_url(identifier: str) -> str:
    return f"https://www.youtube.com/watch?v={identifier}"


def build_short_url(identifier: str) -> str:
    return f"https://youtu.be/{identifier}"


def extract_identifier(text: str) -> str | None:
    """Extract the identifier from a YouTube URL in any supported form."""
    for pattern in _URL_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _looks_binary(text: str) -> bool:
    if "\x00" in text:
        return True
    if not text:
        return False
    non_printable = sum(1 for ch in text if not ch.isprintable() and ch not in "\n\r\t")
    return non_printable / len(text) > NON_PRINTABLE_THRESHOLD


def parse_input_text(text: str) -> tuple[list[str], ParseStats]:
    """Extract unique identifiers from ``text`` preserving first-seen order.

    Blank lines and ``#`` comments are skipped. Overlong lines and lines
    without a recognizable URL are counted as invalid. Parsing stops after
    :data:`MAX_INPUT_URLS` identifiers.
    """
    identifiers: list[str] = []
    seen: set[str] = set()
    total = skipped = invalid = duplicates = 0
    truncated = False

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        total += 1
        line = raw_line.strip()
        if not line or line.startswith("#"):
            skipped += 1
            continue
        if len(line) > MAX_INPUT_LINE_LENGTH:
            LOGGER.warning(f"Line {line_number} exceeds {MAX_INPUT_LINE_LENGTH} characters, skipping")
            invalid += 1
            continue
        identifier = extract_identifier(line)
        if identifier is None:
            LOGGER.debug(f"Line {line_number} has no YouTube URL: {line[:80]}")
            invalid += 1
            continue
        if identifier in seen:
            duplicates += 1
            continue
        if len(identifiers) >= MAX_INPUT_URLS:
            truncated = True
            LOGGER.warning(f"Input limited to {MAX_INPUT_URLS} URLs; remaining lines ignored")
            break
        seen.add(identifier)
        identifiers.append(identifier)

    stats = ParseStats(
        total_lines=total,
        skipped_lines=skipped,
        invalid_lines=invalid,
        duplicates=duplicates,
        truncated=truncated,
    )
    LOGGER.debug(f"Parsed input: {len(identifiers)} identifiers, {stats}")
    return identifiers, stats


def parse_input_file(path: Path) -> list[str]:
    """Read ``path`` and return the identifiers it lists.

    Raises:
        InputFileError: When the file is missing, larger than 10 MB, or binary.
    """
    if not path.is_file():
        raise InputFileError(f"Input file not found: {path}", context={"path": str(path)})

    size = path.stat().st_size
    if size > MAX_INPUT_FILE_BYTES:
        raise InputFileError(
            f"Input file too large: {size} bytes (max {MAX_INPUT_FILE_BYTES})",
            context={"path": str(path)},
        )

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise InputFileError(f"Input file is not UTF-8 text: {path}") from exc
    except OSError as exc:
        raise InputFileError(f"Cannot read input file {path}: {exc}", kind=ErrorKind.FILESYSTEM) from exc

    if _looks_binary(text):
        raise InputFileError(f"Input file appears to be binary: {path}")

    identifiers, stats = parse_input_text(text)
    LOGGER.info(
        f"Found {len(identifiers)} video(s) in {path.name} "
        f"({stats.invalid_lines} invalid, {stats.duplicates} duplicate line(s))"
    )
    return identifiers
