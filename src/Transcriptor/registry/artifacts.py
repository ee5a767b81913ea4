"""Content artifact storage.

Artifacts are Markdown files in the central ``transcripts`` directory named
``<prefix>_<id>_<normalized-title>.md`` (or ``<prefix>_<id>.md`` without a
title). Each identifier has at most one artifact; writing a new one removes
any stale file for the same identifier under a different title.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..config.models import MAX_ARTIFACT_BYTES
from ..errors import ErrorKind, StorageError, TranscriptorError
from ..identifiers import build_short_url
from ..io_utils import atomic_write_text
from ..naming import DEFAULT_PREFIX, artifact_filename, artifact_glob_patterns

__all__ = ["ArtifactStore", "render_artifact"]

LOGGER = logging.getLogger(__name__)


def render_artifact(
    identifier: str,
    content: str,
    channel: Optional[str] = None,
    title: Optional[str] = None,
) -> str:
    """Render the artifact body, with the four-line header when metadata is known."""
    if channel is None and title is None:
        return content if content.endswith("\n") else content + "\n"
    header = (
        f"Channel: {channel or ''}\n"
        f"Title: {title or ''}\n"
        f"Video ID: {identifier}\n"
        f"URL: {build_short_url(identifier)}\n"
    )
    body = content if content.endswith("\n") else content + "\n"
    return f"{header}\n{body}"


class ArtifactStore:
    """Locate, write and delete transcript files for identifiers."""

    def __init__(
        self,
        directory: Path,
        prefix: str = DEFAULT_PREFIX,
        max_bytes: int = MAX_ARTIFACT_BYTES,
    ) -> None:
        self.directory = directory
        self.prefix = prefix
        self.max_bytes = max_bytes

    def filename_for(self, identifier: str, normalized_title: Optional[str] = None) -> str:
        return artifact_filename(identifier, normalized_title, self.prefix)

    def find_all(self, identifier: str) -> List[Path]:
        if not self.directory.is_dir():
            return []
        found: List[Path] = []
        for pattern in artifact_glob_patterns(identifier, self.prefix):
            found.extend(p for p in sorted(self.directory.glob(pattern)) if p.is_file())
        return found

    def find(self, identifier: str) -> Optional[Path]:
        matches = self.find_all(identifier)
        return matches[0] if matches else None

    def exists(self, identifier: str) -> bool:
        return self.find(identifier) is not None

    def write(
        self,
        identifier: str,
        content: str,
        *,
        normalized_title: Optional[str] = None,
        channel: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Path:
        """Write the artifact for ``identifier`` atomically and return its path.

        Raises:
            TranscriptorError: ``validation`` when the rendered file exceeds the size cap.
            StorageError: When the file cannot be written.
        """
        text = render_artifact(identifier, content, channel, title)
        size = len(text.encode("utf-8"))
        if size > self.max_bytes:
            raise TranscriptorError(
                f"Transcript file for {identifier} would be {size} bytes (max {self.max_bytes})",
                kind=ErrorKind.VALIDATION,
            )

        path = self.directory / self.filename_for(identifier, normalized_title)
        try:
            atomic_write_text(path, text)
        except OSError as exc:
            raise StorageError(f"Failed to write transcript {path.name}: {exc}") from exc

        for stale in self.find_all(identifier):
            if stale != path:
                LOGGER.debug(f"Removing stale transcript {stale.name}")
                stale.unlink(missing_ok=True)

        LOGGER.debug(f"Saved transcript {path.name} ({size} bytes)")
        return path

    def delete(self, identifier: str) -> int:
        """Delete every artifact for ``identifier``; returns the number removed."""
        removed = 0
        for path in self.find_all(identifier):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StorageError(f"Failed to delete transcript {path.name}: {exc}") from exc
        return removed

    def total_size(self) -> int:
        if not self.directory.is_dir():
            return 0
        return sum(p.stat().st_size for p in self.directory.glob(f"{self.prefix}_*.md") if p.is_file())
