"""Repository statistics for the ``data`` command."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from .registry.artifacts import ArtifactStore
from .registry.cache import EntryMetadata
from .timestamps import TIMESTAMP_FORMAT, is_valid_timestamp

__all__ = ["RepositoryStatistics", "compute_statistics", "format_size", "format_timestamp"]

_UNITS = ("B", "KB", "MB", "GB")


def format_size(num_bytes: int) -> str:
    """Human-readable size using 1024-based units up to GB.

    >>> format_size(1536)
    '1.5 KB'
    """
    size = float(num_bytes)
    for unit in _UNITS:
        if size < 1024 or unit == _UNITS[-1]:
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def format_timestamp(value: str) -> str:
    if not is_valid_timestamp(value):
        return value or "unknown"
    return datetime.strptime(value, TIMESTAMP_FORMAT).strftime("%Y-%m-%d %H:%M")


@dataclass
class RepositoryStatistics:
    total: int = 0
    size_bytes: int = 0
    oldest: Optional[EntryMetadata] = None
    newest: Optional[EntryMetadata] = None
    entries: List[EntryMetadata] = field(default_factory=list)

    def render(self) -> List[str]:
        lines = [
            f"Transcripts: {self.total}",
            f"Storage used: {format_size(self.size_bytes)}",
        ]
        if self.oldest is not None:
            lines.append(f"Oldest: {format_timestamp(self.oldest.acquired_at)} ({self.oldest.identifier})")
        if self.newest is not None:
            lines.append(f"Newest: {format_timestamp(self.newest.acquired_at)} ({self.newest.identifier})")
        for item in self.entries:
            lines.append(
                f"  {item.identifier}  {format_timestamp(item.acquired_at)}  {item.channel}  {item.title}"
            )
        return lines


def compute_statistics(metadata: Sequence[EntryMetadata], artifacts: ArtifactStore) -> RepositoryStatistics:
    """Summarize the registry metadata projection and artifact disk usage."""
    ordered = sorted(metadata, key=lambda item: (item.acquired_at, item.identifier))
    return RepositoryStatistics(
        total=len(ordered),
        size_bytes=artifacts.total_size(),
        oldest=ordered[0] if ordered else None,
        newest=ordered[-1] if ordered else None,
        entries=ordered,
    )
