"""In-process acceleration cache for registry lookups.

The cache is never authoritative. It holds at most ``max_entries`` entries
in least-recently-used order plus a separately cached metadata projection
used for statistics. The registry store calls :meth:`RegistryCache.begin_write`
immediately before saving and :meth:`RegistryCache.end_write` afterwards.
Between the two calls all cached state is gone and every read goes straight
to the loader, so a reader can never see an entry that the in-flight write
is about to contradict.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .schema import Entry, Registry

__all__ = ["EntryMetadata", "RegistryCache", "project_metadata"]

LOGGER = logging.getLogger(__name__)

Loader = Callable[[], Registry]


@dataclass(frozen=True)
class EntryMetadata:
    """Lightweight view of one entry for statistics."""

    identifier: str
    acquired_at: str
    channel: str
    title: str
    link_count: int = 0


def project_metadata(registry: Registry) -> List[EntryMetadata]:
    items: List[EntryMetadata] = []
    for identifier, entry in registry.items():
        if not isinstance(entry, dict):
            continue
        links = entry.get("links")
        items.append(
            EntryMetadata(
                identifier=identifier,
                acquired_at=str(entry.get("acquired_at") or entry.get("date_added") or ""),
                channel=str(entry.get("channel") or ""),
                title=str(entry.get("title") or ""),
                link_count=len(links) if isinstance(links, list) else 0,
            )
        )
    return items


class RegistryCache:
    """Bounded LRU map of identifier to entry with write-window invalidation."""

    def __init__(self, max_entries: int = 1000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Entry]" = OrderedDict()
        self._metadata: Optional[List[EntryMetadata]] = None
        self._writing = False

    @property
    def writing(self) -> bool:
        return self._writing

    def __len__(self) -> int:
        return len(self._entries)

    def _remember(self, identifier: str, entry: Entry) -> None:
        self._entries[identifier] = dict(entry)
        self._entries.move_to_end(identifier)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            LOGGER.debug(f"Cache evicted {evicted}")

    def get_entry(self, identifier: str, loader: Loader) -> Optional[Entry]:
        """Return a copy of the entry for ``identifier`` or ``None``.

        A miss reads the registry through ``loader`` and populates the cache,
        unless a write is in progress.
        """
        if self._writing:
            entry = loader().get(identifier)
            return dict(entry) if isinstance(entry, dict) else None

        cached = self._entries.get(identifier)
        if cached is not None:
            self._entries.move_to_end(identifier)
            return dict(cached)

        entry = loader().get(identifier)
        if not isinstance(entry, dict):
            return None
        if not self._writing:
            self._remember(identifier, entry)
        return dict(entry)

    def has_entry(self, identifier: str, loader: Loader) -> bool:
        if not self._writing and identifier in self._entries:
            return True
        return self.get_entry(identifier, loader) is not None

    def load_metadata(self, loader: Loader) -> List[EntryMetadata]:
        """Return the metadata projection, computing it once per cache generation."""
        if self._writing:
            return project_metadata(loader())
        if self._metadata is None:
            projection = project_metadata(loader())
            if self._writing:
                return projection
            self._metadata = projection
        return list(self._metadata)

    def invalidate(self) -> None:
        self._entries.clear()
        self._metadata = None

    def begin_write(self) -> None:
        self.invalidate()
        self._writing = True

    def end_write(self) -> None:
        self._writing = False

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "metadata_cached": self._metadata is not None,
            "writing": self._writing,
        }
