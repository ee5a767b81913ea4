"""Integrity sweep: drop registry entries whose transcript file is gone.

For every entry the sweep checks that the backing artifact exists. Orphaned
entries have their distribution links removed (best effort) and are then
deleted from the in-memory registry. All removals are persisted with a
single save at the end, however many orphans were found.

Per-entry problems are collected into :class:`IntegrityReport.errors` so one
bad entry never stops the sweep. Only a failure of the final save raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from ..errors import StorageError, TranscriptorError
from ..links import LinkCreator
from ..registry.schema import Registry

__all__ = ["IntegrityReport", "RegistryBackend", "IntegritySweep"]

logger = logging.getLogger(__name__)


class RegistryBackend(Protocol):
    def load(self) -> Registry: ...

    def save(self, registry: Registry) -> None: ...

    def entry_exists(self, identifier: str) -> bool: ...


@dataclass
class IntegrityReport:
    checked: int = 0
    orphaned: int = 0
    links_removed: int = 0
    links_failed: int = 0
    errors: List[str] = field(default_factory=list)
    message: Optional[str] = None


class IntegritySweep:
    """Remove orphaned registry entries and their links."""

    def __init__(self, store: RegistryBackend, links: Optional[LinkCreator] = None) -> None:
        self.store = store
        self.links = links

    def validate_integrity(self, dry_run: bool = False) -> IntegrityReport:
        """Check every entry and remove the orphans.

        Args:
            dry_run: Report orphans without removing links or saving.

        Raises:
            StorageError: Orphans were found but the registry save failed.
        """
        report = IntegrityReport()
        registry = self.store.load()

        if not registry:
            report.message = "Registry is empty, nothing to validate"
            logger.debug(report.message)
            return report

        orphans: List[str] = []
        for identifier in list(registry):
            report.checked += 1
            entry = registry[identifier]
            if not isinstance(entry, dict):
                report.errors.append(f"{identifier}: malformed entry")
                continue

            try:
                present = self.store.entry_exists(identifier)
            except Exception as e:
                report.errors.append(f"{identifier}: existence check failed: {e}")
                logger.error(f"Integrity check failed for {identifier}: {e}")
                continue

            if present:
                continue

            logger.warning(f"Transcript missing for {identifier}; removing registry entry")
            orphans.append(identifier)
            if dry_run:
                continue
            self._remove_links(identifier, report)
            del registry[identifier]

        report.orphaned = len(orphans)

        if orphans and not dry_run:
            try:
                self.store.save(registry)
            except (TranscriptorError, OSError) as e:
                raise StorageError(
                    f"Integrity cleanup succeeded but save failed ({len(orphans)} orphaned entries): {e}"
                ) from e

        action = "would remove" if dry_run else "removed"
        report.message = f"Checked {report.checked} entries, {action} {report.orphaned} orphaned"
        logger.info(report.message)
        return report

    def _remove_links(self, identifier: str, report: IntegrityReport) -> None:
        if self.links is None:
            return
        try:
            result = self.links.remove_links(identifier)
        except Exception as e:
            report.links_failed += 1
            report.errors.append(f"{identifier}: link cleanup failed: {e}")
            logger.error(f"Link cleanup failed for {identifier}: {e}")
            return
        report.links_removed += result.removed
        if result.errors:
            report.links_failed += len(result.errors)
            report.errors.extend(f"{identifier}: {err}" for err in result.errors)
