"""Date-based cleanup of old transcripts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import StorageError
from ..links import LinkCreator
from ..registry.artifacts import ArtifactStore
from ..registry.store import RegistryStore
from ..timestamps import convert_date_to_prefix, extract_date_prefix

__all__ = ["RetentionReport", "RetentionCleaner"]

logger = logging.getLogger(__name__)


@dataclass
class RetentionReport:
    cutoff: str
    removed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class RetentionCleaner:
    """Remove entries acquired before a cutoff date, with their files and links."""

    def __init__(
        self,
        store: RegistryStore,
        artifacts: ArtifactStore,
        links: Optional[LinkCreator] = None,
    ) -> None:
        self.store = store
        self.artifacts = artifacts
        self.links = links

    def candidates(self, before: str) -> List[str]:
        """Identifiers whose ``acquired_at`` date is strictly earlier than ``before``.

        Raises:
            ValueError: ``before`` is not a ``YYYY-MM-DD`` date.
        """
        cutoff = convert_date_to_prefix(before)
        registry = self.store.load()
        return sorted(
            identifier
            for identifier, entry in registry.items()
            if extract_date_prefix(entry["acquired_at"]) < cutoff
        )

    def remove_before(self, before: str) -> RetentionReport:
        """Delete everything acquired before ``before`` (``YYYY-MM-DD``).

        Raises:
            ValueError: ``before`` is not a valid date.
            StorageError: Files were deleted but the registry save failed.
        """
        report = RetentionReport(cutoff=convert_date_to_prefix(before))
        targets = self.candidates(before)
        if not targets:
            logger.info(f"No transcripts acquired before {before}")
            return report

        registry = self.store.load()
        for identifier in targets:
            try:
                if self.links is not None:
                    link_result = self.links.remove_links(identifier)
                    report.errors.extend(f"{identifier}: {err}" for err in link_result.errors)
                self.artifacts.delete(identifier)
            except StorageError as e:
                report.failed.append(identifier)
                report.errors.append(f"{identifier}: {e}")
                logger.error(f"Failed to remove {identifier}: {e}")
                continue
            registry.pop(identifier, None)
            report.removed.append(identifier)

        if report.removed:
            self.store.save(registry)

        logger.info(
            f"Removed {len(report.removed)} transcript(s) acquired before {before}"
            + (f", {len(report.failed)} failed" if report.failed else "")
        )
        return report
