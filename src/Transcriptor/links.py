"""Distribution links from a project directory to central transcripts.

The acquisition core only knows the :class:`LinkCreator` protocol. The
default implementation, :class:`SymlinkDistributor`, places a symlink named
after the artifact in the project's ``transcripts`` directory.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol

from .naming import DEFAULT_PREFIX, artifact_glob_patterns

__all__ = ["LinkResult", "LinkRemovalResult", "LinkCreator", "SymlinkDistributor"]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkResult:
    success: bool
    path: Optional[Path] = None
    error: Optional[str] = None


@dataclass
class LinkRemovalResult:
    removed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


class LinkCreator(Protocol):
    """Creates and removes project-local references to stored artifacts."""

    def create_link(self, identifier: str, filename: str) -> LinkResult: ...

    def remove_links(self, identifier: str) -> LinkRemovalResult: ...


class SymlinkDistributor:
    """Symlink artifacts from ``artifacts_dir`` into ``links_dir``.

    A regular file or directory already sitting at the link path is never
    replaced; the request fails instead. Existing symlinks, including broken
    ones, are replaced.
    """

    def __init__(self, artifacts_dir: Path, links_dir: Path, prefix: str = DEFAULT_PREFIX) -> None:
        self.artifacts_dir = artifacts_dir
        self.links_dir = links_dir
        self.prefix = prefix

    def _links_for(self, identifier: str) -> List[Path]:
        if not self.links_dir.is_dir():
            return []
        patterns = artifact_glob_patterns(identifier, self.prefix)
        return [
            entry
            for entry in sorted(self.links_dir.iterdir())
            if any(fnmatch.fnmatchcase(entry.name, pattern) for pattern in patterns)
        ]

    def create_link(self, identifier: str, filename: str) -> LinkResult:
        target = self.artifacts_dir / filename
        link_path = self.links_dir / filename

        if not target.is_file():
            return LinkResult(False, link_path, f"Transcript {filename} does not exist")

        try:
            self.links_dir.mkdir(parents=True, exist_ok=True)
            if link_path.is_symlink():
                link_path.unlink()
            elif link_path.exists():
                kind = "directory" if link_path.is_dir() else "file"
                return LinkResult(False, link_path, f"A {kind} already exists at {link_path}")

            for stale in self._links_for(identifier):
                if stale.name != filename and stale.is_symlink():
                    LOGGER.debug(f"Removing stale link {stale}")
                    stale.unlink()

            os.symlink(target.resolve(), link_path)
        except OSError as exc:
            LOGGER.warning(f"Could not link {filename} into {self.links_dir}: {exc}")
            return LinkResult(False, link_path, str(exc))

        LOGGER.debug(f"Linked {link_path} -> {target}")
        return LinkResult(True, link_path)

    def remove_link(self, link_path: Path) -> bool:
        """Remove one symlink. Returns False when the path is not a symlink.

        A link that is already gone counts as removed.
        """
        if not link_path.is_symlink():
            return not link_path.exists()
        try:
            link_path.unlink()
        except FileNotFoundError:
            pass
        return True

    def remove_links(self, identifier: str) -> LinkRemovalResult:
        result = LinkRemovalResult()
        for link_path in self._links_for(identifier):
            try:
                if self.remove_link(link_path):
                    result.removed += 1
                else:
                    result.skipped += 1
            except OSError as exc:
                result.errors.append(f"{link_path}: {exc}")
        if result.removed:
            LOGGER.debug(f"Removed {result.removed} link(s) for {identifier}")
        return result
