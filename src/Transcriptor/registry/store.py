# === NAVMAP v1 ===
# {
#   "module": "Transcriptor.registry.store",
#   "purpose": "Crash-safe registry persistence with cache coordination and migration on load",
#   "sections": [
#     {
#       "id": "registrystore",
#       "name": "RegistryStore",
#       "anchor": "class-registrystore",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Crash-safe persistent registry.

**Responsibilities**
--------------------
- Load ``data.json``: a missing file is an empty registry, an unparsable
  file is fatal corruption, an obsolete shape is migrated, and anything else
  that does not match the current schema is rejected
- Save by validating first, then writing a sibling temporary file and
  renaming it over the canonical path (see :mod:`Transcriptor.io_utils`)
- Bracket every save with ``cache.begin_write()`` / ``cache.end_write()``
- Answer "is this identifier acquired?" through the artifact store

**Design Notes**
----------------
- The canonical file is always the complete old or the complete new
  content. A failed save leaves it untouched.
- The store is the only writer. Callers get copies, never live references.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional

from ..errors import RegistryCorruptionError, SchemaViolationError, StorageError
from ..io_utils import atomic_write_json
from .artifacts import ArtifactStore
from .cache import EntryMetadata, RegistryCache
from .migration import MigrationEngine
from .schema import Entry, Registry, ensure_valid, validate_entry

__all__ = ["RegistryStore"]

LOGGER = logging.getLogger(__name__)


class RegistryStore:
    """Canonical identifier to entry mapping on disk.

    Args:
        path: Registry file (``data.json``).
        artifacts: Artifact store used for presence checks.
        cache: Acceleration cache; a private one is created when omitted.
        migration: Migration engine; a default one is created when omitted.
    """

    def __init__(
        self,
        path: Path,
        artifacts: ArtifactStore,
        *,
        cache: Optional[RegistryCache] = None,
        migration: Optional[MigrationEngine] = None,
    ) -> None:
        self.path = path
        self.artifacts = artifacts
        self.cache = cache or RegistryCache()
        self.migration = migration or MigrationEngine(
            path, artifacts.directory, prefix=artifacts.prefix
        )

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def _read_raw(self) -> Optional[Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read registry {self.path}: {exc}") from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise RegistryCorruptionError(
                f"Registry file {self.path} is corrupted: {exc.msg} at line {exc.lineno}. "
                f"Restore it from a backup or move it aside to start fresh.",
                context={"path": str(self.path)},
            ) from exc

    def load(self) -> Registry:
        """Read the registry from disk.

        Raises:
            RegistryCorruptionError: The file exists but is not valid JSON.
            SchemaViolationError: The content does not match the schema.
            MigrationError: The obsolete shape could not be migrated.
        """
        data = self._read_raw()
        if data is None:
            LOGGER.debug(f"No registry at {self.path}; starting empty")
            return {}
        if not isinstance(data, dict):
            raise SchemaViolationError(
                f"Registry file {self.path} must contain a JSON object",
                errors=["Registry must be a JSON object"],
            )

        if self.migration.needs_migration(data):
            return self.migration.migrate(data, save=self.save)

        return ensure_valid(data, context=f"Registry {self.path}")

    def save(self, registry: Registry) -> None:
        """Validate and atomically persist ``registry``.

        Raises:
            SchemaViolationError: ``registry`` is invalid; nothing was written.
            StorageError: The write failed; the previous file is intact.
        """
        ensure_valid(registry)
        self.cache.begin_write()
        try:
            atomic_write_json(self.path, registry)
        except OSError as exc:
            raise StorageError(f"Failed to save registry: {exc}") from exc
        finally:
            self.cache.end_write()
        LOGGER.debug(f"Registry saved with {len(registry)} entries")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def entry_exists(self, identifier: str) -> bool:
        return self.artifacts.exists(identifier)

    def get_entry(self, identifier: str) -> Optional[Entry]:
        return self.cache.get_entry(identifier, self.load)

    def has_entry(self, identifier: str) -> bool:
        return self.cache.has_entry(identifier, self.load)

    def load_metadata(self) -> List[EntryMetadata]:
        return self.cache.load_metadata(self.load)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert_entry(self, identifier: str, entry: Entry) -> None:
        errors = validate_entry(identifier, entry)
        if errors:
            raise SchemaViolationError(f"Refusing to store invalid entry: {errors[0]}", errors=errors)
        registry = self.load()
        registry[identifier] = dict(entry)
        self.save(registry)

    def remove_entries(self, identifiers: Iterable[str]) -> int:
        """Remove ``identifiers`` with a single save; returns how many existed."""
        registry = self.load()
        removed = 0
        for identifier in identifiers:
            if registry.pop(identifier, None) is not None:
                removed += 1
        if removed:
            self.save(registry)
        return removed
