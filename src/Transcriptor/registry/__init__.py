"""Registry persistence: schema, artifacts, cache, migration and the store."""

from .artifacts import ArtifactStore, render_artifact
from .cache import EntryMetadata, RegistryCache
from .migration import MigrationEngine, MigrationReport, needs_migration, transform_entry
from .schema import Entry, Registry, validate_entry, validate_registry
from .store import RegistryStore

__all__ = [
    "ArtifactStore",
    "Entry",
    "EntryMetadata",
    "MigrationEngine",
    "MigrationReport",
    "Registry",
    "RegistryCache",
    "RegistryStore",
    "needs_migration",
    "render_artifact",
    "transform_entry",
    "validate_entry",
    "validate_registry",
]
