# === NAVMAP v1 ===
# {
#   "module": "Transcriptor.registry.migration",
#   "purpose": "Detect and migrate the obsolete registry schema and artifact names",
#   "sections": [
#     {
#       "id": "migrationreport",
#       "name": "MigrationReport",
#       "anchor": "class-migrationreport",
#       "kind": "class"
#     },
#     {
#       "id": "transform-entry",
#       "name": "transform_entry",
#       "anchor": "function-transform-entry",
#       "kind": "function"
#     },
#     {
#       "id": "migrationengine",
#       "name": "MigrationEngine",
#       "anchor": "class-migrationengine",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Registry schema migration.

The obsolete registry shape stored ``date_added`` as ``YYYY-MM-DD`` and a
``links`` array per entry. :class:`MigrationEngine` converts a registry in
that shape to the current one in gated phases:

1. **Backup** - copy the canonical file to ``<registry>.backup.<timestamp>``.
   Nothing else happens if the copy fails.
2. **Transform** - convert each entry. An entry that cannot be converted is
   kept as-is and an error is recorded for its identifier.
3. **Validate** - check every transformed entry against the current schema.
   Any failure aborts the whole migration; the canonical file is untouched.
4. **Rename** - move artifacts named ``<id>.md`` / ``<id>_<title>.md`` to the
   prefixed scheme. Completed renames are written to ``.rename.log`` and are
   reversed (newest first) if a later step fails.
5. **Install** - save atomically through the registry store. On failure the
   backup is copied back over the canonical path and the error propagates.

The whole sequence runs while holding ``.migration.lock`` in the artifacts
directory. The lock file records ``startTime`` and ``pid``; if it already
exists the migration aborts immediately.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Tuple

from filelock import SoftFileLock, Timeout

from ..errors import ErrorKind, MigrationError, MigrationInProgressError
from ..io_utils import atomic_write_bytes, atomic_write_json
from ..naming import DEFAULT_PREFIX, legacy_filename_pattern, normalize_title
from ..timestamps import convert_legacy_date, is_legacy_date, is_valid_timestamp
from .schema import Entry, Registry, validate_registry

__all__ = [
    "FALLBACK_CHANNEL",
    "FALLBACK_TITLE",
    "LOCK_FILENAME",
    "RENAME_LOG_FILENAME",
    "MigrationReport",
    "RenameOperation",
    "MigrationEngine",
    "needs_migration",
    "transform_entry",
]

LOGGER = logging.getLogger(__name__)

FALLBACK_CHANNEL = "unknown_channel"
FALLBACK_TITLE = "unknown_title"
LOCK_FILENAME = ".migration.lock"
RENAME_LOG_FILENAME = ".rename.log"
BACKUP_TIMESTAMP_FORMAT = "%y%m%dT%H%M%S"


@dataclass(frozen=True)
class RenameOperation:
    source: str
    target: str


@dataclass
class MigrationReport:
    """Outcome of one migration run."""

    migrated: int = 0
    unchanged: int = 0
    renamed: int = 0
    skipped_files: int = 0
    backup_path: Optional[Path] = None
    errors: List[str] = field(default_factory=list)


def _is_obsolete(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    return "date_added" in entry or "links" in entry or is_legacy_date(entry.get("acquired_at"))


def needs_migration(registry: Registry) -> bool:
    """True when any entry still carries the obsolete shape."""
    return any(_is_obsolete(entry) for entry in registry.values())


def _normalized_or(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return normalize_title(value)
    return fallback


def transform_entry(entry: Any) -> Entry:
    """Convert one entry to the current shape.

    Raises:
        ValueError: If the entry is not an object or its date is unusable.
    """
    if not isinstance(entry, dict):
        raise ValueError("entry is not an object")

    raw_date = entry.get("acquired_at", entry.get("date_added"))
    if is_legacy_date(raw_date):
        acquired_at = convert_legacy_date(raw_date)
    elif is_valid_timestamp(raw_date):
        acquired_at = raw_date
    else:
        raise ValueError(f"unrecognized date {raw_date!r}")

    return {
        "acquired_at": acquired_at,
        "channel": _normalized_or(entry.get("channel"), FALLBACK_CHANNEL),
        "title": _normalized_or(entry.get("title"), FALLBACK_TITLE),
    }


class MigrationEngine:
    """Migrate the registry file and artifact names to the current scheme.

    Args:
        registry_path: Canonical registry file.
        artifacts_dir: Directory holding content artifacts.
        prefix: Artifact filename prefix.
        clock: Source of the backup timestamp.
    """

    def __init__(
        self,
        registry_path: Path,
        artifacts_dir: Path,
        *,
        prefix: str = DEFAULT_PREFIX,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.registry_path = registry_path
        self.artifacts_dir = artifacts_dir
        self.prefix = prefix
        self._clock = clock
        self.last_report: Optional[MigrationReport] = None

    @property
    def lock_path(self) -> Path:
        return self.artifacts_dir / LOCK_FILENAME

    @property
    def rename_log_path(self) -> Path:
        return self.artifacts_dir / RENAME_LOG_FILENAME

    def needs_migration(self, registry: Registry) -> bool:
        return needs_migration(registry)

    def migrate(self, registry: Registry, save: Callable[[Registry], None]) -> Registry:
        """Run the full migration and return the installed registry.

        Args:
            registry: Parsed registry in the obsolete shape.
            save: Atomic save used to install the result.

        Raises:
            MigrationInProgressError: Another migration holds the lock.
            MigrationError: Backup, validation, rename, or install failed.
        """
        LOGGER.info(f"Registry at {self.registry_path} uses an obsolete schema; migrating")
        report = MigrationReport()

        with self._migration_lock():
            report.backup_path = self.create_backup()

            migrated, report.errors = self.transform(registry)
            report.migrated = sum(1 for key in migrated if migrated[key] != registry.get(key))
            report.unchanged = len(migrated) - report.migrated

            validation_errors = validate_registry(migrated)
            if validation_errors:
                LOGGER.error(f"Migration validation failed with {len(validation_errors)} error(s)")
                raise MigrationError(
                    f"Migration validation failed: {'; '.join(validation_errors[:3])}",
                    context={"errors": validation_errors, "backup": str(report.backup_path)},
                )

            operations, report.skipped_files = self.rename_artifacts(migrated)
            report.renamed = len(operations)

            try:
                save(migrated)
            except Exception as exc:
                LOGGER.error(f"Installing migrated registry failed: {exc}")
                self.rollback_renames(operations)
                self.restore_backup(report.backup_path)
                raise MigrationError(
                    f"Migration install failed, registry restored from backup: {exc}",
                    kind=getattr(exc, "kind", ErrorKind.FILESYSTEM),
                ) from exc

        LOGGER.info(
            f"Migration complete: {report.migrated} migrated, {report.unchanged} unchanged, "
            f"{report.renamed} file(s) renamed. Backup kept at {report.backup_path}"
        )
        self.last_report = report
        return migrated

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def create_backup(self) -> Path:
        """Copy the registry file to a timestamped sibling.

        Raises:
            MigrationError: If the copy fails; migration must not continue.
        """
        stamp = self._clock().strftime(BACKUP_TIMESTAMP_FORMAT)
        backup = self.registry_path.with_name(f"{self.registry_path.name}.backup.{stamp}")
        suffix = 1
        while backup.exists():
            backup = self.registry_path.with_name(f"{self.registry_path.name}.backup.{stamp}-{suffix}")
            suffix += 1
        try:
            shutil.copy2(self.registry_path, backup)
        except OSError as exc:
            raise MigrationError(
                f"Cannot proceed without backup: {exc}",
                kind=ErrorKind.FILESYSTEM,
            ) from exc
        LOGGER.info(f"Registry backed up to {backup}")
        return backup

    def transform(self, registry: Registry) -> Tuple[Registry, List[str]]:
        """Transform every entry; failed entries are kept unchanged."""
        migrated: Registry = {}
        errors: List[str] = []
        for identifier, entry in registry.items():
            try:
                migrated[identifier] = transform_entry(entry)
            except ValueError as exc:
                errors.append(f"{identifier}: {exc}")
                migrated[identifier] = entry
                LOGGER.warning(f"Could not migrate entry {identifier}: {exc}")
        return migrated, errors

    def rename_artifacts(self, registry: Registry) -> Tuple[List[RenameOperation], int]:
        """Rename legacy artifact files; returns completed operations and skip count.

        Raises:
            MigrationError: If a rename fails. Completed renames are reversed first.
        """
        if not self.artifacts_dir.is_dir():
            return [], 0

        pattern = legacy_filename_pattern()
        root = self.artifacts_dir.resolve()
        operations: List[RenameOperation] = []
        skipped = 0

        try:
            for path in sorted(self.artifacts_dir.iterdir()):
                match = pattern.match(path.name)
                if not match or not path.is_file():
                    continue
                if match.group(1) not in registry:
                    skipped += 1
                    continue
                target = self.artifacts_dir / f"{self.prefix}_{path.name}"
                if target.resolve().parent != root:
                    LOGGER.warning(f"Refusing to rename {path.name}: target escapes {root}")
                    skipped += 1
                    continue
                if target.exists():
                    skipped += 1
                    continue
                os.rename(path, target)
                operations.append(RenameOperation(path.name, target.name))
        except OSError as exc:
            LOGGER.error(f"Artifact rename failed after {len(operations)} rename(s): {exc}")
            self.rollback_renames(operations)
            raise MigrationError(f"Artifact rename failed: {exc}", kind=ErrorKind.FILESYSTEM) from exc
        finally:
            if operations:
                self._write_rename_log(operations)

        if operations:
            LOGGER.info(f"Renamed {len(operations)} transcript file(s) to the {self.prefix}_ scheme")
        return operations, skipped

    def rollback_renames(self, operations: List[RenameOperation]) -> None:
        """Reverse completed renames, newest first. Failures are logged."""
        for operation in reversed(operations):
            try:
                os.rename(self.artifacts_dir / operation.target, self.artifacts_dir / operation.source)
            except OSError as exc:
                LOGGER.error(f"Could not roll back {operation.target} -> {operation.source}: {exc}")

    def restore_backup(self, backup: Optional[Path]) -> None:
        if backup is None:
            return
        try:
            atomic_write_bytes(self.registry_path, backup.read_bytes())
            LOGGER.warning(f"Registry restored from {backup}")
        except OSError as exc:
            LOGGER.error(f"Restoring registry from {backup} failed: {exc}")

    # ------------------------------------------------------------------
    # Lock and audit log
    # ------------------------------------------------------------------

    def _write_rename_log(self, operations: List[RenameOperation]) -> None:
        record = {
            "timestamp": self._clock().isoformat(),
            "operations": [{"from": op.source, "to": op.target} for op in operations],
        }
        try:
            atomic_write_json(self.rename_log_path, record)
        except OSError as exc:
            LOGGER.warning(f"Could not write rename log: {exc}")

    def _read_lock_info(self) -> str:
        try:
            info = json.loads(self.lock_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return "owner unknown"
        if not isinstance(info, dict):
            return "owner unknown"
        return f"pid {info.get('pid')}, started {info.get('startTime')}"

    @contextmanager
    def _migration_lock(self) -> Iterator[None]:
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        lock = SoftFileLock(str(self.lock_path), timeout=0)
        try:
            lock.acquire(blocking=False)
        except Timeout as exc:
            raise MigrationInProgressError(
                f"Another migration is in progress ({self._read_lock_info()}). "
                f"Remove {self.lock_path} if no migration is running."
            ) from exc

        try:
            self.lock_path.write_text(
                json.dumps({"startTime": self._clock().isoformat(), "pid": os.getpid()}),
                encoding="utf-8",
            )
            yield
        finally:
            lock.release()
