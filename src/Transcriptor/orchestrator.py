"""Acquisition orchestrator.

Drives one identifier through::

    start -> cache-check -> hit  -> distribute -> done
                         -> miss -> fetching -> persisting -> distribute -> done

with an ``error`` state reachable from every step. A cache hit requires both
a registry entry and its transcript file; an entry without a file is
fetched again. On a miss the transcript and the metadata are fetched
concurrently. The transcript file is always written before the registry
entry that points at it.

``process_one`` returns a tagged :class:`AcquisitionResult` for every
per-identifier outcome. Only failures that make continuing pointless
(rejected credentials, unreadable or unmigratable registry) escape
``process_batch``, wrapped in :class:`BatchAbortedError` together with the
partial summary.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Protocol, Tuple

from .errors import (
    ErrorKind,
    MigrationError,
    TranscriptorError,
    describe_failure,
    log_acquisition_failure,
)
from .identifiers import build_watch_url, is_valid_identifier
from .links import LinkCreator
from .maintenance.integrity import IntegritySweep
from .naming import normalize_title
from .net.metadata import FALLBACK_METADATA, VideoMetadata
from .registry.artifacts import ArtifactStore
from .registry.store import RegistryStore
from .timestamps import generate_acquired_at

__all__ = [
    "AcquisitionState",
    "AcquisitionStatus",
    "AcquisitionResult",
    "BatchSummary",
    "BatchAbortedError",
    "ContentFetcher",
    "MetadataSource",
    "AcquisitionOrchestrator",
]

LOGGER = logging.getLogger(__name__)


class AcquisitionState(str, Enum):
    START = "start"
    CACHE_CHECK = "cache-check"
    HIT = "hit"
    MISS = "miss"
    FETCHING = "fetching"
    PERSISTING = "persisting"
    DISTRIBUTE = "distribute"
    DONE = "done"
    ERROR = "error"


class AcquisitionStatus(str, Enum):
    CACHED = "cached"
    FETCHED = "fetched"
    FAILED = "failed"


@dataclass(frozen=True)
class AcquisitionResult:
    """Outcome of processing one identifier."""

    identifier: str
    status: AcquisitionStatus
    filename: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    linked: bool = False
    states: Tuple[AcquisitionState, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is not AcquisitionStatus.FAILED

    def failure_line(self) -> str:
        cause = describe_failure(self.error_kind) if self.error_kind else "unexpected failure"
        return f"{self.identifier}: {cause}"


@dataclass
class BatchSummary:
    results: List[AcquisitionResult] = field(default_factory=list)
    link_failures: int = 0

    def add(self, result: AcquisitionResult) -> None:
        self.results.append(result)
        if result.ok and not result.linked:
            self.link_failures += 1

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def fetched(self) -> int:
        return sum(1 for r in self.results if r.status is AcquisitionStatus.FETCHED)

    @property
    def cached(self) -> int:
        return sum(1 for r in self.results if r.status is AcquisitionStatus.CACHED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status is AcquisitionStatus.FAILED)

    def failures(self) -> List[AcquisitionResult]:
        return [r for r in self.results if not r.ok]

    def render(self) -> str:
        text = f"Processed {self.total}: {self.fetched} fetched, {self.cached} cached, {self.failed} failed"
        if self.link_failures:
            text += f" ({self.link_failures} not linked)"
        return text


class BatchAbortedError(TranscriptorError):
    """A batch stopped early; ``summary`` holds the results so far."""

    def __init__(self, message: str, *, kind: ErrorKind, summary: BatchSummary) -> None:
        super().__init__(message, kind=kind)
        self.summary = summary


class ContentFetcher(Protocol):
    async def fetch(self, identifier: str, locator: str) -> str: ...


class MetadataSource(Protocol):
    async def fetch(self, identifier: str) -> VideoMetadata: ...


def _aborts_batch(exc: TranscriptorError) -> bool:
    return isinstance(exc, MigrationError) or exc.kind.aborts_batch


class AcquisitionOrchestrator:
    """Tie the registry, fetch client and link creator together per identifier."""

    def __init__(
        self,
        store: RegistryStore,
        artifacts: ArtifactStore,
        fetcher: ContentFetcher,
        metadata: MetadataSource,
        links: Optional[LinkCreator] = None,
        *,
        sweep: Optional[IntegritySweep] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.artifacts = artifacts
        self.fetcher = fetcher
        self.metadata = metadata
        self.links = links
        self.sweep = sweep
        self._clock = clock

    async def process_one(self, identifier: str, locator: Optional[str] = None) -> AcquisitionResult:
        """Acquire ``identifier`` and return a tagged result.

        Raises:
            TranscriptorError: Only for failures that must abort the run
                (``unauthorized``, ``corruption``, ``schema-violation`` or a
                failed migration).
        """
        states: List[AcquisitionState] = [AcquisitionState.START]

        if not is_valid_identifier(identifier):
            states.append(AcquisitionState.ERROR)
            error = TranscriptorError(f"Invalid video ID: {identifier!r}", kind=ErrorKind.VALIDATION)
            log_acquisition_failure(LOGGER, str(identifier), error)
            return AcquisitionResult(
                identifier=str(identifier),
                status=AcquisitionStatus.FAILED,
                error_kind=error.kind,
                message=error.message,
                states=tuple(states),
            )

        try:
            states.append(AcquisitionState.CACHE_CHECK)
            filename = self._cache_check(identifier)

            if filename is not None:
                states.append(AcquisitionState.HIT)
                status = AcquisitionStatus.CACHED
                LOGGER.info(f"{identifier}: already downloaded ({filename})")
            else:
                states.extend((AcquisitionState.MISS, AcquisitionState.FETCHING))
                content, meta = await self._fetch(identifier, locator or build_watch_url(identifier))
                states.append(AcquisitionState.PERSISTING)
                filename = self._persist(identifier, content, meta)
                status = AcquisitionStatus.FETCHED
                LOGGER.info(f"{identifier}: saved {filename}")

            states.append(AcquisitionState.DISTRIBUTE)
            linked = self._distribute(identifier, filename)
            states.append(AcquisitionState.DONE)
        except TranscriptorError as exc:
            if _aborts_batch(exc):
                raise
            states.append(AcquisitionState.ERROR)
            log_acquisition_failure(LOGGER, identifier, exc)
            return AcquisitionResult(
                identifier=identifier,
                status=AcquisitionStatus.FAILED,
                error_kind=exc.kind,
                message=exc.message,
                states=tuple(states),
            )

        return AcquisitionResult(
            identifier=identifier,
            status=status,
            filename=filename,
            linked=linked,
            states=tuple(states),
        )

    async def process_batch(self, identifiers: Iterable[str], *, sweep_first: bool = True) -> BatchSummary:
        """Process ``identifiers`` strictly one at a time, in order.

        Raises:
            BatchAbortedError: A run-ending failure occurred; carries the partial summary.
        """
        summary = BatchSummary()

        if sweep_first and self.sweep is not None:
            self.sweep.validate_integrity()

        for identifier in identifiers:
            try:
                result = await self.process_one(identifier)
            except TranscriptorError as exc:
                LOGGER.error(f"Stopping batch at {identifier}: {describe_failure(exc.kind)}")
                raise BatchAbortedError(
                    f"Batch aborted at {identifier}: {describe_failure(exc.kind)}",
                    kind=exc.kind,
                    summary=summary,
                ) from exc
            summary.add(result)

        LOGGER.info(summary.render())
        return summary

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _cache_check(self, identifier: str) -> Optional[str]:
        entry = self.store.get_entry(identifier)
        if entry is None:
            return None
        path = self.artifacts.find(identifier)
        if path is None:
            LOGGER.warning(f"{identifier}: registry entry has no transcript file; downloading again")
            return None
        return path.name

    async def _fetch(self, identifier: str, locator: str) -> Tuple[str, VideoMetadata]:
        content, meta = await asyncio.gather(
            self.fetcher.fetch(identifier, locator),
            self.metadata.fetch(identifier),
            return_exceptions=True,
        )
        if isinstance(content, BaseException):
            raise content
        if isinstance(meta, BaseException):
            LOGGER.debug(f"{identifier}: metadata lookup raised {meta!r}; using fallback")
            meta = FALLBACK_METADATA
        return content, meta

    def _persist(self, identifier: str, content: str, meta: VideoMetadata) -> str:
        normalized_title = normalize_title(meta.title)
        path = self.artifacts.write(
            identifier,
            content,
            normalized_title=normalized_title,
            channel=meta.channel,
            title=meta.title,
        )
        self.store.upsert_entry(
            identifier,
            {
                "acquired_at": generate_acquired_at(self._clock()),
                "channel": normalize_title(meta.channel),
                "title": normalized_title,
            },
        )
        return path.name

    def _distribute(self, identifier: str, filename: str) -> bool:
        if self.links is None:
            return True
        result = self.links.create_link(identifier, filename)
        if not result.success:
            LOGGER.warning(f"{identifier}: could not link {filename}: {result.error}")
        return result.success
