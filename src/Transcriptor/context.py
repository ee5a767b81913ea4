"""
Application context for a Transcriptor run.

Builds the dependency graph once from a validated :class:`TranscriptorConfig`
and hands the same instances to every component. The CLI owns the context
for the lifetime of one command.

NAVMAP:
- AppContext: Dataclass holding config and the storage-side components
- build_app_context: Construct storage, cache, links and maintenance services
- open_orchestrator: Async context manager adding the HTTP-side components
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx

from .config.models import TranscriptorConfig
from .links import SymlinkDistributor
from .maintenance.integrity import IntegritySweep
from .maintenance.retention import RetentionCleaner
from .net.fetch import TranscriptFetchClient
from .net.metadata import MetadataFetcher
from .net.retry import SleepFn
from .orchestrator import AcquisitionOrchestrator
from .registry.artifacts import ArtifactStore
from .registry.cache import RegistryCache
from .registry.migration import MigrationEngine
from .registry.store import RegistryStore

__all__ = ["AppContext", "build_app_context", "open_orchestrator"]


@dataclass
class AppContext:
    """
    Effective configuration plus the components built from it.
    """

    config: TranscriptorConfig
    artifacts: ArtifactStore
    cache: RegistryCache
    store: RegistryStore
    links: SymlinkDistributor
    sweep: IntegritySweep
    retention: RetentionCleaner


def build_app_context(config: TranscriptorConfig, *, project_dir: Optional[Path] = None) -> AppContext:
    """Wire storage, cache, links and maintenance services from ``config``."""
    storage = config.storage
    artifacts = ArtifactStore(
        storage.artifacts_path,
        prefix=storage.artifact_prefix,
        max_bytes=storage.max_artifact_bytes,
    )
    cache = RegistryCache(max_entries=config.cache.max_entries)
    migration = MigrationEngine(
        storage.registry_path,
        storage.artifacts_path,
        prefix=storage.artifact_prefix,
    )
    store = RegistryStore(storage.registry_path, artifacts, cache=cache, migration=migration)

    links_dir = storage.links_dir
    if not links_dir.is_absolute():
        links_dir = (project_dir or Path.cwd()) / links_dir
    links = SymlinkDistributor(storage.artifacts_path, links_dir, prefix=storage.artifact_prefix)

    return AppContext(
        config=config,
        artifacts=artifacts,
        cache=cache,
        store=store,
        links=links,
        sweep=IntegritySweep(store, links),
        retention=RetentionCleaner(store, artifacts, links),
    )


@asynccontextmanager
async def open_orchestrator(
    ctx: AppContext,
    api_key: str,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: SleepFn = asyncio.sleep,
) -> AsyncIterator[AcquisitionOrchestrator]:
    """Yield an orchestrator whose HTTP clients are closed on exit."""
    config = ctx.config
    fetcher = TranscriptFetchClient(
        api_key,
        config.http,
        config.retry,
        max_payload_bytes=config.storage.max_artifact_bytes,
        transport=transport,
        sleep=sleep,
    )
    metadata = MetadataFetcher(config.http, config.retry, transport=transport, sleep=sleep)
    try:
        yield AcquisitionOrchestrator(
            ctx.store,
            ctx.artifacts,
            fetcher,
            metadata,
            ctx.links,
            sweep=ctx.sweep,
        )
    finally:
        await fetcher.aclose()
        await metadata.aclose()
