"""Channel and title lookup through the YouTube oEmbed endpoint.

Metadata is descriptive only. Every failure (network, timeout, bad status,
malformed JSON, unsafe characters) is absorbed into fallback values, so
:meth:`MetadataFetcher.fetch` never raises for an expected failure.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import tenacity

from ..config.models import HttpSettings, RetrySettings
from ..identifiers import build_short_url
from .client import build_async_client
from .retry import SleepFn

__all__ = ["UNKNOWN_CHANNEL", "UNKNOWN_TITLE", "VideoMetadata", "MetadataFetcher"]

LOGGER = logging.getLogger(__name__)

UNKNOWN_CHANNEL = "Unknown Channel"
UNKNOWN_TITLE = "Unknown Title"

_UNSAFE = re.compile(r'[/\\<>:"?*\x00-\x1f]')


@dataclass(frozen=True)
class VideoMetadata:
    channel: str
    title: str
    fallback: bool = False


FALLBACK_METADATA = VideoMetadata(UNKNOWN_CHANNEL, UNKNOWN_TITLE, fallback=True)


class _ServiceUnavailable(Exception):
    """oEmbed answered 503; eligible for retry."""


def _clean_field(value: Any, fallback: str) -> str:
    if not isinstance(value, str):
        return fallback
    trimmed = value.strip()
    if not trimmed or _UNSAFE.search(trimmed):
        return fallback
    return trimmed


class MetadataFetcher:
    """Fetch ``author_name`` and ``title`` for a video."""

    def __init__(
        self,
        http: HttpSettings,
        retry: RetrySettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._http = http
        self._retry = retry
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_async_client(
                self._http,
                timeout_s=self._http.metadata_timeout_s,
                transport=self._transport,
            )
        return self._client

    async def fetch(self, identifier: str) -> VideoMetadata:
        """Return metadata for ``identifier``, or fallback values on any failure."""
        try:
            body = await self._fetch_with_retry(identifier)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.debug(f"Metadata unavailable for {identifier}: {exc.__class__.__name__}: {exc}")
            return FALLBACK_METADATA

        channel = _clean_field(body.get("author_name"), UNKNOWN_CHANNEL)
        title = _clean_field(body.get("title"), UNKNOWN_TITLE)
        fallback = channel == UNKNOWN_CHANNEL and title == UNKNOWN_TITLE
        return VideoMetadata(channel=channel, title=title, fallback=fallback)

    async def _fetch_with_retry(self, identifier: str) -> dict:
        retrying = tenacity.AsyncRetrying(
            stop=tenacity.stop_after_attempt(self._retry.metadata_max_attempts),
            wait=tenacity.wait_exponential(multiplier=self._retry.metadata_backoff_s, exp_base=2),
            retry=tenacity.retry_if_exception_type(_ServiceUnavailable),
            sleep=self._sleep,
            reraise=True,
        )
        body: dict = {}
        async for attempt in retrying:
            with attempt:
                body = await self._request_once(identifier)
        return body

    async def _request_once(self, identifier: str) -> dict:
        response = await self._get_client().get(
            self._http.metadata_endpoint,
            params={"url": build_short_url(identifier), "format": "json"},
        )
        if response.status_code == 503:
            raise _ServiceUnavailable(f"oEmbed returned 503 for {identifier}")
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError("oEmbed response is not a JSON object")
        return body
