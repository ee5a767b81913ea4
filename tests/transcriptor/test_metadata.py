"""Tests for oEmbed metadata lookup and its fallbacks."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from Transcriptor.config.models import HttpSettings, RetrySettings
from Transcriptor.net.metadata import UNKNOWN_CHANNEL, UNKNOWN_TITLE, MetadataFetcher, VideoMetadata

VIDEO_ID = "dQw4w9WgXcQ"


def _lookup(handler, sleep) -> VideoMetadata:
    fetcher = MetadataFetcher(
        HttpSettings(),
        RetrySettings(),
        transport=httpx.MockTransport(handler),
        sleep=sleep,
    )

    async def run() -> VideoMetadata:
        try:
            return await fetcher.fetch(VIDEO_ID)
        finally:
            await fetcher.aclose()

    return asyncio.run(run())


def test_returns_trimmed_channel_and_title(make_service, make_response, recorded_sleeps):
    service = make_service(oembed=[make_response(200, {"author_name": " Rick Astley ", "title": "  My Video! "})])

    meta = _lookup(service, recorded_sleeps)

    assert meta == VideoMetadata("Rick Astley", "My Video!")
    request = service.oembed_calls()[0]
    assert request.url.params["url"] == f"https://youtu.be/{VIDEO_ID}"
    assert request.url.params["format"] == "json"


def test_service_unavailable_is_retried(make_service, make_response, recorded_sleeps):
    service = make_service(
        oembed=[
            make_response(503, {}),
            make_response(503, {}),
            make_response(200, {"author_name": "Chan", "title": "Title"}),
        ]
    )

    meta = _lookup(service, recorded_sleeps)

    assert meta.channel == "Chan"
    assert len(service.oembed_calls()) == 3
    assert recorded_sleeps.calls == [1.0, 2.0]


def test_persistent_503_falls_back(make_service, make_response, recorded_sleeps):
    service = make_service(oembed=[make_response(503, {})])

    meta = _lookup(service, recorded_sleeps)

    assert meta.fallback is True
    assert (meta.channel, meta.title) == (UNKNOWN_CHANNEL, UNKNOWN_TITLE)
    assert len(service.oembed_calls()) == 3


@pytest.mark.parametrize("status", [401, 404, 500])
def test_other_errors_fall_back_without_retry(status, make_service, make_response, recorded_sleeps):
    service = make_service(oembed=[make_response(status, {})])

    meta = _lookup(service, recorded_sleeps)

    assert meta.fallback is True
    assert len(service.oembed_calls()) == 1


def test_network_failure_falls_back(recorded_sleeps):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    assert _lookup(handler, recorded_sleeps).fallback is True


def test_unsafe_characters_use_fallback_per_field(make_service, make_response, recorded_sleeps):
    service = make_service(oembed=[make_response(200, {"author_name": "a/b", "title": "Fine Title"})])

    meta = _lookup(service, recorded_sleeps)

    assert meta.channel == UNKNOWN_CHANNEL
    assert meta.title == "Fine Title"
    assert meta.fallback is False
