"""
Pytest Configuration

Shared fixtures for the Transcriptor suite: ``src`` on ``sys.path``, an
isolated storage root per test, recorded (non-blocking) sleeps, and builders
for ``httpx.MockTransport`` handlers that imitate the transcript and oEmbed
services.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from Transcriptor.config.models import TranscriptorConfig  # noqa: E402
from Transcriptor.context import AppContext, build_app_context  # noqa: E402

API_KEY = "test-key-0123456789"
VIDEO_ID = "dQw4w9WgXcQ"


@pytest.fixture(autouse=True)
def _reset_transcriptor_logging() -> Any:
    """Undo handler/propagation changes made by CLI tests."""
    yield
    logger = logging.getLogger("Transcriptor")
    for handler in list(logger.handlers):
        if getattr(handler, "_transcriptor_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def config(tmp_path: Path) -> TranscriptorConfig:
    return TranscriptorConfig.model_validate(
        {
            "storage": {
                "root": str(tmp_path / "store"),
                "links_dir": str(tmp_path / "project" / "transcripts"),
                "input_file": str(tmp_path / "project" / "youtube.md"),
            }
        }
    )


@pytest.fixture
def app_ctx(config: TranscriptorConfig, tmp_path: Path) -> AppContext:
    return build_app_context(config, project_dir=tmp_path / "project")


@pytest.fixture
def recorded_sleeps() -> Callable[[float], Any]:
    """Async sleep replacement that records requested delays."""
    calls: List[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls  # type: ignore[attr-defined]
    return _sleep


def json_response(status: int, body: Any, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(
        status,
        content=json.dumps(body).encode("utf-8"),
        headers={"content-type": "application/json", **(headers or {})},
    )


class ServiceRecorder:
    """MockTransport handler that replays scripted responses and records requests."""

    def __init__(
        self,
        transcript: Optional[List[httpx.Response]] = None,
        oembed: Optional[List[httpx.Response]] = None,
    ) -> None:
        self.transcript = list(transcript or [])
        self.oembed = list(oembed or [])
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.oembed if request.url.path.endswith("/oembed") else self.transcript
        if not queue:
            return httpx.Response(500, text="unexpected request")
        # The last scripted response repeats forever.
        scripted = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(scripted.status_code, content=scripted.content, headers=scripted.headers)

    def transcript_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if not r.url.path.endswith("/oembed")]

    def oembed_calls(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/oembed")]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def service() -> ServiceRecorder:
    return ServiceRecorder(
        transcript=[json_response(200, {"transcript_only_text": "  hello world  "})],
        oembed=[json_response(200, {"author_name": "Rick Astley", "title": "My Video!"})],
    )


@pytest.fixture
def make_response() -> Callable[..., httpx.Response]:
    return json_response


@pytest.fixture
def make_service() -> Callable[..., ServiceRecorder]:
    return ServiceRecorder
