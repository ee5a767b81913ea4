"""
HTTPX client construction for transcript and metadata calls.

Responsibilities:
- Build ``httpx.AsyncClient`` instances with a fixed per-call timeout
  (longer for transcripts, shorter for metadata)
- Attach request/response event hooks that log method, URL, status and
  elapsed time at DEBUG
- Accept an injected transport so tests can use ``httpx.MockTransport``

Credential headers are added per request by the callers and never pass
through the logging hooks.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from ..config.models import HttpSettings

__all__ = ["build_async_client"]

logger = logging.getLogger(__name__)


def build_async_client(
    settings: HttpSettings,
    *,
    timeout_s: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build an ``httpx.AsyncClient`` with logging hooks.

    Args:
        settings: HTTP settings providing the User-Agent.
        timeout_s: Total timeout applied to every phase of a request.
        transport: Optional transport override (tests use ``httpx.MockTransport``).
    """
    client = httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(timeout_s),
        headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
        follow_redirects=True,
        event_hooks={"request": [_on_request], "response": [_on_response]},
    )
    logger.debug(f"HTTPX async client created: timeout={timeout_s}s")
    return client


# ============================================================================
# Event Hooks
# ============================================================================


async def _on_request(request: httpx.Request) -> None:
    """Hook: record request start time."""
    request.extensions["t0_perf"] = time.perf_counter()
    logger.debug(f"net.request: {request.method} {request.url}")


async def _on_response(response: httpx.Response) -> None:
    """Hook: log status and elapsed time."""
    req = response.request
    t0 = req.extensions.get("t0_perf", time.perf_counter())
    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    logger.debug(
        f"net.response: {req.method} {req.url} status={response.status_code} "
        f"elapsed_ms={elapsed_ms:.1f}"
    )
