"""Resilient transcript fetch client.

``TranscriptFetchClient.fetch(identifier, locator)`` performs one logical
"fetch transcript" call against the transcript service:

- The locator URL is validated before any network traffic.
- Concurrent calls for the same identifier share one in-flight task; the
  second caller receives the first caller's result (or error).
- HTTP failures are classified into :class:`~Transcriptor.errors.ErrorKind`
  values. Only ``rate-limited`` responses are retried (see
  :mod:`Transcriptor.net.retry`).
- A successful payload is trimmed and must be non-empty and within the size
  cap; anything else is a ``validation`` failure. Payloads are never
  truncated.

The API key is sent as a request header and is never included in log
messages or error context.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Callable, Dict, Optional

import httpx

from ..config.credentials import validate_api_key
from ..config.models import MAX_ARTIFACT_BYTES, HttpSettings, RetrySettings
from ..errors import ErrorKind, FetchError, TranscriptorError, get_actionable_error_message
from ..identifiers import is_valid_identifier, validate_locator
from .client import build_async_client
from .retry import RetryBudget, SleepFn, UniformFn, build_retrying

__all__ = ["TranscriptFetchClient", "classify_response", "TRANSCRIPT_FIELD"]

LOGGER = logging.getLogger(__name__)

TRANSCRIPT_FIELD = "transcript_only_text"


def classify_response(response: httpx.Response) -> FetchError:
    """Map a non-success HTTP response to a classified :class:`FetchError`."""
    status = response.status_code
    message, suggestion = get_actionable_error_message(status)
    context: Dict[str, Any] = {"status": status, "data": response.text}
    if suggestion:
        context["suggestion"] = suggestion

    retry_after: Optional[str] = None
    if status in (401, 403):
        kind = ErrorKind.UNAUTHORIZED
    elif status == 429:
        kind = ErrorKind.RATE_LIMITED
        retry_after = response.headers.get("Retry-After")
        context["retry_after"] = retry_after
    elif status >= 500:
        kind = ErrorKind.SERVER_ERROR
    else:
        kind = ErrorKind.INVALID_REQUEST

    return FetchError(
        message,
        kind=kind,
        status_code=status,
        retry_after=retry_after,
        context=context,
    )


class TranscriptFetchClient:
    """Fetch transcripts with bounded retries and in-flight deduplication.

    Args:
        api_key: Credential supplied by the caller; validated for shape only.
        http: Endpoint and timeout settings.
        retry: Retry and budget settings.
        max_payload_bytes: Largest accepted transcript, in UTF-8 bytes.
        transport: Optional ``httpx`` transport (tests use ``MockTransport``).
        sleep: Coroutine used to wait between attempts.
        clock: Monotonic clock used for the retry budget.
        uniform: Random source for jitter.
    """

    def __init__(
        self,
        api_key: str,
        http: HttpSettings,
        retry: RetrySettings,
        *,
        max_payload_bytes: int = MAX_ARTIFACT_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        uniform: UniformFn = random.uniform,
    ) -> None:
        self._api_key = validate_api_key(api_key)
        self._http = http
        self._retry = retry
        self._max_payload_bytes = max_payload_bytes
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._uniform = uniform
        self._client: Optional[httpx.AsyncClient] = None
        self._inflight: Dict[str, "asyncio.Task[str]"] = {}

    @property
    def endpoint_url(self) -> str:
        return f"{self._http.base_url}{self._http.transcript_endpoint}"

    def in_flight(self) -> int:
        return len(self._inflight)

    async def __aenter__(self) -> "TranscriptFetchClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = build_async_client(
                self._http,
                timeout_s=self._http.content_timeout_s,
                transport=self._transport,
            )
        return self._client

    async def fetch(self, identifier: str, locator: str) -> str:
        """Fetch the transcript text for ``identifier``.

        Raises:
            FetchError: Classified failure; ``kind`` tells the caller whether
                to skip the identifier or abort the run.
        """
        if not is_valid_identifier(identifier):
            raise FetchError(f"Invalid video ID: {identifier!r}", kind=ErrorKind.VALIDATION)
        try:
            validate_locator(locator)
        except TranscriptorError as exc:
            raise FetchError(exc.message, kind=ErrorKind.VALIDATION, context=exc.context) from exc

        existing = self._inflight.get(identifier)
        if existing is not None:
            LOGGER.debug(f"Joining in-flight transcript request for {identifier}")
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._fetch_with_retry(identifier, locator))
        self._inflight[identifier] = task

        def _forget(done: "asyncio.Task[str]") -> None:
            if self._inflight.get(identifier) is done:
                del self._inflight[identifier]

        task.add_done_callback(_forget)
        return await task

    async def _fetch_with_retry(self, identifier: str, locator: str) -> str:
        budget = RetryBudget(self._retry.budget_s, self._clock)
        budget.start()
        retrying = build_retrying(self._retry, budget, sleep=self._sleep, uniform=self._uniform)
        attempts = 0
        payload = ""

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    payload = await self._request_once(identifier, locator, attempts)
        except FetchError as exc:
            if exc.kind is not ErrorKind.RATE_LIMITED:
                raise
            if budget.exhausted():
                message = f"Retry budget exhausted after {budget.elapsed():.1f}s ({attempts} attempt(s))"
            else:
                message = f"Rate limited after {attempts} attempt(s)"
            raise FetchError(
                message,
                kind=ErrorKind.RATE_LIMITED,
                status_code=exc.status_code,
                retry_after=exc.retry_after,
                context={"identifier": identifier, "attempts": attempts},
            ) from exc

        return payload

    async def _request_once(self, identifier: str, locator: str, attempt: int) -> str:
        client = self._get_client()
        url = self.endpoint_url
        started = time.perf_counter()
        LOGGER.debug(f"Requesting transcript for {identifier}: POST {url} (attempt {attempt})")

        try:
            response = await client.post(
                url,
                json={"url": locator},
                headers={self._http.api_key_header: self._api_key},
            )
        except httpx.TimeoutException as exc:
            raise FetchError(
                f"Request timed out after {self._http.content_timeout_s}s",
                kind=ErrorKind.TIMEOUT,
                context={"url": url},
            ) from exc
        except httpx.TransportError as exc:
            raise FetchError(
                f"Network error: {exc.__class__.__name__}",
                kind=ErrorKind.NETWORK,
                context={"url": url},
            ) from exc
        except httpx.RequestError as exc:
            # Redirect loops and undecodable bodies surface here.
            raise FetchError(
                f"Request failed: {exc.__class__.__name__}: {exc}",
                kind=ErrorKind.NETWORK,
                context={"url": url},
            ) from exc

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        LOGGER.debug(
            f"Transcript response for {identifier}: status={response.status_code} "
            f"elapsed_ms={elapsed_ms:.1f} attempt={attempt}"
        )

        if not response.is_success:
            raise classify_response(response)
        return self._extract_payload(response)

    def _extract_payload(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError as exc:
            raise FetchError(
                "Transcript service returned invalid JSON",
                kind=ErrorKind.VALIDATION,
                context={"data": response.text},
            ) from exc

        text = body.get(TRANSCRIPT_FIELD) if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise FetchError(
                f"Response missing '{TRANSCRIPT_FIELD}' text field",
                kind=ErrorKind.VALIDATION,
            )

        trimmed = text.strip()
        if not trimmed:
            raise FetchError("Transcript is empty", kind=ErrorKind.VALIDATION)

        size = len(trimmed.encode("utf-8"))
        if size > self._max_payload_bytes:
            raise FetchError(
                f"Transcript too large: {size} bytes (max {self._max_payload_bytes})",
                kind=ErrorKind.VALIDATION,
            )
        return trimmed
