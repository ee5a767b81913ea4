# === NAVMAP v1 ===
# {
#   "module": "Transcriptor.errors",
#   "purpose": "Error taxonomy and exception hierarchy for transcript acquisition",
#   "sections": [
#     {
#       "id": "errorkind",
#       "name": "ErrorKind",
#       "anchor": "class-errorkind",
#       "kind": "class"
#     },
#     {
#       "id": "transcriptorerror",
#       "name": "TranscriptorError",
#       "anchor": "class-transcriptorerror",
#       "kind": "class"
#     },
#     {
#       "id": "describe-failure",
#       "name": "describe_failure",
#       "anchor": "function-describe-failure",
#       "kind": "function"
#     },
#     {
#       "id": "get-actionable-error-message",
#       "name": "get_actionable_error_message",
#       "anchor": "function-get-actionable-error-message",
#       "kind": "function"
#     },
#     {
#       "id": "log-acquisition-failure",
#       "name": "log_acquisition_failure",
#       "anchor": "function-log-acquisition-failure",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy for the Transcriptor acquisition engine.

Every failure the engine can surface is tagged with an :class:`ErrorKind`.
The kind decides how far a failure propagates:

- ``unauthorized`` aborts a whole batch run.
- ``rate-limited`` is retried locally until the attempt or time budget runs out.
- ``invalid-request``, ``server-error``, ``timeout``, ``network`` and
  ``validation`` are recorded per identifier and the batch moves on.
- ``corruption`` and ``schema-violation`` raised while loading the registry are
  fatal unless the migration engine repairs the shape.
- ``filesystem`` failures during save leave the prior registry file untouched.

Exceptions carry a sanitized ``context`` mapping. Credential headers are
stripped and response bodies are truncated before they are attached, so the
context is always safe to log.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

__all__ = (
    "ErrorKind",
    "TranscriptorError",
    "FetchError",
    "RegistryCorruptionError",
    "SchemaViolationError",
    "StorageError",
    "MigrationError",
    "MigrationInProgressError",
    "ConfigurationError",
    "sanitize_context",
    "describe_failure",
    "get_actionable_error_message",
    "log_acquisition_failure",
)

LOGGER = logging.getLogger(__name__)

MAX_CONTEXT_DATA_LENGTH = 500
_SENSITIVE_HEADERS = frozenset({"x-api-key", "authorization"})


class ErrorKind(str, Enum):
    """Classification attached to every engine failure."""

    INVALID_REQUEST = "invalid-request"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate-limited"
    SERVER_ERROR = "server-error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    VALIDATION = "validation"
    CORRUPTION = "corruption"
    SCHEMA_VIOLATION = "schema-violation"
    FILESYSTEM = "filesystem"

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.RATE_LIMITED

    @property
    def aborts_batch(self) -> bool:
        return self in (
            ErrorKind.UNAUTHORIZED,
            ErrorKind.CORRUPTION,
            ErrorKind.SCHEMA_VIOLATION,
        )


def sanitize_context(context: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of ``context`` that is safe to log.

    Credential-bearing headers are removed and string ``data`` payloads are
    truncated to :data:`MAX_CONTEXT_DATA_LENGTH` characters.
    """
    if not context:
        return {}

    sanitized: dict[str, Any] = {}
    for key, value in context.items():
        if key.lower() in _SENSITIVE_HEADERS:
            continue
        if key == "headers" and isinstance(value, Mapping):
            sanitized[key] = {
                name: header
                for name, header in value.items()
                if name.lower() not in _SENSITIVE_HEADERS
            }
        elif key == "data" and isinstance(value, str) and len(value) > MAX_CONTEXT_DATA_LENGTH:
            sanitized[key] = value[:MAX_CONTEXT_DATA_LENGTH] + "..."
        else:
            sanitized[key] = value
    return sanitized


class TranscriptorError(Exception):
    """Base class for classified engine failures.

    Attributes:
        kind: Failure classification.
        context: Sanitized diagnostic details.
    """

    default_kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.context = sanitize_context(context)

    def __str__(self) -> str:
        return self.message


class FetchError(TranscriptorError):
    """Raised by the fetch client when a transcript cannot be retrieved.

    Attributes:
        status_code: HTTP status returned by the service, if any.
        retry_after: Raw ``Retry-After`` header value for rate-limited responses.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        status_code: int | None = None,
        retry_after: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message, kind=kind, context=context)
        self.status_code = status_code
        self.retry_after = retry_after


class RegistryCorruptionError(TranscriptorError):
    """The registry file exists but cannot be parsed."""

    default_kind = ErrorKind.CORRUPTION


class SchemaViolationError(TranscriptorError):
    """Registry content does not satisfy the current schema.

    Attributes:
        errors: One message per offending identifier or field.
    """

    default_kind = ErrorKind.SCHEMA_VIOLATION

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class StorageError(TranscriptorError):
    """Disk operation on the registry or an artifact failed."""

    default_kind = ErrorKind.FILESYSTEM


class MigrationError(TranscriptorError):
    """Schema migration failed and was rolled back."""

    default_kind = ErrorKind.SCHEMA_VIOLATION


class MigrationInProgressError(MigrationError):
    """Another migration holds the advisory lock."""

    default_kind = ErrorKind.FILESYSTEM


class ConfigurationError(TranscriptorError):
    """Settings or credentials are missing or malformed."""

    default_kind = ErrorKind.VALIDATION


_FAILURE_DESCRIPTIONS: dict[ErrorKind, str] = {
    ErrorKind.INVALID_REQUEST: "request rejected by transcript service",
    ErrorKind.UNAUTHORIZED: "API key rejected",
    ErrorKind.RATE_LIMITED: "rate limited, retries exhausted",
    ErrorKind.SERVER_ERROR: "transcript service error",
    ErrorKind.TIMEOUT: "request timed out",
    ErrorKind.NETWORK: "network unavailable",
    ErrorKind.VALIDATION: "invalid or empty transcript",
    ErrorKind.CORRUPTION: "registry file is corrupted",
    ErrorKind.SCHEMA_VIOLATION: "registry schema is invalid",
    ErrorKind.FILESYSTEM: "could not write to disk",
}


def describe_failure(kind: ErrorKind) -> str:
    """Short human-readable cause for ``kind``, used in per-identifier lines."""
    return _FAILURE_DESCRIPTIONS.get(kind, "unexpected failure")


def get_actionable_error_message(http_status: int | None) -> tuple[str, str | None]:
    """Generate a user-friendly message and suggestion for an HTTP status.

    Args:
        http_status: HTTP status code from the failed request.

    Returns:
        Tuple of (error_message, suggestion) where suggestion may be None.

    Examples:
        >>> msg, suggestion = get_actionable_error_message(401)
        >>> print(msg)
        API key rejected (HTTP 401)
    """
    if http_status in (401, 403):
        return (
            f"API key rejected (HTTP {http_status})",
            "Check SCRAPE_CREATORS_API_KEY in your environment or .env file",
        )
    if http_status == 400:
        return (
            "Invalid request (HTTP 400)",
            "The video URL may be malformed or the video may not have a transcript",
        )
    if http_status == 429:
        return (
            "Rate limit exceeded (HTTP 429)",
            "Wait before retrying; the service sent a Retry-After hint",
        )
    if http_status and http_status >= 500:
        return (
            f"Transcript service error (HTTP {http_status})",
            "The service is temporarily unavailable. Retry later.",
        )
    if http_status and http_status >= 400:
        return (f"HTTP error {http_status}", None)
    return ("Unknown error", None)


def log_acquisition_failure(
    logger: logging.Logger,
    identifier: str,
    error: TranscriptorError,
) -> None:
    """Log a per-identifier failure with its classification and context."""
    logger.warning(
        f"Acquisition failed for {identifier}: {describe_failure(error.kind)}",
        extra={
            "extra_fields": {
                "identifier": identifier,
                "error_kind": error.kind.value,
                "detail": error.message,
                **error.context,
            }
        },
    )
