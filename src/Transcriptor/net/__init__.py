"""Outbound HTTP: transcript fetch client, metadata lookup and retry policy."""

from .fetch import TranscriptFetchClient, classify_response
from .metadata import UNKNOWN_CHANNEL, UNKNOWN_TITLE, MetadataFetcher, VideoMetadata
from .retry import RetryBudget, WaitRetryAfter, build_retrying, parse_retry_after

__all__ = [
    "MetadataFetcher",
    "RetryBudget",
    "TranscriptFetchClient",
    "UNKNOWN_CHANNEL",
    "UNKNOWN_TITLE",
    "VideoMetadata",
    "WaitRetryAfter",
    "build_retrying",
    "classify_response",
    "parse_retry_after",
]
