"""Tests for the error taxonomy and logging setup."""

from __future__ import annotations

import json
import logging

import pytest

from Transcriptor.errors import (
    ErrorKind,
    FetchError,
    MigrationInProgressError,
    RegistryCorruptionError,
    StorageError,
    TranscriptorError,
    get_actionable_error_message,
    log_acquisition_failure,
    sanitize_context,
)
from Transcriptor.logging_utils import JSONFormatter, mask_sensitive_data, setup_logging


class TestErrorKinds:
    def test_only_rate_limiting_is_retryable(self):
        assert [kind for kind in ErrorKind if kind.retryable] == [ErrorKind.RATE_LIMITED]

    def test_batch_aborting_kinds(self):
        assert {kind for kind in ErrorKind if kind.aborts_batch} == {
            ErrorKind.UNAUTHORIZED,
            ErrorKind.CORRUPTION,
            ErrorKind.SCHEMA_VIOLATION,
        }

    def test_default_kinds(self):
        assert RegistryCorruptionError("x").kind is ErrorKind.CORRUPTION
        assert StorageError("x").kind is ErrorKind.FILESYSTEM
        assert MigrationInProgressError("x").kind is ErrorKind.FILESYSTEM
        assert TranscriptorError("x", kind=ErrorKind.TIMEOUT).kind is ErrorKind.TIMEOUT

    def test_context_is_sanitized(self):
        error = FetchError(
            "boom",
            kind=ErrorKind.SERVER_ERROR,
            context={
                "x-api-key": "secret",
                "headers": {"Authorization": "Bearer secret", "Accept": "json"},
                "data": "y" * 800,
            },
        )
        assert "x-api-key" not in error.context
        assert error.context["headers"] == {"Accept": "json"}
        assert len(error.context["data"]) == 503
        assert sanitize_context(None) == {}

    @pytest.mark.parametrize(
        "status, fragment",
        [(401, "API key rejected"), (403, "API key rejected"), (429, "Rate limit"), (502, "service error"), (None, "Unknown")],
    )
    def test_actionable_messages(self, status, fragment):
        message, _ = get_actionable_error_message(status)
        assert fragment in message


class TestLogging:
    def test_failure_log_carries_structured_fields(self, caplog):
        logger = logging.getLogger("Transcriptor.test")
        error = FetchError("Rate limited after 3 attempt(s)", kind=ErrorKind.RATE_LIMITED)

        with caplog.at_level(logging.WARNING, logger="Transcriptor"):
            log_acquisition_failure(logger, "dQw4w9WgXcQ", error)

        record = caplog.records[0]
        assert record.extra_fields["error_kind"] == "rate-limited"
        assert record.extra_fields["identifier"] == "dQw4w9WgXcQ"

    def test_mask_sensitive_data(self):
        masked = mask_sensitive_data({"api_key": "k", "nested": {"Authorization": "t", "ok": 1}, "items": [1]})
        assert masked == {"api_key": "***masked***", "nested": {"Authorization": "***masked***", "ok": 1}, "items": [1]}

    def test_json_formatter_merges_extra_fields(self):
        record = logging.LogRecord("Transcriptor", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.extra_fields = {"identifier": "dQw4w9WgXcQ", "x-api-key": "secret"}
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "hello world"
        assert payload["identifier"] == "dQw4w9WgXcQ"
        assert payload["x-api-key"] == "***masked***"

    def test_setup_is_idempotent_and_writes_json_file(self, tmp_path):
        log_file = tmp_path / "logs" / "transcriptor.jsonl"
        setup_logging("WARNING", log_file)
        logger = setup_logging("WARNING", log_file)

        managed = [h for h in logger.handlers if getattr(h, "_transcriptor_managed", False)]
        assert len(managed) == 2
        assert logger.propagate is False

        logging.getLogger("Transcriptor.registry").debug("detail for the file")
        for handler in managed:
            handler.flush()
        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[-1])["message"] == "detail for the file"
