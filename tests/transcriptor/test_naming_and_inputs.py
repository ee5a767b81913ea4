"""Tests for identifiers, input parsing, title normalization and timestamps."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from Transcriptor.errors import ErrorKind, TranscriptorError
from Transcriptor.identifiers import (
    InputFileError,
    extract_identifier,
    is_valid_identifier,
    parse_input_file,
    parse_input_text,
    validate_locator,
)
from Transcriptor.naming import artifact_filename, normalize_title
from Transcriptor.timestamps import (
    convert_date_to_prefix,
    convert_legacy_date,
    extract_date_prefix,
    generate_acquired_at,
    is_valid_timestamp,
)


class TestIdentifiers:
    @pytest.mark.parametrize("value", ["dQw4w9WgXcQ", "a-b_c-d_e-f", "00000000000"])
    def test_valid(self, value):
        assert is_valid_identifier(value)

    @pytest.mark.parametrize("value", ["", "short", "dQw4w9WgXcQX", "dQw4w9WgXc!", None, 12345678901])
    def test_invalid(self, value):
        assert not is_valid_identifier(value)

    @pytest.mark.parametrize(
        "text",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtube.com/watch?feature=share&v=dQw4w9WgXcQ&t=10",
            "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?si=abc",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://www.youtube.com/v/dQw4w9WgXcQ",
            "- [Talk](https://youtu.be/dQw4w9WgXcQ)",
        ],
    )
    def test_extract(self, text):
        assert extract_identifier(text) == "dQw4w9WgXcQ"

    def test_extract_rejects_other_sites(self):
        assert extract_identifier("https://vimeo.com/123456789") is None

    def test_locator_validation(self):
        assert validate_locator("https://youtu.be/dQw4w9WgXcQ") == "https://youtu.be/dQw4w9WgXcQ"
        with pytest.raises(TranscriptorError) as excinfo:
            validate_locator("https://example.com/watch?v=dQw4w9WgXcQ")
        assert excinfo.value.kind is ErrorKind.VALIDATION


class TestInputParsing:
    def test_skips_comments_blanks_and_duplicates(self):
        text = (
            "# my list\n"
            "\n"
            "https://youtu.be/dQw4w9WgXcQ\n"
            "not a url\n"
            "https://www.youtube.com/watch?v=abcdefghijk\n"
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ\n"
        )
        identifiers, stats = parse_input_text(text)

        assert identifiers == ["dQw4w9WgXcQ", "abcdefghijk"]
        assert stats.skipped_lines == 2
        assert stats.invalid_lines == 1
        assert stats.duplicates == 1

    def test_overlong_lines_are_invalid(self):
        identifiers, stats = parse_input_text("https://youtu.be/dQw4w9WgXcQ" + "x" * 11000)
        assert identifiers == []
        assert stats.invalid_lines == 1

    def test_caps_number_of_urls(self):
        lines = [f"https://youtu.be/{i:011d}" for i in range(1005)]
        identifiers, stats = parse_input_text("\n".join(lines))
        assert len(identifiers) == 1000
        assert stats.truncated

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(InputFileError, match="not found"):
            parse_input_file(tmp_path / "youtube.md")

    def test_binary_file(self, tmp_path: Path):
        path = tmp_path / "youtube.md"
        path.write_bytes(b"https://youtu.be/dQw4w9WgXcQ\x00\x00")
        with pytest.raises(InputFileError, match="binary"):
            parse_input_file(path)

    def test_reads_file(self, tmp_path: Path):
        path = tmp_path / "youtube.md"
        path.write_text("https://youtu.be/dQw4w9WgXcQ\n", encoding="utf-8")
        assert parse_input_file(path) == ["dQw4w9WgXcQ"]


class TestNormalizeTitle:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("My Video!", "my_video"),
            ("  Hello   World  ", "hello_world"),
            ("Crème Brûlée: How-To", "creme_brulee_how-to"),
            ("a / b \\ c", "a_b_c"),
            ("日本語", "untitled"),
            ("", "untitled"),
            (None, "untitled"),
            ("___", "untitled"),
        ],
    )
    def test_examples(self, raw, expected):
        assert normalize_title(raw) == expected

    def test_truncates_without_trailing_separator(self):
        result = normalize_title("a" * 99 + " bcd")
        assert result == "a" * 99
        assert len(normalize_title("word " * 50)) <= 100

    def test_is_idempotent(self):
        once = normalize_title("Some  Title -- Part 2!")
        assert normalize_title(once) == once

    def test_artifact_filename(self):
        assert artifact_filename("dQw4w9WgXcQ", "my_video") == "tr_dQw4w9WgXcQ_my_video.md"
        assert artifact_filename("dQw4w9WgXcQ") == "tr_dQw4w9WgXcQ.md"


class TestTimestamps:
    def test_generate(self):
        assert generate_acquired_at(datetime(2025, 1, 2, 3, 4)) == "250102T0304"
        assert is_valid_timestamp(generate_acquired_at())

    @pytest.mark.parametrize("value", ["250230T1200", "251301T0000", "250101T2400", "2501011200", 250101])
    def test_invalid_timestamps(self, value):
        assert not is_valid_timestamp(value)

    def test_timestamps_sort_chronologically(self):
        stamps = ["251231T2359", "240101T0000", "250101T0000", "241231T2359"]
        assert sorted(stamps) == ["240101T0000", "241231T2359", "250101T0000", "251231T2359"]

    def test_legacy_conversion(self):
        assert convert_legacy_date("2024-03-15") == "240315T0000"
        assert convert_date_to_prefix("2024-03-15") == "240315"
        assert extract_date_prefix("240315T0930") == "240315"
        with pytest.raises(ValueError):
            convert_legacy_date("2024-02-30")
