"""Tests for configuration loading and credentials."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import SecretStr

from Transcriptor.config import TranscriptorConfig
from Transcriptor.config.credentials import Credentials, load_api_key, validate_api_key
from Transcriptor.config.loader import load_config, parse_cli_overrides
from Transcriptor.errors import ConfigurationError, ErrorKind


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("TRANSCRIPTOR_RETRY__MAX_ATTEMPTS", raising=False)
    monkeypatch.delenv("TRANSCRIPTOR_HTTP__USER_AGENT", raising=False)
    monkeypatch.delenv("SCRAPE_CREATORS_API_KEY", raising=False)


def test_defaults():
    config = load_config()
    assert config.retry.max_attempts == 3
    assert config.retry.retry_after_cap_s == 60.0
    assert config.http.content_timeout_s == 30.0
    assert config.storage.registry_path.name == "data.json"
    assert config.cache.max_entries == 1000


def test_precedence_file_env_cli(tmp_path: Path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text("retry:\n  max_attempts: 4\nhttp:\n  user_agent: FromFile\n", encoding="utf-8")
    monkeypatch.setenv("TRANSCRIPTOR_RETRY__MAX_ATTEMPTS", "5")

    config = load_config(path)
    assert config.retry.max_attempts == 5
    assert config.http.user_agent == "FromFile"

    config = load_config(path, cli_overrides=parse_cli_overrides(["retry.max_attempts=6"]))
    assert config.retry.max_attempts == 6


def test_json_file(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"cache": {"max_entries": 10}}), encoding="utf-8")
    assert load_config(path).cache.max_entries == 10


@pytest.mark.parametrize(
    "name, text",
    [
        ("config.yaml", "retry: [unclosed"),
        ("config.json", "{not json"),
        ("config.toml", "x = 1"),
        ("config.yaml", "- a list"),
        ("config.yaml", "retry:\n  max_attemps: 3\n"),
    ],
)
def test_bad_files_raise(tmp_path: Path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_missing_file_raises(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "absent.yaml")


def test_cli_override_parsing():
    assert parse_cli_overrides(["retry.jitter=0.5", "http.user_agent=Agent/2"]) == {
        "retry": {"jitter": 0.5},
        "http": {"user_agent": "Agent/2"},
    }
    with pytest.raises(ConfigurationError):
        parse_cli_overrides(["retry.jitter"])


def test_config_hash_is_stable():
    assert TranscriptorConfig().config_hash() == TranscriptorConfig().config_hash()
    changed = TranscriptorConfig.model_validate({"retry": {"max_attempts": 9}})
    assert changed.config_hash() != TranscriptorConfig().config_hash()


class TestCredentials:
    def test_loads_key_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SCRAPE_CREATORS_API_KEY", "  secret-key  ")
        assert load_api_key() == "secret-key"

    def test_loads_key_from_dotenv(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("SCRAPE_CREATORS_API_KEY=from-dotenv\n", encoding="utf-8")
        assert load_api_key() == "from-dotenv"

    def test_missing_key(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ConfigurationError) as excinfo:
            load_api_key()
        assert excinfo.value.kind is ErrorKind.VALIDATION

    def test_secret_is_not_rendered(self):
        creds = Credentials(api_key=SecretStr("hidden-value"))
        assert "hidden-value" not in repr(creds)
        assert validate_api_key(creds.api_key) == "hidden-value"

    @pytest.mark.parametrize("value", [None, "", "x" * 501, "ab\x07cd"])
    def test_invalid_keys(self, value):
        with pytest.raises(ConfigurationError):
            validate_api_key(value)
