"""Tests for the crash-safe registry store."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from Transcriptor.errors import RegistryCorruptionError, SchemaViolationError, StorageError
from Transcriptor.registry.artifacts import ArtifactStore
from Transcriptor.registry.store import RegistryStore

VIDEO_ID = "dQw4w9WgXcQ"
ENTRY = {"acquired_at": "250101T1200", "channel": "rick_astley", "title": "my_video"}


@pytest.fixture
def store(tmp_path: Path) -> RegistryStore:
    artifacts = ArtifactStore(tmp_path / "transcripts")
    return RegistryStore(tmp_path / "data.json", artifacts)


def test_missing_file_loads_as_empty_registry(store):
    assert store.load() == {}
    assert not store.path.exists()


def test_save_then_load_uses_pretty_printed_utf8(store):
    registry = {VIDEO_ID: dict(ENTRY, title="café")}
    store.save(registry)

    raw = store.path.read_text(encoding="utf-8")
    assert raw.startswith('{\n  "dQw4w9WgXcQ": {\n    "acquired_at"')
    assert "café" in raw
    assert store.load() == registry


def test_unparseable_file_is_corruption(store):
    store.path.write_text("{not json", encoding="utf-8")
    with pytest.raises(RegistryCorruptionError) as excinfo:
        store.load()
    assert excinfo.value.kind.value == "corruption"


def test_non_object_registry_is_schema_violation(store):
    store.path.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(SchemaViolationError):
        store.load()


@pytest.mark.parametrize(
    "registry",
    [
        {"short": ENTRY},
        {VIDEO_ID: dict(ENTRY, extra="field")},
        {VIDEO_ID: {"acquired_at": "250101T1200", "channel": "c"}},
        {VIDEO_ID: dict(ENTRY, acquired_at="251399T9999")},
        {VIDEO_ID: dict(ENTRY, channel="")},
        {VIDEO_ID: dict(ENTRY, title="t" * 501)},
    ],
)
def test_invalid_registry_on_disk_is_rejected(store, registry):
    store.path.write_text(json.dumps(registry), encoding="utf-8")
    with pytest.raises(SchemaViolationError):
        store.load()


def test_invalid_save_never_touches_disk(store):
    store.save({VIDEO_ID: ENTRY})
    before = store.path.read_bytes()

    with pytest.raises(SchemaViolationError):
        store.save({VIDEO_ID: {"acquired_at": "bad"}})

    assert store.path.read_bytes() == before
    assert store.cache.writing is False


def test_crash_before_rename_leaves_canonical_file_unchanged(store):
    store.save({VIDEO_ID: ENTRY})
    before = store.path.read_bytes()
    updated = {VIDEO_ID: dict(ENTRY, title="new_title")}

    with patch("Transcriptor.io_utils.os.replace", side_effect=OSError("power loss")):
        with pytest.raises(StorageError, match="Failed to save registry"):
            store.save(updated)

    assert store.path.read_bytes() == before
    assert [p.name for p in store.path.parent.iterdir() if p.name.endswith(".tmp")] == []
    assert store.cache.writing is False


def test_leftover_temp_file_is_ignored_on_load(store):
    store.save({VIDEO_ID: ENTRY})
    (store.path.parent / ".data.json.abc123.tmp").write_text('{"partial":', encoding="utf-8")
    assert store.load() == {VIDEO_ID: ENTRY}


def test_rename_refusal_falls_back_to_remove_and_replace(store):
    store.save({VIDEO_ID: ENTRY})
    updated = {VIDEO_ID: dict(ENTRY, title="replaced")}
    real_replace = os.replace
    calls = []

    def refuse_once(src, dst):
        calls.append((src, dst))
        if len(calls) == 1:
            raise PermissionError("file in use")
        return real_replace(src, dst)

    with patch("Transcriptor.io_utils.os.replace", side_effect=refuse_once):
        store.save(updated)

    assert store.load() == updated


def test_entry_exists_checks_artifact_presence(store):
    store.save({VIDEO_ID: ENTRY})
    assert store.entry_exists(VIDEO_ID) is False

    store.artifacts.write(VIDEO_ID, "hello", normalized_title="my_video")
    assert store.entry_exists(VIDEO_ID) is True


def test_upsert_and_remove_entries(store):
    other = "abcdefghijk"
    store.upsert_entry(VIDEO_ID, ENTRY)
    store.upsert_entry(other, dict(ENTRY, title="other"))
    assert set(store.load()) == {VIDEO_ID, other}

    assert store.remove_entries([VIDEO_ID, "zzzzzzzzzzz"]) == 1
    assert set(store.load()) == {other}


def test_upsert_rejects_invalid_entry(store):
    with pytest.raises(SchemaViolationError):
        store.upsert_entry(VIDEO_ID, {"acquired_at": "nope"})
    assert not store.path.exists()
