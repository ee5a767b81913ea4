"""Tests for the integrity sweep."""

from __future__ import annotations

import os

import pytest

from Transcriptor.errors import StorageError
from Transcriptor.links import LinkRemovalResult
from Transcriptor.maintenance.integrity import IntegritySweep

PRESENT = "aaaaaaaaaaa"
ORPHAN = "bbbbbbbbbbb"
ENTRY = {"acquired_at": "250101T1200", "channel": "chan", "title": "title"}


class FakeStore:
    """In-memory registry backend that counts saves."""

    def __init__(self, registry, present=(), fail_save=False, fail_exists=()):
        self.registry = registry
        self.present = set(present)
        self.fail_save = fail_save
        self.fail_exists = set(fail_exists)
        self.saves = []

    def load(self):
        return dict(self.registry)

    def save(self, registry):
        if self.fail_save:
            raise OSError("read-only filesystem")
        self.saves.append(dict(registry))
        self.registry = dict(registry)

    def entry_exists(self, identifier):
        if identifier in self.fail_exists:
            raise PermissionError("permission denied")
        return identifier in self.present


class FakeLinks:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def create_link(self, identifier, filename):
        raise AssertionError("sweep never creates links")

    def remove_links(self, identifier):
        self.calls.append(identifier)
        if self.fail:
            raise OSError("link dir unreadable")
        return LinkRemovalResult(removed=1)


def test_removes_orphan_with_exactly_one_save():
    store = FakeStore({PRESENT: ENTRY, ORPHAN: ENTRY}, present={PRESENT})
    links = FakeLinks()

    report = IntegritySweep(store, links).validate_integrity()

    assert report.checked == 2
    assert report.orphaned == 1
    assert report.links_removed == 1
    assert links.calls == [ORPHAN]
    assert store.saves == [{PRESENT: ENTRY}]


def test_many_orphans_still_save_once():
    ids = [f"{c}" * 11 for c in "cdefg"]
    store = FakeStore({i: ENTRY for i in ids})

    report = IntegritySweep(store).validate_integrity()

    assert report.orphaned == 5
    assert store.saves == [{}]


def test_clean_registry_is_not_saved():
    store = FakeStore({PRESENT: ENTRY}, present={PRESENT})
    report = IntegritySweep(store).validate_integrity()
    assert report.orphaned == 0
    assert store.saves == []


def test_empty_registry_returns_early():
    report = IntegritySweep(FakeStore({})).validate_integrity()
    assert report.checked == 0
    assert report.message == "Registry is empty, nothing to validate"


def test_dry_run_reports_without_changes():
    store = FakeStore({PRESENT: ENTRY, ORPHAN: ENTRY}, present={PRESENT})
    links = FakeLinks()

    report = IntegritySweep(store, links).validate_integrity(dry_run=True)

    assert report.orphaned == 1
    assert "would remove 1" in report.message
    assert links.calls == []
    assert store.saves == []


def test_per_entry_problems_are_collected():
    store = FakeStore(
        {PRESENT: "not an object", ORPHAN: ENTRY, "ccccccccccc": ENTRY},
        fail_exists={"ccccccccccc"},
    )
    links = FakeLinks(fail=True)

    report = IntegritySweep(store, links).validate_integrity()

    assert report.checked == 3
    assert report.orphaned == 1
    assert report.links_failed == 1
    assert len(report.errors) == 3
    assert store.saves == [{PRESENT: "not an object", "ccccccccccc": ENTRY}]


def test_save_failure_raises_storage_error():
    store = FakeStore({ORPHAN: ENTRY}, fail_save=True)
    with pytest.raises(StorageError, match="save failed"):
        IntegritySweep(store).validate_integrity()


def test_sweep_against_real_store(app_ctx):
    artifacts = app_ctx.artifacts
    artifacts.write(PRESENT, "kept", normalized_title="kept")
    orphan_path = artifacts.write(ORPHAN, "gone", normalized_title="gone")
    app_ctx.store.save({PRESENT: ENTRY, ORPHAN: ENTRY})
    assert app_ctx.links.create_link(ORPHAN, orphan_path.name).success
    link = app_ctx.links.links_dir / orphan_path.name
    orphan_path.unlink()

    report = app_ctx.sweep.validate_integrity()

    assert report.orphaned == 1
    assert report.links_removed == 1
    assert not os.path.lexists(link)
    assert set(app_ctx.store.load()) == {PRESENT}
