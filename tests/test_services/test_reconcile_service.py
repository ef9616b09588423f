"""Tests for the local/remote manifest diff."""

from __future__ import annotations

from overlay_sync.models.manifest import FileFingerprint, Manifest
from overlay_sync.services.reconcile_service import compute_plan, files_to_delete, is_unchanged
from tests._overlay_helpers import fingerprint

A = fingerprint("a.txt", b"abc")
B = fingerprint("b.txt", b"hello")


class TestIsUnchanged:
    def test_missing_local_entry(self) -> None:
        assert is_unchanged(None, A) is False

    def test_identical_entry(self) -> None:
        assert is_unchanged(fingerprint("a.txt", b"abc"), A) is True

    def test_absent_sentinel_needs_fetch(self) -> None:
        assert is_unchanged(FileFingerprint.absent("a.txt"), A) is False

    def test_same_size_different_hash(self) -> None:
        assert is_unchanged(fingerprint("a.txt", b"xyz"), A) is False


class TestComputePlan:
    def test_empty_local_fetches_everything(self) -> None:
        plan = compute_plan(Manifest(), Manifest([A, B]))
        assert plan.to_fetch == ["a.txt", "b.txt"]
        assert plan.to_delete == []
        assert plan.unchanged == []

    def test_only_changed_file_is_fetched(self) -> None:
        local = Manifest([A, fingerprint("b.txt", b"HELLO")])
        plan = compute_plan(local, Manifest([A, B]))
        assert plan.to_fetch == ["b.txt"]
        assert plan.unchanged == ["a.txt"]

    def test_dropped_files_are_deleted(self) -> None:
        local = Manifest([A, B, fingerprint("old/c.txt", b"c")])
        plan = compute_plan(local, Manifest([A]))
        assert plan.to_delete == ["b.txt", "old/c.txt"]
        assert files_to_delete(local, Manifest([A])) == plan.to_delete

    def test_identical_manifests_plan_nothing(self) -> None:
        plan = compute_plan(Manifest([A, B]), Manifest([A, B]))
        assert plan.is_empty
        assert plan.unchanged == ["a.txt", "b.txt"]
