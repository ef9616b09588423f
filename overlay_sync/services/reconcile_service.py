"""Diff between a local (cached) manifest and the authoritative remote one."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from overlay_sync.models.manifest import FileFingerprint, Manifest


@dataclass
class OverlayPlan:
    """What a sync of one overlay would do."""

    to_delete: list[str] = field(default_factory=list)
    to_fetch: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_fetch


def is_unchanged(local_entry: FileFingerprint | None, remote_entry: FileFingerprint) -> bool:
    """A file needs no transfer when the local entry has equal size and hash bytes."""
    return local_entry is not None and local_entry.matches(remote_entry)


def files_to_delete(local: Manifest, remote: Manifest) -> list[str]:
    """Locally tracked paths the remote manifest no longer lists."""
    return sorted(path for path in local.paths() if path not in remote)


def compute_plan(local: Manifest, remote: Manifest) -> OverlayPlan:
    plan = OverlayPlan(to_delete=files_to_delete(local, remote))
    for remote_entry in sorted(remote.entries(), key=lambda e: e.path):
        if is_unchanged(local.get(remote_entry.path), remote_entry):
            plan.unchanged.append(remote_entry.path)
        else:
            plan.to_fetch.append(remote_entry.path)
    return plan
