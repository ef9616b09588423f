"""Manifest data model: relative path -> content fingerprint."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

HASH_SIZE = 20  # SHA-1 digest length
ABSENT_HASH = b""


@dataclass(frozen=True)
class FileFingerprint:
    """Content identity of one file: its size and SHA-1 digest."""

    path: str
    size: int
    hash: bytes

    @classmethod
    def absent(cls, path: str) -> FileFingerprint:
        """Sentinel for a file that is known not to exist on disk."""
        return cls(path=path, size=0, hash=ABSENT_HASH)

    @property
    def is_absent(self) -> bool:
        return self.size == 0 and self.hash == ABSENT_HASH

    def matches(self, other: FileFingerprint) -> bool:
        """Whether both fingerprints describe byte-identical content."""
        return self.size == other.size and self.hash == other.hash


class Manifest:
    """Mapping from relative path to :class:`FileFingerprint`.

    Paths are unique keys; ``put`` replaces any existing entry for the same
    path.  No ordering is guaranteed.  ``entries`` and ``paths`` return
    snapshots, so callers may mutate the manifest while iterating them.
    """

    def __init__(self, entries: Iterable[FileFingerprint] = ()) -> None:
        self._files: dict[str, FileFingerprint] = {}
        for entry in entries:
            self.put(entry)

    def get(self, path: str) -> FileFingerprint | None:
        return self._files.get(path)

    def put(self, fingerprint: FileFingerprint) -> None:
        self._files[fingerprint.path] = fingerprint

    def remove(self, path: str) -> None:
        self._files.pop(path, None)

    def entries(self) -> list[FileFingerprint]:
        return list(self._files.values())

    def paths(self) -> list[str]:
        return list(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[FileFingerprint]:
        return iter(self.entries())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Manifest):
            return NotImplemented
        return self._files == other._files

    def __repr__(self) -> str:
        return f"Manifest({len(self._files)} files)"
