"""Data models for the overlay sync engine."""

from overlay_sync.models.manifest import ABSENT_HASH, HASH_SIZE, FileFingerprint, Manifest

__all__ = [
    "ABSENT_HASH",
    "HASH_SIZE",
    "FileFingerprint",
    "Manifest",
]
