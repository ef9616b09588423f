"""Exception types raised by the overlay sync engine.

Convention:
- ``ManifestParseError``: a manifest document could not be read.  When the
  document is the local cache this is recovered as "nothing known yet" and
  never reaches callers; for a remote manifest it is wrapped in
  ``TransferError``.
- ``TransferError``: the remote manifest or a remote file could not be
  obtained.  Fatal to the overlay's current sync attempt.
- ``FilesystemError``: writing or hashing a downloaded file failed.  Fatal to
  the overlay's apply phase.  Deletion failures during clean are logged and
  never raised.
"""

from __future__ import annotations


class OverlaySyncError(Exception):
    """Base class for overlay sync failures."""


class ManifestParseError(OverlaySyncError):
    """Raised when a manifest document is malformed or violates the schema."""


class TransferError(OverlaySyncError):
    """Raised when a remote manifest or file yields no usable data."""


class FilesystemError(OverlaySyncError):
    """Raised when a downloaded file cannot be written or fingerprinted."""
