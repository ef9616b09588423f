"""Local manifest cache: load, repair against disk, and persist."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import re
import stat
import tempfile
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from overlay_sync.exceptions import ManifestParseError
from overlay_sync.filesystem.manifest_codec import dump_manifest, parse_manifest
from overlay_sync.models.manifest import FileFingerprint, Manifest

logger = logging.getLogger(__name__)

CACHE_DIR = ".cache"
_CACHE_NAME_LIMIT = 32
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_HASH_CHUNK = 64 * 1024


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


# Read once at import; os.umask is process-wide and not safe to toggle from worker threads.
_FILE_MODE = _default_file_mode()


class CacheStatus(StrEnum):
    """Outcome of reading the local manifest cache."""

    LOADED = "loaded"
    MISSING = "missing"
    CORRUPT = "corrupt"


@dataclass
class LocalLoad:
    """Result of :func:`load_local`.

    ``manifest`` is always usable: it is empty unless ``status`` is LOADED.
    """

    manifest: Manifest
    status: CacheStatus
    error: ManifestParseError | None = None


def hash_file(path: Path) -> bytes:
    """Compute the SHA-1 digest of a file."""
    sha = hashlib.sha1()  # noqa: S324 - content identity, not security
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK), b""):
            sha.update(chunk)
    return sha.digest()


def fingerprint_file(path: Path, rel_path: str) -> FileFingerprint:
    """Fingerprint the file at ``path``, recorded under ``rel_path``."""
    size = path.stat().st_size
    return FileFingerprint(path=rel_path, size=size, hash=hash_file(path))


def local_manifest_path(install_root: Path, uri: str) -> Path:
    """Derive the cache file for an overlay URI under ``install_root``.

    URIs longer than 32 characters become ``base64(sha1(uri))`` joined to the
    URI's last 32 characters, so the name stays short and recognizable.
    """
    name = uri
    if len(name) > _CACHE_NAME_LIMIT:
        digest = hashlib.sha1(name.encode("utf-8")).digest()  # noqa: S324
        name = base64.b64encode(digest).decode("ascii") + "_" + name[-_CACHE_NAME_LIMIT:]
    name = _INVALID_FILENAME_CHARS.sub("_", name)
    return install_root / CACHE_DIR / f"{name}.xml"


def repair(
    fingerprint: FileFingerprint,
    install_root: Path,
    *,
    verify_hashes: bool = False,
) -> FileFingerprint:
    """Reconcile a cached fingerprint with the file actually on disk.

    A file that cannot be stat'ed (missing, or a parent that is no longer a
    directory) yields the absent sentinel.  When the size on disk equals
    the cached size the cached hash is trusted, so same-size corruption goes
    unnoticed unless ``verify_hashes`` forces a rehash.
    """
    path = install_root / fingerprint.path
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return FileFingerprint.absent(fingerprint.path)
    except OSError as exc:
        logger.debug("Cannot stat %s, treating it as missing: %s", path, exc)
        return FileFingerprint.absent(fingerprint.path)
    if size == fingerprint.size and not verify_hashes:
        return fingerprint
    logger.debug(
        "Rehashing %s (cached size %d, actual %d)", fingerprint.path, fingerprint.size, size
    )
    try:
        return fingerprint_file(path, fingerprint.path)
    except OSError as exc:
        logger.warning("Cannot hash %s, treating it as missing: %s", path, exc)
        return FileFingerprint.absent(fingerprint.path)


def load_local(
    cache_file: Path,
    install_root: Path,
    *,
    verify_hashes: bool = False,
) -> LocalLoad:
    """Load and repair the local manifest cache.

    A missing or unreadable cache yields an empty manifest; the caller can
    tell the cases apart through ``status``.
    """
    try:
        data = cache_file.read_bytes()
    except FileNotFoundError:
        return LocalLoad(manifest=Manifest(), status=CacheStatus.MISSING)
    except OSError as exc:
        logger.warning("Failed to read manifest cache %s: %s", cache_file, exc)
        error = ManifestParseError(str(exc))
        return LocalLoad(manifest=Manifest(), status=CacheStatus.CORRUPT, error=error)

    try:
        cached = parse_manifest(data)
    except ManifestParseError as exc:
        logger.warning("Ignoring corrupt manifest cache %s: %s", cache_file, exc)
        return LocalLoad(manifest=Manifest(), status=CacheStatus.CORRUPT, error=exc)

    manifest = Manifest(
        repair(entry, install_root, verify_hashes=verify_hashes) for entry in cached.entries()
    )
    return LocalLoad(manifest=manifest, status=CacheStatus.LOADED)


def write_atomic(target: Path, data: bytes) -> None:
    """Write ``data`` to ``target`` through a temp file renamed into place.

    Parent directories are created as needed.  The final name never refers
    to a partially written file.  An existing target keeps its permission
    bits; a new file gets the umask-derived mode a plain ``open`` would give.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        mode = stat.S_IMODE(target.stat().st_mode)
    except OSError:
        mode = _FILE_MODE
    fd, temp_path = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".part", dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, target)
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise


def save_local(manifest: Manifest, cache_file: Path) -> None:
    """Persist the local manifest cache."""
    write_atomic(cache_file, dump_manifest(manifest))
    logger.debug("Saved manifest cache %s with %d entries", cache_file, len(manifest))
