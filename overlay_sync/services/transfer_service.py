"""Transfer worker: download one overlay file and record its fingerprint."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

import httpx

from overlay_sync.exceptions import FilesystemError, TransferError
from overlay_sync.filesystem.cache_store import fingerprint_file, write_atomic
from overlay_sync.filesystem.paths import resolve_within
from overlay_sync.services.reconcile_service import is_unchanged
from overlay_sync.services.remote_service import file_url

if TYPE_CHECKING:
    from pathlib import Path

    from overlay_sync.models.manifest import FileFingerprint, Manifest

logger = logging.getLogger(__name__)


class TransferWorker:
    """Fetches remote files of one overlay into its install path.

    Every worker of an overlay shares that overlay's local manifest and lock.
    The lock is held for the unchanged check and for the post-download
    upsert, never across network or disk I/O.

    Args:
        client: HTTP client used for downloads.
        uri: Remote location of the overlay.
        install_path: Directory the overlay is mounted at.
        local: The overlay's local manifest, updated in place.
        lock: Lock guarding ``local``.
        semaphore: Optional cap on concurrent downloads.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        uri: str,
        install_path: Path,
        local: Manifest,
        lock: asyncio.Lock,
        semaphore: asyncio.Semaphore | None = None,
    ) -> None:
        self._client = client
        self._uri = uri
        self._install_path = install_path
        self._local = local
        self._lock = lock
        self._semaphore = semaphore

    async def transfer(self, remote_entry: FileFingerprint) -> bool:
        """Bring one file up to date. Returns True if it was downloaded.

        Raises:
            TransferError: If the file cannot be fetched.
            FilesystemError: If the file cannot be written or hashed.
        """
        async with self._lock:
            if is_unchanged(self._local.get(remote_entry.path), remote_entry):
                return False

        try:
            target = resolve_within(self._install_path, remote_entry.path)
        except (OSError, RuntimeError) as exc:
            # RuntimeError is how Python < 3.13 reports a symlink loop.
            msg = f"Cannot resolve overlay file {remote_entry.path}: {exc}"
            raise FilesystemError(msg) from exc
        if target is None:
            msg = f"Overlay file {remote_entry.path} resolves outside {self._install_path}"
            raise FilesystemError(msg)

        async with self._semaphore or contextlib.nullcontext():
            logger.info("Downloading overlay file %s/%s", self._uri, remote_entry.path)
            data = await self._fetch(file_url(self._uri, remote_entry.path))
            try:
                await asyncio.to_thread(write_atomic, target, data)
                fingerprint = await asyncio.to_thread(fingerprint_file, target, remote_entry.path)
            except OSError as exc:
                msg = f"Failed to write overlay file {target}: {exc}"
                raise FilesystemError(msg) from exc

        if not fingerprint.matches(remote_entry):
            logger.warning(
                "Overlay file %s/%s does not match its manifest entry (size %d, expected %d)",
                self._uri,
                remote_entry.path,
                fingerprint.size,
                remote_entry.size,
            )

        async with self._lock:
            self._local.put(fingerprint)
        return True

    async def _fetch(self, url: str) -> bytes:
        try:
            resp = await self._client.get(url)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Failed to download overlay file {url}: {exc}"
            raise TransferError(msg) from exc
        return resp.content
