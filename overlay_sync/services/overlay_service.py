"""Overlay coordinator: load, clean, apply and persist one overlay."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from overlay_sync.exceptions import FilesystemError
from overlay_sync.filesystem.cache_store import (
    CacheStatus,
    load_local,
    local_manifest_path,
    save_local,
)
from overlay_sync.models.manifest import Manifest
from overlay_sync.services.reconcile_service import OverlayPlan, compute_plan, files_to_delete
from overlay_sync.services.remote_service import fetch_remote_manifest
from overlay_sync.services.transfer_service import TransferWorker

if TYPE_CHECKING:
    from pathlib import Path

    import httpx

    from overlay_sync.schemas.overlay import OverlaySpec

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Outcome of a successful apply phase."""

    downloaded: int = 0
    unchanged: int = 0


class Overlay:
    """Runtime state of one overlay during a sync session.

    Phases must run in order: :meth:`load`, :meth:`clean`, :meth:`apply`,
    :meth:`persist`.  Only the local manifest is persisted; everything else
    lives for one session.

    Args:
        install_root: Shared installation root; the cache file lives here.
        spec: Overlay source and mount point.
        client: HTTP client for manifest and file requests.
        verify_hashes: Rehash cached files even when their size matches.
        max_concurrent_downloads: Per-overlay download cap, 0 for unbounded.
    """

    def __init__(
        self,
        install_root: Path,
        spec: OverlaySpec,
        client: httpx.AsyncClient,
        *,
        verify_hashes: bool = False,
        max_concurrent_downloads: int = 0,
    ) -> None:
        self.spec = spec
        self.install_path = install_root / spec.path if spec.path else install_root
        self.cache_file = local_manifest_path(install_root, spec.uri)
        self.remote = Manifest()
        self.local = Manifest()
        self.cache_status: CacheStatus | None = None
        self.deleted = 0
        self._client = client
        self._verify_hashes = verify_hashes
        self._max_concurrent_downloads = max_concurrent_downloads
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """Fetch the remote manifest and load+repair the local cache concurrently.

        Raises:
            TransferError: If the remote manifest cannot be obtained.
        """
        remote, local_load = await asyncio.gather(
            fetch_remote_manifest(self._client, self.spec.uri),
            asyncio.to_thread(
                load_local,
                self.cache_file,
                self.install_path,
                verify_hashes=self._verify_hashes,
            ),
        )
        self.remote = remote
        self.local = local_load.manifest
        self.cache_status = local_load.status
        logger.debug(
            "Loaded overlay %s: %d remote files, %d cached (%s)",
            self.spec.uri,
            len(self.remote),
            len(self.local),
            local_load.status,
        )

    def plan(self) -> OverlayPlan:
        return compute_plan(self.local, self.remote)

    def clean(self) -> int:
        """Delete files the remote manifest no longer lists.

        A file that is already missing counts as deleted.  Otherwise this is
        best effort: a failed deletion is logged and its cache entry kept so
        the next run retries it.  Runs before :meth:`apply`, so nothing else
        touches the local manifest meanwhile.
        """
        deleted = 0
        for path in files_to_delete(self.local, self.remote):
            logger.debug("Deleting old overlay file %s/%s", self.spec.path, path)
            try:
                (self.install_path / path).unlink(missing_ok=True)
            except NotADirectoryError:
                # A parent turned into a file; the entry is gone all the same.
                pass
            except OSError as exc:
                logger.warning(
                    "Failed to delete old overlay file %s/%s: %s", self.spec.path, path, exc
                )
                continue
            self.local.remove(path)
            deleted += 1
        self.deleted = deleted
        return deleted

    async def apply(self) -> ApplyResult:
        """Download every remote file whose local fingerprint differs.

        All transfers run to completion.  If any failed, the first failure is
        raised after the others are logged, and the cache must not be
        persisted.
        """
        logger.info("Updating overlay %s in %s", self.spec.uri, self.spec.path or ".")
        semaphore = (
            asyncio.Semaphore(self._max_concurrent_downloads)
            if self._max_concurrent_downloads > 0
            else None
        )
        worker = TransferWorker(
            self._client,
            self.spec.uri,
            self.install_path,
            self.local,
            self._lock,
            semaphore,
        )
        remote_entries = self.remote.entries()
        outcomes = await asyncio.gather(
            *(worker.transfer(entry) for entry in remote_entries),
            return_exceptions=True,
        )

        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            for failure in failures[1:]:
                logger.warning("Overlay %s: another transfer failed: %s", self.spec.uri, failure)
            raise failures[0]

        downloaded = sum(1 for outcome in outcomes if outcome is True)
        return ApplyResult(downloaded=downloaded, unchanged=len(remote_entries) - downloaded)

    async def persist(self) -> None:
        """Write the local manifest cache. Only valid after a successful apply."""
        async with self._lock:
            try:
                await asyncio.to_thread(save_local, self.local, self.cache_file)
            except OSError as exc:
                msg = f"Failed to save manifest cache {self.cache_file}: {exc}"
                raise FilesystemError(msg) from exc

    async def sync(self) -> ApplyResult:
        """Run all phases for this overlay alone."""
        await self.load()
        await asyncio.to_thread(self.clean)
        result = await self.apply()
        await self.persist()
        return result
