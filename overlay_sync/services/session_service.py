"""Sync session: bring every configured overlay of an installation up to date."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

import httpx

from overlay_sync.config import Settings
from overlay_sync.exceptions import OverlaySyncError
from overlay_sync.services.overlay_service import Overlay

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from overlay_sync.schemas.overlay import OverlaySpec
    from overlay_sync.services.reconcile_service import OverlayPlan

logger = logging.getLogger(__name__)


class OverlayStatus(StrEnum):
    SYNCED = "synced"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class OverlayResult:
    """Outcome of one overlay within a session."""

    spec: OverlaySpec
    status: OverlayStatus
    downloaded: int = 0
    deleted: int = 0
    error: Exception | None = None


@dataclass
class SyncReport:
    """Per-overlay results, in configuration order."""

    results: list[OverlayResult] = field(default_factory=list)

    @property
    def failed(self) -> list[OverlayResult]:
        return [r for r in self.results if r.status == OverlayStatus.FAILED]

    @property
    def ok(self) -> bool:
        return all(r.status == OverlayStatus.SYNCED for r in self.results)


@dataclass
class OverlayPreview:
    """Planned changes for one overlay, or the error that prevented planning."""

    spec: OverlaySpec
    plan: OverlayPlan | None = None
    error: Exception | None = None


class SyncSession:
    """Owns the overlays of one installation for a single sync run.

    Loading and cleaning run concurrently across overlays; applying runs one
    overlay at a time in configuration order, so later overlays win when they
    target the same files.  A failing overlay never stops the others.

    Args:
        install_root: Shared installation root.
        specs: Overlays in apply order.
        settings: Engine settings; defaults are read from the environment.
        client: HTTP client to use.  When omitted the session creates one and
            closes it on exit.
    """

    def __init__(
        self,
        install_root: Path,
        specs: Sequence[OverlaySpec],
        *,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.install_root = install_root
        self.settings = settings or Settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=self.settings.http_timeout,
            follow_redirects=True,
        )
        self._abort = asyncio.Event()
        self.overlays = [
            Overlay(
                install_root,
                spec,
                self._client,
                verify_hashes=self.settings.verify_hashes,
                max_concurrent_downloads=self.settings.max_concurrent_downloads,
            )
            for spec in specs
        ]

    async def close(self) -> None:
        """Close the HTTP client if this session created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SyncSession:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def abort(self) -> None:
        """Stop starting new overlay applies. In-flight transfers finish."""
        self._abort.set()

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    async def _load_all(self) -> dict[int, Exception]:
        """Load every overlay concurrently; returns load errors by overlay index."""
        outcomes = await asyncio.gather(
            *(overlay.load() for overlay in self.overlays),
            return_exceptions=True,
        )
        errors: dict[int, Exception] = {}
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, OverlaySyncError):
                uri = self.overlays[index].spec.uri
                logger.error("Failed to load overlay %s: %s", uri, outcome)
                errors[index] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
        return errors

    async def run(self) -> SyncReport:
        """Load, clean and apply every overlay, persisting each one that succeeds."""
        self.install_root.mkdir(parents=True, exist_ok=True)
        load_errors = await self._load_all()
        loaded = [o for i, o in enumerate(self.overlays) if i not in load_errors]

        await asyncio.gather(*(asyncio.to_thread(overlay.clean) for overlay in loaded))

        report = SyncReport()
        for index, overlay in enumerate(self.overlays):
            if index in load_errors:
                report.results.append(
                    OverlayResult(overlay.spec, OverlayStatus.FAILED, error=load_errors[index])
                )
                continue
            if self.aborted:
                logger.info("Session aborted, skipping overlay %s", overlay.spec.uri)
                report.results.append(
                    OverlayResult(overlay.spec, OverlayStatus.SKIPPED, deleted=overlay.deleted)
                )
                continue
            try:
                applied = await overlay.apply()
                await overlay.persist()
            except OverlaySyncError as exc:
                logger.error("Failed to apply overlay %s: %s", overlay.spec.uri, exc)
                report.results.append(
                    OverlayResult(
                        overlay.spec,
                        OverlayStatus.FAILED,
                        deleted=overlay.deleted,
                        error=exc,
                    )
                )
                continue
            report.results.append(
                OverlayResult(
                    overlay.spec,
                    OverlayStatus.SYNCED,
                    downloaded=applied.downloaded,
                    deleted=overlay.deleted,
                )
            )
        return report

    async def plan(self) -> list[OverlayPreview]:
        """Load every overlay and diff it without touching the installation."""
        load_errors = await self._load_all()
        return [
            OverlayPreview(overlay.spec, error=load_errors[index])
            if index in load_errors
            else OverlayPreview(overlay.spec, plan=overlay.plan())
            for index, overlay in enumerate(self.overlays)
        ]

    def owned_paths(self) -> set[str]:
        """Install-root-relative paths listed by the loaded remote manifests."""
        return {
            posixpath.join(overlay.spec.path, path) if overlay.spec.path else path
            for overlay in self.overlays
            for path in overlay.remote.paths()
        }
