"""Remote manifest source and remote file addressing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from overlay_sync.exceptions import ManifestParseError, TransferError
from overlay_sync.filesystem.manifest_codec import parse_manifest

if TYPE_CHECKING:
    from overlay_sync.models.manifest import Manifest

logger = logging.getLogger(__name__)

MANIFEST_RESOURCE = "manifest.xml"


def manifest_url(uri: str) -> str:
    return f"{uri.rstrip('/')}/{MANIFEST_RESOURCE}"


def file_url(uri: str, rel_path: str) -> str:
    """URL of an overlay file; path separators become forward slashes."""
    remote_path = rel_path.replace("\\", "/")
    return f"{uri.rstrip('/')}/{quote(remote_path)}"


async def fetch_remote_manifest(client: httpx.AsyncClient, uri: str) -> Manifest:
    """Fetch and parse the authoritative manifest of one overlay.

    Raises:
        TransferError: If the request fails, the server answers with an error
            status, or the body is not a valid manifest document.
    """
    url = manifest_url(uri)
    try:
        resp = await client.get(url)
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        msg = f"Failed to fetch manifest for overlay {uri}: {exc}"
        raise TransferError(msg) from exc

    try:
        manifest = parse_manifest(resp.content)
    except ManifestParseError as exc:
        msg = f"Invalid manifest for overlay {uri}: {exc}"
        raise TransferError(msg) from exc
    logger.debug("Fetched manifest for overlay %s with %d files", uri, len(manifest))
    return manifest
