"""Tests for the remote manifest source."""

from __future__ import annotations

import httpx
import pytest

from overlay_sync.exceptions import TransferError
from overlay_sync.services.remote_service import fetch_remote_manifest, file_url, manifest_url
from tests._overlay_helpers import CORE_URI, FakeDistribution, fingerprint


class TestUrls:
    def test_manifest_url(self) -> None:
        assert manifest_url(CORE_URI + "/") == CORE_URI + "/manifest.xml"

    def test_file_url_uses_forward_slashes(self) -> None:
        assert file_url(CORE_URI, "bin\\x64\\tool.dll") == CORE_URI + "/bin/x64/tool.dll"

    def test_file_url_quotes_special_characters(self) -> None:
        assert file_url(CORE_URI, "docs/read me#1.txt") == CORE_URI + "/docs/read%20me%231.txt"


class TestFetchRemoteManifest:
    async def test_fetches_manifest(
        self, distribution: FakeDistribution, http_client: httpx.AsyncClient
    ) -> None:
        distribution.overlay(CORE_URI).add("a.txt", b"abc").add("bin/b.dll", b"12345")
        manifest = await fetch_remote_manifest(http_client, CORE_URI)
        assert manifest.get("a.txt") == fingerprint("a.txt", b"abc")
        assert manifest.get("bin/b.dll") == fingerprint("bin/b.dll", b"12345")

    async def test_http_error_status(
        self, distribution: FakeDistribution, http_client: httpx.AsyncClient
    ) -> None:
        distribution.overlay(CORE_URI).manifest_status = 404
        with pytest.raises(TransferError, match="Failed to fetch manifest"):
            await fetch_remote_manifest(http_client, CORE_URI)

    async def test_network_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(TransferError) as exc_info:
                await fetch_remote_manifest(client, CORE_URI)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_unparseable_body(
        self, distribution: FakeDistribution, http_client: httpx.AsyncClient
    ) -> None:
        distribution.overlay(CORE_URI).manifest_body = b""
        with pytest.raises(TransferError, match="Invalid manifest"):
            await fetch_remote_manifest(http_client, CORE_URI)
