"""Shared test fixtures for overlay sync."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from overlay_sync.config import Settings
from tests._overlay_helpers import FakeDistribution

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path


@pytest.fixture
def distribution() -> FakeDistribution:
    return FakeDistribution()


@pytest.fixture
async def http_client(distribution: FakeDistribution) -> AsyncGenerator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=distribution.transport()) as client:
        yield client


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    root = tmp_path / "install"
    root.mkdir()
    return root


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(_env_file=None, install_root=tmp_path / "install")
