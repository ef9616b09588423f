"""Tests for engine settings."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from overlay_sync.config import Settings


class TestSettings:
    def test_default_settings(self) -> None:
        s = Settings(_env_file=None)
        assert s.install_root == Path(".")
        assert s.overlays_file == Path("overlays.toml")
        assert s.max_concurrent_downloads == 0
        assert s.verify_hashes is False
        assert s.allow_insecure_http is False

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("OVERLAY_SYNC_INSTALL_ROOT", str(tmp_path))
        monkeypatch.setenv("OVERLAY_SYNC_MAX_CONCURRENT_DOWNLOADS", "4")
        monkeypatch.setenv("OVERLAY_SYNC_VERIFY_HASHES", "true")
        s = Settings(_env_file=None)
        assert s.install_root == tmp_path
        assert s.max_concurrent_downloads == 4
        assert s.verify_hashes is True

    def test_rejects_negative_download_cap(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_concurrent_downloads=-1)

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, http_timeout=0)
