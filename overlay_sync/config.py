"""Engine configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Overlay sync settings.

    Every field can be set through an ``OVERLAY_SYNC_``-prefixed environment
    variable or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="OVERLAY_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    install_root: Path = Path(".")
    overlays_file: Path = Path("overlays.toml")

    # Transfer
    http_timeout: float = Field(default=60.0, gt=0)
    max_concurrent_downloads: int = Field(default=0, ge=0)  # 0 = unbounded
    allow_insecure_http: bool = False

    # Repair
    verify_hashes: bool = False

    debug: bool = False
