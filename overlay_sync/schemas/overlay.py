"""Overlay configuration schemas."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from overlay_sync.filesystem.paths import normalize_relative_path

_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


class OverlaySpec(BaseModel):
    """One overlay: where its files come from and where they are mounted.

    ``path`` is relative to the installation root; an empty path mounts the
    overlay at the root itself.
    """

    model_config = ConfigDict(frozen=True)

    uri: str = Field(min_length=1)
    path: str = ""

    @field_validator("uri")
    @classmethod
    def uri_must_be_http_url(cls, v: str) -> str:
        """Require an http(s) URL with a host; trailing slashes are dropped."""
        _ = cls
        normalized = v.strip().rstrip("/")
        parsed = urlparse(normalized)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            msg = f"Overlay URI must include scheme and host: {v!r}"
            raise ValueError(msg)
        return normalized

    @field_validator("path")
    @classmethod
    def path_must_stay_inside_root(cls, v: str) -> str:
        _ = cls
        return normalize_relative_path(v, allow_empty=True)

    @property
    def is_insecure(self) -> bool:
        """Whether the overlay is fetched over plain HTTP from a non-local host."""
        parsed = urlparse(self.uri)
        return parsed.scheme == "http" and parsed.hostname not in _LOCALHOST_HOSTS
