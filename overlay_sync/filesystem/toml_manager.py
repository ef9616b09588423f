"""Reader for the overlay list file (TOML)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from overlay_sync.schemas.overlay import OverlaySpec


@dataclass
class OverlayConfig:
    """Parsed overlay list: optional install root and overlays in apply order."""

    root: Path | None = None
    overlays: list[OverlaySpec] = field(default_factory=list)


def parse_overlay_config(config_path: Path, *, allow_insecure_http: bool = False) -> OverlayConfig:
    """Parse an overlay list file.

    A relative ``root`` is resolved against the file's directory.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid TOML or an overlay entry is invalid.
    """
    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid overlay config {config_path}: {exc}"
        raise ValueError(msg) from exc

    root: Path | None = None
    raw_root = data.get("root")
    if raw_root is not None:
        if not isinstance(raw_root, str) or not raw_root:
            msg = f"'root' must be a non-empty string in {config_path}"
            raise ValueError(msg)
        root = Path(raw_root)
        if not root.is_absolute():
            root = config_path.parent / root

    raw_overlays = data.get("overlay", [])
    if not isinstance(raw_overlays, list):
        msg = f"'overlay' must be an array of tables in {config_path}"
        raise ValueError(msg)

    overlays: list[OverlaySpec] = []
    for entry in raw_overlays:
        if not isinstance(entry, dict) or "uri" not in entry:
            msg = f"Overlay entry missing required 'uri' field: {entry}"
            raise ValueError(msg)
        spec = OverlaySpec(uri=entry["uri"], path=entry.get("path", ""))
        if spec.is_insecure and not allow_insecure_http:
            msg = (
                f"HTTPS is required for non-localhost overlay {spec.uri}. "
                "Use --allow-insecure-http only on trusted networks."
            )
            raise ValueError(msg)
        overlays.append(spec)

    return OverlayConfig(root=root, overlays=overlays)
