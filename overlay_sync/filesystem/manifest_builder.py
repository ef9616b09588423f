"""Build a manifest document from a directory tree, for overlay publishers."""

from __future__ import annotations

import os
from pathlib import Path

from overlay_sync.filesystem.cache_store import fingerprint_file, write_atomic
from overlay_sync.filesystem.manifest_codec import dump_manifest
from overlay_sync.models.manifest import Manifest

MANIFEST_FILE = "manifest.xml"


def scan_directory(source_dir: Path, *, exclude: set[Path] | None = None) -> Manifest:
    """Fingerprint every non-hidden file under ``source_dir``.

    Hidden files and directories are skipped, as are the resolved paths in
    ``exclude`` (typically the manifest being written).
    """
    excluded = {p.resolve() for p in exclude or set()}
    manifest = Manifest()
    for root, dirs, files in os.walk(source_dir):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        for filename in sorted(files):
            if filename.startswith("."):
                continue
            full = Path(root) / filename
            if full.resolve() in excluded:
                continue
            rel = full.relative_to(source_dir).as_posix()
            manifest.put(fingerprint_file(full, rel))
    return manifest


def write_manifest(source_dir: Path, output: Path | None = None) -> tuple[Path, Manifest]:
    """Scan ``source_dir`` and write its manifest, by default next to the files."""
    target = output or source_dir / MANIFEST_FILE
    manifest = scan_directory(source_dir, exclude={target})
    write_atomic(target, dump_manifest(manifest))
    return target, manifest
