"""Relative path normalization and install-root containment checks."""

from __future__ import annotations

import re
from pathlib import Path

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def normalize_relative_path(raw: str, *, allow_empty: bool = False) -> str:
    """Normalize a producer-supplied relative path to ``a/b/c`` form.

    Backslashes are treated as separators and ``.``/empty segments are
    dropped.  Absolute paths, drive-qualified paths and ``..`` segments are
    rejected with ``ValueError``.
    """
    candidate = raw.replace("\\", "/").strip()
    if candidate.startswith("/") or _DRIVE_PREFIX.match(candidate):
        msg = f"Path must be relative: {raw!r}"
        raise ValueError(msg)
    parts = [part for part in candidate.split("/") if part not in ("", ".")]
    if ".." in parts:
        msg = f"Path must not contain '..' segments: {raw!r}"
        raise ValueError(msg)
    if not parts and not allow_empty:
        msg = "Path must not be empty"
        raise ValueError(msg)
    return "/".join(parts)


def resolve_within(root: Path, rel_path: str) -> Path | None:
    """Resolve ``rel_path`` under ``root``, returning None if it escapes ``root``.

    A symlink loop surfaces as ``RuntimeError`` or ``OSError`` depending on the
    Python version.
    """
    local_path = (root / rel_path).resolve()
    if not local_path.is_relative_to(root.resolve()):
        return None
    return local_path
