"""
Formatting and path-safety utilities for Lethe Sync.
"""

import re
from pathlib import Path, PurePosixPath
from urllib.parse import quote

from ..exceptions import UnsafePathError


# ============================================================================
# Manifest path safety
# ============================================================================

# Drive-qualified paths like "C:" or "C:/Windows"
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def normalize_manifest_path(path: str) -> str:
    """
    Normalize an untrusted manifest path to a safe relative posix path.

    Backslashes become slashes, empty and "." segments are dropped.

    Raises:
        UnsafePathError: If the path is empty, absolute, drive-qualified,
            or contains a ".." segment
    """
    if not isinstance(path, str) or not path.strip():
        raise UnsafePathError(f"empty path: {path!r}")

    posix = path.replace("\\", "/")
    if posix.startswith("/") or _DRIVE_PREFIX.match(posix):
        raise UnsafePathError(f"absolute path not allowed: {path!r}")

    parts = [p for p in posix.split("/") if p not in ("", ".")]
    if not parts:
        raise UnsafePathError(f"empty path: {path!r}")
    if ".." in parts:
        raise UnsafePathError(f"parent traversal not allowed: {path!r}")
    if any("\x00" in p for p in parts):
        raise UnsafePathError(f"NUL byte in path: {path!r}")

    return "/".join(parts)


def safe_join(root: Path, rel_path: str) -> Path:
    """
    Join a manifest path onto root, refusing anything that escapes it.

    Raises:
        UnsafePathError: If the resolved location is outside root
    """
    rel = normalize_manifest_path(rel_path)
    target = root.joinpath(*PurePosixPath(rel).parts)
    root_resolved = root.resolve()
    target_resolved = target.resolve()
    if target_resolved != root_resolved and root_resolved not in target_resolved.parents:
        raise UnsafePathError(f"path escapes {root}: {rel_path!r}")
    return target


def object_url(base_url: str, rel_path: str) -> str:
    """Build the object-store URL for a manifest path (segments quoted)."""
    if not base_url.endswith("/"):
        base_url += "/"
    return base_url + quote(rel_path, safe="/")


# ============================================================================
# Size and duration formatting
# ============================================================================

def format_size(size_bytes: int) -> str:
    """
    Format bytes as human readable string.

    Plain bytes below 1 KB ("512 B"), one decimal for larger units
    ("2.0 KB", "1.5 MB").
    """
    if size_bytes < 1024:
        return f"{int(size_bytes)} B"
    size = size_bytes / 1024
    for unit in ["KB", "MB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def format_duration(seconds: float) -> str:
    """Format seconds as human readable duration."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    else:
        return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"
