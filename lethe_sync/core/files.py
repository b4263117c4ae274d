"""
File system utilities for Lethe Sync.

Anything written into the destination tree goes to a ".part" sibling first and
is renamed into place, so an interrupted write never leaves a file that has
the right size but the wrong content.
"""

import os
from pathlib import Path
from typing import Optional

from .constants import CHUNK_SIZE, PART_SUFFIX


def file_size(path: Path) -> Optional[int]:
    """Size of a regular file, or None if it is missing or unreadable."""
    try:
        if not path.is_file():
            return None
        return path.stat().st_size
    except OSError:
        return None


def part_path(dest: Path) -> Path:
    """Temporary sibling used while dest is being written."""
    return dest.with_name(dest.name + PART_SUFFIX)


def discard(path: Path):
    """Remove a file if present (missing is fine)."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def write_bytes_atomic(dest: Path, data: bytes):
    """Write data to dest via a temp file and rename."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = part_path(dest)
    try:
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, dest)
    except OSError:
        discard(tmp)
        raise


def copy_file_atomic(src: Path, dest: Path, chunk_size: int = CHUNK_SIZE) -> int:
    """
    Copy src to dest in bounded chunks via a temp file and rename.

    Returns:
        Number of bytes copied
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = part_path(dest)
    copied = 0
    try:
        with open(src, "rb") as fin, open(tmp, "wb") as fout:
            for chunk in iter(lambda: fin.read(chunk_size), b""):
                fout.write(chunk)
                copied += len(chunk)
        os.replace(tmp, dest)
    except OSError:
        discard(tmp)
        raise
    return copied
