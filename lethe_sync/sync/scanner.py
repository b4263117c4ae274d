"""
Local state verification for Lethe Sync.

A file is valid only if its size and its XXH64 digest both match the manifest.
Size is checked first: it costs one stat() and rules out most stale files
before any bytes are read.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..core.constants import CHUNK_SIZE
from ..core.files import file_size
from ..core.formatting import safe_join
from ..core.hashing import hash_file
from ..manifest import ManifestEntry
from .progress import CancelToken


class VerifyStatus(Enum):
    VALID = "valid"
    SIZE_MISMATCH = "size_mismatch"
    HASH_MISMATCH = "hash_mismatch"


@dataclass(frozen=True)
class VerifyResult:
    status: VerifyStatus
    detail: str = ""

    @property
    def valid(self) -> bool:
        return self.status is VerifyStatus.VALID


VALID = VerifyResult(VerifyStatus.VALID)


def verify_file(
    path: Path,
    size: int,
    content_hash: str,
    chunk_size: int = CHUNK_SIZE,
    cancel: Optional[CancelToken] = None,
) -> VerifyResult:
    """
    Two-stage check of one file against expected size and digest.

    Missing or wrong-sized files fail without being hashed.

    Raises:
        SyncCancelled: If cancel was set while the file was being hashed
    """
    actual_size = file_size(path)
    if actual_size is None:
        return VerifyResult(VerifyStatus.SIZE_MISMATCH, "missing")
    if actual_size != size:
        return VerifyResult(VerifyStatus.SIZE_MISMATCH, f"expected {size} bytes, got {actual_size}")

    try:
        digest = hash_file(path, chunk_size, cancel)
    except OSError as e:
        return VerifyResult(VerifyStatus.HASH_MISMATCH, f"unreadable: {e}")
    if digest != content_hash:
        return VerifyResult(VerifyStatus.HASH_MISMATCH, f"expected {content_hash}, got {digest}")
    return VALID


class LocalStateScanner:
    """Compares files under a destination root with manifest entries."""

    def __init__(
        self,
        root: Path,
        chunk_size: int = CHUNK_SIZE,
        logger: Optional[logging.Logger] = None,
        cancel: Optional[CancelToken] = None,
    ):
        self.root = Path(root)
        self.chunk_size = chunk_size
        self.logger = logger or logging.getLogger(__name__)
        self.cancel = cancel

    def path_for(self, entry: ManifestEntry) -> Path:
        return safe_join(self.root, entry.path)

    def verify(self, entry: ManifestEntry) -> VerifyResult:
        result = verify_file(
            self.path_for(entry), entry.size, entry.content_hash, self.chunk_size, self.cancel
        )
        if result.status is VerifyStatus.SIZE_MISMATCH:
            self.logger.info("File size mismatch or missing: %s (%s)", entry.path, result.detail)
        elif result.status is VerifyStatus.HASH_MISMATCH:
            self.logger.info("File hash mismatch: %s (%s)", entry.path, result.detail)
        return result
