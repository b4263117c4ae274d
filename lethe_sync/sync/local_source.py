"""
Reuse of files from an existing installation.

Before downloading, look for the same relative path under a donor root (for
example the Steam copy of the game). The donor file has to pass the same size
and digest check as any local file; a donor file that fails is just a miss.
"""

import logging
from pathlib import Path
from typing import Optional

from ..core.constants import CHUNK_SIZE
from ..core.files import copy_file_atomic
from ..core.formatting import format_size, safe_join
from ..exceptions import FilesystemError, UnsafePathError
from ..manifest import ManifestEntry
from .progress import CancelToken
from .scanner import verify_file


class LocalSourceResolver:
    """Copies verified donor files into the destination tree."""

    def __init__(
        self,
        destination: Path,
        chunk_size: int = CHUNK_SIZE,
        logger: Optional[logging.Logger] = None,
        cancel: Optional[CancelToken] = None,
    ):
        self.destination = Path(destination)
        self.chunk_size = chunk_size
        self.logger = logger or logging.getLogger(__name__)
        self.cancel = cancel

    def try_acquire_locally(self, entry: ManifestEntry, donor_root: Optional[Path]) -> bool:
        """
        Copy entry from donor_root if an identical file is there.

        Returns:
            True if the destination now holds a verified copy, False on a miss

        Raises:
            FilesystemError: If the donor copy verified but writing it failed
        """
        if donor_root is None:
            return False
        donor_root = Path(donor_root)
        try:
            if donor_root.resolve() == self.destination.resolve():
                return False
            donor_path = safe_join(donor_root, entry.path)
            target_path = safe_join(self.destination, entry.path)
        except (OSError, UnsafePathError) as e:
            self.logger.debug("Local copy unusable for %s: %s", entry.path, e)
            return False

        if not donor_path.is_file():
            return False

        result = verify_file(donor_path, entry.size, entry.content_hash, self.chunk_size, self.cancel)
        if not result.valid:
            self.logger.debug("Local copy of %s rejected (%s)", entry.path, result.detail)
            return False

        try:
            copy_file_atomic(donor_path, target_path, self.chunk_size)
        except OSError as e:
            raise FilesystemError(target_path, e) from e

        self.logger.info("Copied from local: %s (%s)", entry.path, format_size(entry.size))
        return True
