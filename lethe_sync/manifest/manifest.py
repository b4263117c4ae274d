"""
Manifest classes for Lethe Sync.

The manifest is a JSON document listing every file of the installation with
its size and XXH64 digest:

    {
      "scanned_folder": "...",
      "total_files": 2,
      "total_size": 300,
      "files": [{"path": "a.bin", "size": 100, "xxhash": "..."}, ...]
    }
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..core.formatting import normalize_manifest_path
from ..exceptions import ManifestUnavailable, UnsafePathError

# XXH64 rendered as 16 hex digits
_DIGEST_RE = re.compile(r"^[0-9a-f]{16}$")


def _parse_size(value, where: str) -> int:
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(value, bool) or not isinstance(value, int):
        raise ManifestUnavailable(f"{where}: size must be an integer, got {value!r}")
    if value < 0:
        raise ManifestUnavailable(f"{where}: size must be >= 0, got {value}")
    return value


@dataclass(frozen=True)
class ManifestEntry:
    """A single file in the manifest."""
    path: str
    size: int
    content_hash: str

    def to_dict(self) -> dict:
        return {"path": self.path, "size": self.size, "xxhash": self.content_hash}

    @classmethod
    def from_dict(cls, data: dict, index: int = 0) -> "ManifestEntry":
        """
        Build an entry from a manifest "files" item.

        Raises:
            ManifestUnavailable: If a field is missing, mistyped or unsafe
        """
        where = f"files[{index}]"
        if not isinstance(data, dict):
            raise ManifestUnavailable(f"{where}: expected an object")

        try:
            path = normalize_manifest_path(data.get("path", ""))
        except UnsafePathError as e:
            raise ManifestUnavailable(f"{where}: {e}") from e

        if "size" not in data:
            raise ManifestUnavailable(f"{where}: missing size")
        size = _parse_size(data["size"], where)

        digest = data.get("xxhash", data.get("hash"))
        if not isinstance(digest, str) or not _DIGEST_RE.match(digest.lower()):
            raise ManifestUnavailable(f"{where}: invalid hash {digest!r}")

        return cls(path=path, size=size, content_hash=digest.lower())


@dataclass(frozen=True)
class Manifest:
    """
    The desired file set for one sync run.

    total_files/total_size are what the producer declared; computed_size is
    what the engine relies on.
    """
    entries: tuple = field(default_factory=tuple)
    total_files: int = 0
    total_size: int = 0
    scanned_folder: str = ""

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    @property
    def computed_size(self) -> int:
        return sum(e.size for e in self.entries)

    def get(self, path: str) -> Optional[ManifestEntry]:
        for entry in self.entries:
            if entry.path == path:
                return entry
        return None

    @classmethod
    def from_dict(cls, data) -> "Manifest":
        """
        Parse a manifest document.

        Raises:
            ManifestUnavailable: If the document is malformed
        """
        if not isinstance(data, dict):
            raise ManifestUnavailable("manifest must be a JSON object")
        files = data.get("files")
        if not isinstance(files, list):
            raise ManifestUnavailable("manifest has no 'files' list")

        entries = []
        seen = set()
        for i, item in enumerate(files):
            entry = ManifestEntry.from_dict(item, i)
            if entry.path in seen:
                raise ManifestUnavailable(f"files[{i}]: duplicate path {entry.path!r}")
            seen.add(entry.path)
            entries.append(entry)

        total_files = data.get("total_files", len(entries))
        total_size = data.get("total_size", 0)
        return cls(
            entries=tuple(entries),
            total_files=total_files if isinstance(total_files, int) else len(entries),
            total_size=total_size if isinstance(total_size, int) else 0,
            scanned_folder=str(data.get("scanned_folder", "")),
        )

    def to_dict(self) -> dict:
        return {
            "scanned_folder": self.scanned_folder,
            "total_files": self.total_files,
            "total_size": self.total_size,
            "files": [e.to_dict() for e in self.entries],
        }

    @classmethod
    def load(cls, path: Path) -> "Manifest":
        """
        Load a manifest saved on disk.

        Raises:
            ManifestUnavailable: If the file is missing, unreadable or malformed
        """
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise ManifestUnavailable(f"could not read {path}: {e}") from e
        return cls.from_dict(data)

    def save(self, path: Path):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
