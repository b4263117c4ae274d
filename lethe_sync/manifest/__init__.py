"""
Manifest handling for Lethe Sync.

The manifest is a JSON file listing every file of the installation with its
size and XXH64 digest. It is fetched once per run and never modified.
"""

from .manifest import Manifest, ManifestEntry
from .fetch import fetch_manifest

__all__ = [
    "Manifest",
    "ManifestEntry",
    "fetch_manifest",
]
