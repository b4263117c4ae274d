"""
Lethe Sync - keep a game installation in step with a published manifest.

This package verifies local files against a manifest of paths, sizes and
XXH64 digests, reuses verified copies from an existing installation when it
can, and downloads whatever is still missing.

Import from submodules directly:
    from lethe_sync.config import SyncConfig
    from lethe_sync.manifest import Manifest, fetch_manifest
    from lethe_sync.sync import SyncOrchestrator
"""


def _get_version():
    """Read version from VERSION file."""
    from pathlib import Path
    from .core.paths import get_bundle_dir
    # Try relative to this file first (source), then bundle dir (PyInstaller)
    for base in [Path(__file__).parent.parent, get_bundle_dir()]:
        version_file = base / "VERSION"
        if version_file.exists():
            return version_file.read_text().strip()
    return "0.0.0"


__version__ = _get_version()
