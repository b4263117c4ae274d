"""
Path helpers for Lethe Sync.

App-relative locations for settings, logs and the local manifest copy, plus
discovery of an existing Steam installation to reuse files from.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .constants import (
    LOCAL_MANIFEST_FILE,
    SETTINGS_FILE,
    STEAM_GAME_SUBPATH,
    STEAM_REGISTRY_KEY,
)

logger = logging.getLogger(__name__)


def get_app_dir() -> Path:
    """Get the directory where the app is located (for user-writable files)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path.cwd()


def get_bundle_dir() -> Path:
    """Get the directory where bundled resources are located (PyInstaller)."""
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        return Path(sys._MEIPASS)
    return Path(__file__).parent.parent.parent


def get_settings_path() -> Path:
    return get_app_dir() / SETTINGS_FILE


def get_local_manifest_path() -> Path:
    return get_app_dir() / LOCAL_MANIFEST_FILE


def _read_steam_install_path() -> Optional[str]:
    """Read Steam's InstallPath from the Windows registry, or None."""
    try:
        import winreg
    except ImportError:
        return None
    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, STEAM_REGISTRY_KEY) as key:
            value, _ = winreg.QueryValueEx(key, "InstallPath")
            return value if isinstance(value, str) else None
    except OSError as e:
        logger.warning("Error reading Steam path from registry: %s", e)
        return None


def default_donor_candidate() -> Path:
    """
    Best guess at where Steam keeps the game on this platform.

    Windows: registry InstallPath, falling back to the default Program Files
    location. Elsewhere: the CrossOver bottle used to run Steam on macOS.
    """
    if os.name == "nt":
        steam_path = _read_steam_install_path()
        if steam_path:
            return Path(steam_path).joinpath(*STEAM_GAME_SUBPATH)
        return Path("C:/", "Program Files (x86)", "Steam").joinpath(*STEAM_GAME_SUBPATH)

    return (
        Path.home() / "Library" / "Application Support" / "CrossOver" / "Bottles"
        / "Steam" / "drive_c" / "Program Files (x86)" / "Steam"
    ).joinpath(*STEAM_GAME_SUBPATH)


def find_donor_root(configured: Optional[str] = None) -> Optional[Path]:
    """
    Resolve the donor installation root.

    Args:
        configured: Explicit path from settings; skips discovery when set

    Returns:
        Existing directory to copy verified files from, or None
    """
    candidate = Path(configured).expanduser() if configured else default_donor_candidate()
    if candidate.is_dir():
        return candidate
    logger.debug("No donor installation at %s", candidate)
    return None
