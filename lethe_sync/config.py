"""
Configuration management for Lethe Sync.

Settings live in lethe-sync.json next to the app. A missing file is created
with defaults on first run; an unreadable one falls back to defaults.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .core.constants import AUXILIARY_ASSETS, DOWNLOAD_BASE_URL, LOG_FILE, MANIFEST_URL
from .sync.models import AuxiliaryAsset

logger = logging.getLogger(__name__)


def _default_auxiliary_assets() -> list:
    return [AuxiliaryAsset.from_dict(a) for a in AUXILIARY_ASSETS]


@dataclass
class SyncConfig:
    """User-editable sync settings."""
    manifest_url: str = MANIFEST_URL
    download_base_url: str = DOWNLOAD_BASE_URL
    destination: str = "."
    donor_root: Optional[str] = None  # None = discover the Steam install
    use_donor: bool = True
    disable_auto_update: bool = False
    max_retries: int = 3
    retry_backoff: float = 0.5
    max_workers: int = 1
    connect_timeout: int = 10
    read_timeout: int = 120
    log_file: str = LOG_FILE
    auxiliary_assets: list = field(default_factory=_default_auxiliary_assets)
    path: Optional[Path] = field(default=None, repr=False, compare=False)

    @property
    def destination_path(self) -> Path:
        return Path(self.destination).expanduser()

    def to_dict(self) -> dict:
        return {
            "manifest_url": self.manifest_url,
            "download_base_url": self.download_base_url,
            "destination": self.destination,
            "donor_root": self.donor_root,
            "use_donor": self.use_donor,
            "disable_auto_update": self.disable_auto_update,
            "max_retries": self.max_retries,
            "retry_backoff": self.retry_backoff,
            "max_workers": self.max_workers,
            "connect_timeout": self.connect_timeout,
            "read_timeout": self.read_timeout,
            "log_file": self.log_file,
            "auxiliary_assets": [a.to_dict() for a in self.auxiliary_assets],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SyncConfig":
        defaults = cls()
        assets = data.get("auxiliary_assets")
        return cls(
            manifest_url=data.get("manifest_url", defaults.manifest_url),
            download_base_url=data.get("download_base_url", defaults.download_base_url),
            destination=data.get("destination", defaults.destination),
            donor_root=data.get("donor_root") or None,
            use_donor=_as_bool(data.get("use_donor", True)),
            disable_auto_update=_as_bool(data.get("disable_auto_update", False)),
            max_retries=int(data.get("max_retries", defaults.max_retries)),
            retry_backoff=float(data.get("retry_backoff", defaults.retry_backoff)),
            max_workers=int(data.get("max_workers", defaults.max_workers)),
            connect_timeout=int(data.get("connect_timeout", defaults.connect_timeout)),
            read_timeout=int(data.get("read_timeout", defaults.read_timeout)),
            log_file=data.get("log_file", defaults.log_file),
            auxiliary_assets=(
                [AuxiliaryAsset.from_dict(a) for a in assets]
                if isinstance(assets, list) else defaults.auxiliary_assets
            ),
        )

    @classmethod
    def load(cls, path: Path, create: bool = True) -> "SyncConfig":
        """
        Load settings from file.

        Args:
            path: Settings JSON file
            create: Write a default file if none exists
        """
        if not path.exists():
            config = cls(path=path)
            if create:
                try:
                    config.save()
                    logger.info("Created default configuration file: %s", path)
                except OSError as e:
                    logger.warning("Could not create %s: %s", path, e)
            return config

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            config = cls.from_dict(data if isinstance(data, dict) else {})
        except (json.JSONDecodeError, OSError, TypeError, ValueError) as e:
            logger.warning("Could not load %s, using defaults: %s", path, e)
            config = cls()
        config.path = path
        return config

    def save(self):
        """Save settings to file."""
        if not self.path:
            raise ValueError("No path set for config")
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)


def _as_bool(value) -> bool:
    # Accept the "true"/"false" strings of the old launcher ini
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)
