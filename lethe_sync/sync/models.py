"""
Data models for sync runs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..manifest import ManifestEntry
from .scanner import VerifyResult


class SyncPhase(Enum):
    """
    Orchestrator states, in the order a run passes through them.

    FAILED is only entered from MANIFEST_FETCHING; CANCELLED from any phase
    once cancellation is requested.
    """
    START = "start"
    MANIFEST_FETCHING = "manifest_fetching"
    VERIFYING = "verifying"
    FETCHING = "fetching"
    AUXILIARY_ASSETS = "auxiliary_assets"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (SyncPhase.DONE, SyncPhase.FAILED, SyncPhase.CANCELLED)


@dataclass(frozen=True)
class SyncTask:
    """Outcome of verifying one manifest entry."""
    entry: ManifestEntry
    verification: VerifyResult

    @property
    def satisfied(self) -> bool:
        return self.verification.valid


@dataclass(frozen=True)
class AuxiliaryAsset:
    """Companion file outside the manifest, re-downloaded every run."""
    url: str
    path: str

    @classmethod
    def from_dict(cls, data: dict) -> "AuxiliaryAsset":
        if not isinstance(data, dict):
            raise ValueError(f"auxiliary asset must be an object, got {data!r}")
        return cls(url=data.get("url", ""), path=data.get("path", ""))

    def to_dict(self) -> dict:
        return {"url": self.url, "path": self.path}


@dataclass(frozen=True)
class FailedEntry:
    path: str
    reason: str


@dataclass
class SyncResult:
    """Summary handed back to the caller when a run ends."""
    phase: SyncPhase = SyncPhase.START
    verified_count: int = 0
    copied_count: int = 0
    downloaded_count: int = 0
    auxiliary_count: int = 0
    processed_bytes: int = 0
    total_bytes: int = 0
    failed_entries: List[FailedEntry] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded_count(self) -> int:
        """Manifest entries that ended up valid, copied or downloaded."""
        return self.verified_count + self.copied_count + self.downloaded_count

    @property
    def cancelled(self) -> bool:
        return self.phase is SyncPhase.CANCELLED

    @property
    def ok(self) -> bool:
        return self.phase is SyncPhase.DONE and not self.failed_entries

    def record_failure(self, path: str, reason: str):
        self.failed_entries.append(FailedEntry(path, reason))
