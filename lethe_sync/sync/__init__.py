"""
Sync operations module.

Handles verification, local-copy reuse, downloading and progress tracking.
"""

from .progress import CancelToken, ProgressEvent, ProgressState, percentage
from .scanner import LocalStateScanner, VerifyResult, VerifyStatus, verify_file
from .local_source import LocalSourceResolver
from .downloader import FileDownloader, DownloadResult
from .models import AuxiliaryAsset, FailedEntry, SyncPhase, SyncResult, SyncTask
from .orchestrator import SyncOrchestrator

__all__ = [
    # Progress
    "CancelToken",
    "ProgressEvent",
    "ProgressState",
    "percentage",
    # Verification
    "LocalStateScanner",
    "VerifyResult",
    "VerifyStatus",
    "verify_file",
    # Local copies
    "LocalSourceResolver",
    # Downloader
    "FileDownloader",
    "DownloadResult",
    # Models
    "AuxiliaryAsset",
    "FailedEntry",
    "SyncPhase",
    "SyncResult",
    "SyncTask",
    # Orchestration
    "SyncOrchestrator",
]
