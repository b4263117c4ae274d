"""
Sync orchestration for Lethe Sync.

Runs one pass of the pipeline:

    START -> MANIFEST_FETCHING -> VERIFYING -> [FETCHING] -> AUXILIARY_ASSETS -> DONE

Only a manifest failure ends the run early (FAILED). Per-file problems are
logged, recorded in the SyncResult, and the run carries on with the next file.
"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence

import requests

from ..core.constants import CHUNK_SIZE, DOWNLOAD_BASE_URL, MANIFEST_URL
from ..core.files import write_bytes_atomic
from ..core.formatting import format_size, object_url, safe_join
from ..core.paths import find_donor_root
from ..exceptions import (
    DownloadFailed,
    FilesystemError,
    ManifestUnavailable,
    SyncCancelled,
    UnsafePathError,
)
from ..manifest import Manifest, ManifestEntry, fetch_manifest
from .downloader import FileDownloader
from .local_source import LocalSourceResolver
from .models import AuxiliaryAsset, SyncPhase, SyncResult, SyncTask
from .progress import CancelToken, ProgressEvent, ProgressState
from .scanner import LocalStateScanner

ProgressListener = Callable[[ProgressEvent], None]
DonorRootResolver = Callable[[], Optional[Path]]


class SyncOrchestrator:
    """
    Brings a destination tree in line with the manifest.

    Subscribe listeners before calling run(); they receive a ProgressEvent on
    every phase change, every verified entry and every downloaded chunk.
    """

    def __init__(
        self,
        destination: Path,
        manifest_url: str = MANIFEST_URL,
        download_base_url: str = DOWNLOAD_BASE_URL,
        resolve_donor_root: Optional[DonorRootResolver] = None,
        manifest_loader: Optional[Callable[[], Manifest]] = None,
        http_session: Optional[requests.Session] = None,
        downloader: Optional[FileDownloader] = None,
        auxiliary_assets: Sequence[AuxiliaryAsset] = (),
        max_retries: int = 3,
        retry_backoff: float = 0.5,
        max_workers: int = 1,
        chunk_size: int = CHUNK_SIZE,
        cancel: Optional[CancelToken] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            destination: Root of the installation to sync
            manifest_url: Where to GET the manifest (ignored with manifest_loader)
            download_base_url: Object store prefix; files live at base + path
            resolve_donor_root: Returns an existing installation to copy from, or None
            manifest_loader: Alternative manifest source (e.g. a local file)
            http_session: requests session for the manifest fetch
            downloader: FileDownloader to use (one is created if None)
            auxiliary_assets: Out-of-manifest files re-downloaded every run
            max_retries: Attempts per file for retryable download failures
            retry_backoff: Seconds of delay per attempt number between retries
            max_workers: Files fetched concurrently; 1 keeps strict order
            chunk_size: Read size for hashing, copying and downloading
            cancel: Token checked between files and between chunks
            logger: Logger for all components of this run
        """
        self.destination = Path(destination)
        self.manifest_url = manifest_url
        self.download_base_url = download_base_url
        self.resolve_donor_root = resolve_donor_root
        self.manifest_loader = manifest_loader
        self.http_session = http_session
        self.auxiliary_assets = list(auxiliary_assets)
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self.max_workers = max(1, max_workers)
        self.cancel = cancel or CancelToken()
        self.logger = logger or logging.getLogger(__name__)

        self.scanner = LocalStateScanner(self.destination, chunk_size, self.logger, self.cancel)
        self.local_source = LocalSourceResolver(self.destination, chunk_size, self.logger, self.cancel)
        self.downloader = downloader or FileDownloader(chunk_size=chunk_size, logger=self.logger)

        self.phase = SyncPhase.START
        self.manifest: Optional[Manifest] = None
        self.progress = ProgressState()
        self._listeners: List[ProgressListener] = []

    @classmethod
    def from_config(cls, config, **kwargs) -> "SyncOrchestrator":
        """Build an orchestrator from a SyncConfig; kwargs override."""
        options = dict(
            destination=config.destination_path,
            manifest_url=config.manifest_url,
            download_base_url=config.download_base_url,
            resolve_donor_root=(lambda: find_donor_root(config.donor_root)) if config.use_donor else None,
            auxiliary_assets=config.auxiliary_assets,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
            max_workers=config.max_workers,
        )
        options.update(kwargs)
        if "downloader" not in options:
            options["downloader"] = FileDownloader(
                timeout=(config.connect_timeout, config.read_timeout),
                logger=options.get("logger"),
            )
        return cls(**options)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: ProgressListener):
        self._listeners.append(listener)

    def _emit(self, message: str = "", path: str = "", file_bytes: int = 0, file_size: int = 0):
        event = ProgressEvent(
            phase=self.phase.value,
            message=message,
            path=path,
            processed_bytes=self.progress.live_bytes,
            total_bytes=self.progress.total_bytes,
            file_bytes=file_bytes,
            file_size=file_size,
        )
        for listener in list(self._listeners):
            listener(event)

    def _set_phase(self, phase: SyncPhase, message: str = ""):
        self.logger.debug("Phase %s -> %s", self.phase.value, phase.value)
        self.phase = phase
        self._emit(message)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run_sync(self) -> SyncResult:
        """Blocking wrapper around run()."""
        return asyncio.run(self.run())

    async def run(self) -> SyncResult:
        """Execute the whole pipeline once."""
        if self.phase is not SyncPhase.START:
            raise RuntimeError("SyncOrchestrator.run() can only be called once")

        result = SyncResult()
        loop = asyncio.get_running_loop()

        self._set_phase(SyncPhase.MANIFEST_FETCHING, "Downloading manifest...")
        try:
            self.cancel.raise_if_cancelled()
            self.manifest = await loop.run_in_executor(None, self._load_manifest)
        except ManifestUnavailable as e:
            result.error = str(e)
            self.logger.error("Sync aborted, manifest unavailable: %s", e)
            return self._finish(result, SyncPhase.FAILED, "Failed to download manifest")
        except SyncCancelled:
            return self._finish(result, SyncPhase.CANCELLED, "Cancelled")

        self.progress.total_bytes = self.manifest.computed_size
        result.total_bytes = self.progress.total_bytes

        try:
            needs_fetch = await self._verify_all(result)

            async with self.downloader as downloader:
                if needs_fetch:
                    await self._fetch_all(needs_fetch, downloader, result)
                await self._fetch_auxiliary_assets(downloader, result)
        except SyncCancelled:
            self.logger.warning("Sync cancelled during %s", self.phase.value)
            return self._finish(result, SyncPhase.CANCELLED, "Cancelled")

        return self._finish(result, SyncPhase.DONE, "Download complete!")

    def _load_manifest(self) -> Manifest:
        if self.manifest_loader is not None:
            return self.manifest_loader()
        return fetch_manifest(self.manifest_url, session=self.http_session, logger=self.logger)

    def _finish(self, result: SyncResult, phase: SyncPhase, message: str) -> SyncResult:
        result.phase = phase
        result.processed_bytes = self.progress.processed_bytes
        self._set_phase(phase, message)
        if phase is not SyncPhase.FAILED:
            self.logger.info(
                "Sync %s: %d ok (%d verified, %d copied, %d downloaded), %d failed, %s / %s",
                phase.value, result.succeeded_count, result.verified_count,
                result.copied_count, result.downloaded_count, len(result.failed_entries),
                format_size(result.processed_bytes), format_size(result.total_bytes),
            )
        return result

    # ------------------------------------------------------------------
    # Verification pass
    # ------------------------------------------------------------------

    async def _verify_all(self, result: SyncResult) -> List[SyncTask]:
        loop = asyncio.get_running_loop()
        self._set_phase(SyncPhase.VERIFYING, f"Checking {len(self.manifest)} files...")

        needs_fetch = []
        for entry in self.manifest:
            self.cancel.raise_if_cancelled()
            self._emit(f"Checking {entry.path}...", path=entry.path)
            try:
                verification = await loop.run_in_executor(None, self.scanner.verify, entry)
            except UnsafePathError as e:
                self.logger.error("Skipping %s: %s", entry.path, e)
                result.record_failure(entry.path, f"unsafe path: {e}")
                continue

            task = SyncTask(entry, verification)
            if task.satisfied:
                if self.progress.complete(entry.path, entry.size):
                    result.verified_count += 1
            else:
                needs_fetch.append(task)
            self._emit(path=entry.path)

        if needs_fetch:
            self.logger.info("%d of %d files need fetching", len(needs_fetch), len(self.manifest))
        else:
            self.logger.info("All files are up to date")
        return needs_fetch

    # ------------------------------------------------------------------
    # Fetch pass
    # ------------------------------------------------------------------

    def _donor_root(self) -> Optional[Path]:
        if self.resolve_donor_root is None:
            return None
        donor = self.resolve_donor_root()
        if donor is not None:
            self.logger.info("Using local installation at %s", donor)
        return donor

    async def _fetch_all(self, tasks: List[SyncTask], downloader: FileDownloader, result: SyncResult):
        self._set_phase(SyncPhase.FETCHING, f"Downloading {len(tasks)} files...")
        donor_root = self._donor_root()

        if self.max_workers == 1:
            for task in tasks:
                self.cancel.raise_if_cancelled()
                await self.fetch_entry(task.entry, downloader, donor_root, result)
            return

        semaphore = asyncio.Semaphore(self.max_workers)

        async def worker(entry: ManifestEntry):
            async with semaphore:
                self.cancel.raise_if_cancelled()
                await self.fetch_entry(entry, downloader, donor_root, result)

        outcomes = await asyncio.gather(*(worker(t.entry) for t in tasks), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

    async def fetch_entry(
        self,
        entry: ManifestEntry,
        downloader: FileDownloader,
        donor_root: Optional[Path],
        result: SyncResult,
    ) -> bool:
        """
        Acquire one entry: donor copy first, download otherwise.

        Safe to run concurrently for different entries; the entry's bytes are
        counted at most once however often it completes.

        Returns:
            True if the entry is now present and verified
        """
        loop = asyncio.get_running_loop()
        if self.progress.is_complete(entry.path):
            return True

        try:
            self._emit(f"Checking local for {entry.path}...", path=entry.path)
            copied = await loop.run_in_executor(
                None, self.local_source.try_acquire_locally, entry, donor_root
            )
            if copied:
                if self.progress.complete(entry.path, entry.size):
                    result.copied_count += 1
                self._emit(path=entry.path)
                return True

            self._emit(f"Downloading {entry.path}...", path=entry.path, file_size=entry.size)
            await self._download_entry(entry, downloader)
        except DownloadFailed as e:
            self.logger.error("Error downloading %s: %s", entry.path, e.cause)
            result.record_failure(entry.path, f"download failed: {e.cause}")
            return False
        except FilesystemError as e:
            self.logger.error("Error writing %s: %s", entry.path, e.cause)
            result.record_failure(entry.path, f"filesystem error: {e.cause}")
            return False
        except UnsafePathError as e:
            self.logger.error("Skipping %s: %s", entry.path, e)
            result.record_failure(entry.path, f"unsafe path: {e}")
            return False
        except OSError as e:
            self.logger.error("Error processing %s: %s", entry.path, e)
            result.record_failure(entry.path, f"filesystem error: {e}")
            return False
        finally:
            self.progress.clear_in_flight(entry.path)

        if self.progress.complete(entry.path, entry.size):
            result.downloaded_count += 1
        self.logger.info("Downloaded: %s (%s)", entry.path, format_size(entry.size))
        self._emit(path=entry.path)
        return True

    async def _download_entry(self, entry: ManifestEntry, downloader: FileDownloader):
        url = object_url(self.download_base_url, entry.path)
        dest = safe_join(self.destination, entry.path)

        def on_progress(bytes_read: int):
            self.progress.set_in_flight(entry.path, bytes_read)
            self._emit(path=entry.path, file_bytes=bytes_read, file_size=entry.size)

        async def attempt():
            return await downloader.fetch_to_file(
                url, dest, entry.size, entry.content_hash,
                on_progress=on_progress, cancel=self.cancel, label=entry.path,
            )

        return await self._with_retry(entry.path, attempt)

    async def _with_retry(self, label: str, attempt_fn: Callable[[], Awaitable]):
        """Run attempt_fn, retrying retryable DownloadFailed with linear backoff."""
        for attempt in range(1, self.max_retries + 1):
            self.cancel.raise_if_cancelled()
            try:
                return await attempt_fn()
            except DownloadFailed as e:
                self.progress.clear_in_flight(label)
                if not e.retryable or attempt >= self.max_retries:
                    raise
                delay = self.retry_backoff * attempt
                self.logger.warning(
                    "Retrying %s in %.1fs (attempt %d/%d): %s",
                    label, delay, attempt + 1, self.max_retries, e.cause,
                )
                await asyncio.sleep(delay)

    # ------------------------------------------------------------------
    # Auxiliary assets
    # ------------------------------------------------------------------

    async def _fetch_auxiliary_assets(self, downloader: FileDownloader, result: SyncResult):
        """
        Re-download every auxiliary asset, unconditionally.

        These companion files carry no digest in the manifest, so there is
        nothing to verify them against; fetching them fresh each run is the
        policy. They are not part of the manifest byte totals.
        """
        loop = asyncio.get_running_loop()
        self._set_phase(SyncPhase.AUXILIARY_ASSETS)

        for asset in self.auxiliary_assets:
            self.cancel.raise_if_cancelled()
            name = asset.path.rsplit("/", 1)[-1]
            self._emit(f"Downloading {name}...", path=asset.path)

            async def attempt(asset=asset):
                return await downloader.fetch(asset.url, cancel=self.cancel, label=asset.path)

            try:
                dest = safe_join(self.destination, asset.path)
                data = await self._with_retry(asset.path, attempt)
                await loop.run_in_executor(None, write_bytes_atomic, dest, data)
            except DownloadFailed as e:
                self.logger.error("Error downloading %s: %s", name, e.cause)
                result.record_failure(asset.path, f"download failed: {e.cause}")
                continue
            except UnsafePathError as e:
                self.logger.error("Skipping auxiliary asset %s: %s", asset.path, e)
                result.record_failure(asset.path, f"unsafe path: {e}")
                continue
            except OSError as e:
                self.logger.error("Error writing %s: %s", asset.path, e)
                result.record_failure(asset.path, f"filesystem error: {e}")
                continue

            result.auxiliary_count += 1
            self.logger.info("Downloaded additional file: %s (%s)", name, format_size(len(data)))
