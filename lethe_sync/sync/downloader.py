"""
Object-store downloader for Lethe Sync.

Streams single files over HTTP with asyncio + aiohttp and reports progress
after every chunk. It never retries on its own: failures are raised as
DownloadFailed with a retryable flag and the orchestrator decides.
"""

import asyncio
import logging
import os
import ssl
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple

import aiohttp
import certifi

from ..core.constants import CHUNK_SIZE
from ..core.files import discard, file_size, part_path
from ..core.hashing import HashStream
from ..exceptions import DownloadFailed, FilesystemError, SyncCancelled
from .progress import CancelToken

ProgressCallback = Callable[[int], None]

# Statuses worth another attempt besides 5xx
RETRYABLE_STATUSES = {408, 425, 429}


def get_certifi_path() -> str:
    """Get path to certifi CA bundle, handling PyInstaller bundles."""
    if getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS'):
        bundled_cert = os.path.join(sys._MEIPASS, 'certifi', 'cacert.pem')
        if os.path.exists(bundled_cert):
            return bundled_cert
    return certifi.where()


def is_retryable_status(status: int) -> bool:
    return status >= 500 or status in RETRYABLE_STATUSES


@dataclass
class DownloadResult:
    """Result of a single completed file download."""
    path: Path
    size: int
    content_hash: str
    bytes_downloaded: int = 0
    resumed: bool = False


class FileDownloader:
    """
    Async single-file downloader.

    Use as an async context manager so the aiohttp session is opened and
    closed on the running loop:

        async with FileDownloader() as downloader:
            data = await downloader.fetch(url)
    """

    def __init__(
        self,
        timeout: Tuple[int, int] = (10, 120),
        chunk_size: int = CHUNK_SIZE,
        resume: bool = True,
        session: Optional[aiohttp.ClientSession] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.timeout = aiohttp.ClientTimeout(connect=timeout[0], sock_read=timeout[1])
        self.chunk_size = chunk_size
        self.resume = resume
        self.logger = logger or logging.getLogger(__name__)
        self._session = session
        self._owns_session = session is None
        self.requests_made = 0

    async def __aenter__(self) -> "FileDownloader":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def open(self):
        if self._session is None:
            ssl_context = ssl.create_default_context(cafile=get_certifi_path())
            connector = aiohttp.TCPConnector(
                limit=8,
                ttl_dns_cache=300,
                keepalive_timeout=30,
                ssl=ssl_context,
            )
            self._session = aiohttp.ClientSession(timeout=self.timeout, connector=connector)
            self._owns_session = True

    async def close(self):
        if self._session is not None and self._owns_session:
            await self._session.close()
        if self._owns_session:
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("FileDownloader used outside 'async with'")
        return self._session

    async def fetch(
        self,
        url: str,
        expected_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
        label: Optional[str] = None,
    ) -> bytes:
        """
        Download url into memory.

        Raises:
            DownloadFailed: On HTTP error, timeout, reset or a short body
            SyncCancelled: If cancel was set between chunks
        """
        label = label or url
        session = self.session
        buffer = bytearray()
        try:
            self.requests_made += 1
            async with session.get(url) as response:
                response.raise_for_status()
                async for chunk in response.content.iter_chunked(self.chunk_size):
                    if cancel:
                        cancel.raise_if_cancelled()
                    buffer.extend(chunk)
                    if on_progress:
                        on_progress(len(buffer))
        except (DownloadFailed, SyncCancelled):
            raise
        except Exception as e:
            raise self._failure(label, e) from e

        if expected_size is not None and len(buffer) != expected_size:
            raise DownloadFailed(
                label, f"expected {expected_size} bytes, got {len(buffer)}", retryable=True
            )
        return bytes(buffer)

    async def fetch_to_file(
        self,
        url: str,
        dest: Path,
        expected_size: int,
        expected_hash: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
        label: Optional[str] = None,
    ) -> DownloadResult:
        """
        Stream url into dest, verifying it before it appears under its name.

        Bytes go to "<dest>.part", hashed on the way in. Only when the size
        (and expected_hash, if given) match is the part renamed to dest. A
        shorter part left by an earlier attempt is resumed with a Range
        request; a server that ignores the range restarts it from zero.

        Raises:
            DownloadFailed: Transfer or verification failed
            FilesystemError: The part file could not be written
            SyncCancelled: If cancel was set between chunks (part is kept)
        """
        label = label or url
        session = self.session
        tmp = part_path(dest)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(dest.parent, e) from e

        offset = 0
        existing = file_size(tmp)
        if existing is not None:
            if self.resume and 0 < existing < expected_size:
                offset = existing
            else:
                discard(tmp)

        headers = {"Accept-Encoding": "identity"}
        if offset:
            headers["Range"] = f"bytes={offset}-"

        hasher = HashStream()
        received = 0
        resumed = False
        try:
            self.requests_made += 1
            async with session.get(url, headers=headers) as response:
                response.raise_for_status()
                if offset and response.status == 206:
                    resumed = True
                    self._hash_existing(tmp, hasher)
                    mode = "ab"
                else:
                    offset = 0
                    mode = "wb"
                received = offset

                with open(tmp, mode) as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        if cancel:
                            cancel.raise_if_cancelled()
                        received += len(chunk)
                        if received > expected_size:
                            raise DownloadFailed(
                                label, f"server sent more than {expected_size} bytes", retryable=False
                            )
                        f.write(chunk)
                        hasher.update(chunk)
                        if on_progress:
                            on_progress(received)
        except SyncCancelled:
            raise
        except DownloadFailed as e:
            if not e.retryable:
                discard(tmp)
            raise
        except aiohttp.ClientResponseError as e:
            if e.status == 416:
                # Stale part no longer matches the remote object
                discard(tmp)
            raise self._failure(label, e) from e
        except (asyncio.TimeoutError, aiohttp.ClientError) as e:
            raise self._failure(label, e) from e
        except OSError as e:
            raise FilesystemError(tmp, e) from e

        if received != expected_size:
            raise DownloadFailed(
                label, f"expected {expected_size} bytes, got {received}", retryable=True
            )

        digest = hasher.finalize()
        if expected_hash is not None and digest != expected_hash:
            discard(tmp)
            # A resumed part may hold bytes of an older version; a fresh attempt can fix that
            raise DownloadFailed(
                label, f"hash mismatch: expected {expected_hash}, got {digest}", retryable=resumed
            )

        try:
            os.replace(tmp, dest)
        except OSError as e:
            raise FilesystemError(dest, e) from e

        return DownloadResult(
            path=dest,
            size=received,
            content_hash=digest,
            bytes_downloaded=received - offset,
            resumed=resumed,
        )

    def _hash_existing(self, tmp: Path, hasher: HashStream):
        with open(tmp, "rb") as f:
            for chunk in iter(lambda: f.read(self.chunk_size), b""):
                hasher.update(chunk)

    @staticmethod
    def _failure(label: str, error: Exception) -> DownloadFailed:
        """Classify a transport error as retryable or not."""
        if isinstance(error, asyncio.TimeoutError):
            return DownloadFailed(label, "timeout", retryable=True)
        if isinstance(error, aiohttp.ClientResponseError):
            return DownloadFailed(
                label, f"HTTP {error.status}", status=error.status,
                retryable=is_retryable_status(error.status) or error.status == 416,
            )
        if isinstance(error, aiohttp.ClientPayloadError):
            return DownloadFailed(label, f"incomplete body: {error}", retryable=True)
        if isinstance(error, aiohttp.ClientError):
            return DownloadFailed(label, f"connection error: {error}", retryable=True)
        return DownloadFailed(label, str(error) or type(error).__name__, retryable=False)
