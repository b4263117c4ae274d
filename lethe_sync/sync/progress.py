"""
Progress tracking for sync runs.

ProgressState holds the byte counters; percentage() and ProgressEvent turn
them into what listeners display.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Set

from ..core.formatting import format_size
from ..exceptions import SyncCancelled


def percentage(processed: int, total: int) -> float:
    """Overall completion in [0, 100]; 0 when there is nothing to do."""
    if total <= 0:
        return 0.0
    pct = 100.0 * processed / total
    return max(0.0, min(100.0, pct))


class CancelToken:
    """Thread-safe cancellation flag, checked between files and chunks."""

    def __init__(self):
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        """Signal cancellation."""
        self._event.set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise SyncCancelled("sync cancelled")


class ProgressState:
    """
    Byte counters for one run.

    processed_bytes only grows, and each manifest path contributes at most
    once. Bytes of transfers still in flight are kept apart so live progress
    can include them without ever being added twice.
    """

    def __init__(self, total_bytes: int = 0):
        self.lock = threading.Lock()
        self.total_bytes = total_bytes
        self._processed = 0
        self._completed: Set[str] = set()
        self._in_flight: Dict[str, int] = {}

    @property
    def processed_bytes(self) -> int:
        with self.lock:
            return self._processed

    @property
    def live_bytes(self) -> int:
        """Confirmed bytes plus bytes read so far by transfers in progress."""
        with self.lock:
            return self._processed + sum(self._in_flight.values())

    def is_complete(self, path: str) -> bool:
        with self.lock:
            return path in self._completed

    def complete(self, path: str, size: int) -> bool:
        """
        Count a file as done.

        Returns:
            True if this call added the bytes, False if path was already counted
        """
        with self.lock:
            self._in_flight.pop(path, None)
            if path in self._completed:
                return False
            self._completed.add(path)
            self._processed += size
            return True

    def set_in_flight(self, path: str, bytes_read: int):
        with self.lock:
            if path not in self._completed:
                self._in_flight[path] = bytes_read

    def clear_in_flight(self, path: str):
        with self.lock:
            self._in_flight.pop(path, None)


@dataclass
class ProgressEvent:
    """One progress notification published to listeners."""
    phase: str
    message: str = ""
    path: str = ""
    processed_bytes: int = 0
    total_bytes: int = 0
    file_bytes: int = 0
    file_size: int = 0

    @property
    def percentage(self) -> float:
        return percentage(self.processed_bytes, self.total_bytes)

    def describe(self) -> str:
        """e.g. "1.5 MB / 3.0 MB" or with the current file "... (512 B / 1.0 KB)"."""
        text = f"{format_size(self.processed_bytes)} / {format_size(self.total_bytes)}"
        if self.file_size:
            text += f" ({format_size(self.file_bytes)} / {format_size(self.file_size)})"
        return text
