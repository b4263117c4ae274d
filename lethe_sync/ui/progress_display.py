"""
Console progress display for Lethe Sync.

Renders orchestrator ProgressEvents as a single self-overwriting status line,
plus a final summary.
"""

import os
import threading
import time
from typing import Optional, TextIO

from ..core.formatting import format_duration, format_size
from ..sync.models import SyncPhase, SyncResult
from ..sync.progress import ProgressEvent
from .colors import Colors


def get_terminal_width() -> int:
    """Get terminal width, with fallback."""
    try:
        return os.get_terminal_size().columns
    except OSError:
        return 80


class ConsoleProgress:
    """
    Progress listener that prints one overwriting line.

    Chunk-level events arrive far faster than a terminal needs; they are
    throttled to one redraw per `interval` seconds. Phase changes and status
    messages are always drawn.
    """

    def __init__(self, stream: Optional[TextIO] = None, interval: float = 0.1):
        self.lock = threading.Lock()
        self.stream = stream
        self.interval = interval
        self._last_draw = 0.0
        self._phase: Optional[str] = None
        self._status = ""
        self._closed = False

    def __call__(self, event: ProgressEvent):
        with self.lock:
            if self._closed:
                return
            phase_changed = event.phase != self._phase
            if event.message:
                self._status = event.message

            now = time.time()
            if not phase_changed and not event.message and now - self._last_draw < self.interval:
                return
            self._last_draw = now

            if phase_changed and self._phase is not None:
                self._print("")
            self._phase = event.phase
            self._draw(event)

    def _draw(self, event: ProgressEvent):
        line = f"  {event.percentage:5.1f}%  {event.describe()}"
        if self._status:
            line += f"  {self._status}"

        width = get_terminal_width()
        if len(line) >= width:
            line = line[:width - 4] + "..."
        # \033[2K clears the whole line before redrawing
        self._print(f"\033[2K\r{line}", end="")

    def _print(self, text: str, end: str = "\n"):
        print(text, end=end, flush=True, file=self.stream)

    def close(self):
        with self.lock:
            if not self._closed:
                self._closed = True
                self._print("")


def print_summary(result: SyncResult, elapsed: float, color: bool = True):
    """Print the end-of-run summary line and any per-file failures."""
    c = Colors if color else _NoColors

    if result.phase is SyncPhase.FAILED:
        print(f"{c.RED}✗{c.RESET} Sync failed: {result.error}")
        return
    if result.cancelled:
        print(f"{c.DIM}Cancelled{c.RESET} - {result.succeeded_count} files in place")
        return

    summary = f"{c.GREEN}✓{c.RESET} {c.BOLD}{result.succeeded_count} files{c.RESET} ({format_size(result.processed_bytes)})"
    details = []
    if result.copied_count:
        details.append(f"{result.copied_count} copied locally")
    if result.downloaded_count:
        details.append(f"{result.downloaded_count} downloaded")
    if details:
        summary += f" • {', '.join(details)}"
    summary += f" in {format_duration(elapsed)}"
    print(summary)

    if result.failed_entries:
        print(f"  {c.RED}{len(result.failed_entries)} errors{c.RESET}")
        for failed in result.failed_entries[:10]:
            print(f"    {failed.path}: {c.MUTED}{failed.reason}{c.RESET}")
        if len(result.failed_entries) > 10:
            print(f"    {c.MUTED}... and {len(result.failed_entries) - 10} more{c.RESET}")


class _NoColors:
    RESET = BOLD = DIM = RED = GREEN = MUTED = ""
