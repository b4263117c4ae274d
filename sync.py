#!/usr/bin/env python3
"""
Lethe Sync - bring a game installation in line with the published manifest.

Checks every file listed in the manifest, copies verified files from an
existing Steam installation where possible, downloads the rest, and refreshes
the companion plugin files.
"""

import argparse
import signal
import sys
import time
from pathlib import Path

from lethe_sync import __version__
from lethe_sync.config import SyncConfig
from lethe_sync.core.log import setup_logging
from lethe_sync.core.paths import get_app_dir, get_local_manifest_path, get_settings_path
from lethe_sync.manifest import Manifest
from lethe_sync.sync import CancelToken, SyncOrchestrator, SyncPhase, SyncResult
from lethe_sync.ui import ConsoleProgress, print_summary

# Process exit codes
EXIT_OK = 0
EXIT_MANIFEST_FAILED = 1
EXIT_PARTIAL = 2
EXIT_CANCELLED = 130


def exit_code_for(result: SyncResult) -> int:
    if result.phase is SyncPhase.FAILED:
        return EXIT_MANIFEST_FAILED
    if result.cancelled:
        return EXIT_CANCELLED
    if result.failed_entries:
        return EXIT_PARTIAL
    return EXIT_OK


class SyncApp:
    """Main application controller."""

    def __init__(self, config: SyncConfig, use_local_manifest: bool = False, verbose: bool = False):
        self.config = config
        self.use_local_manifest = use_local_manifest
        log_path = Path(config.log_file)
        if not log_path.is_absolute():
            log_path = get_app_dir() / log_path
        self.logger = setup_logging(log_path, verbose=verbose, console=verbose)
        self.cancel = CancelToken()

    def build_orchestrator(self) -> SyncOrchestrator:
        kwargs = {"cancel": self.cancel, "logger": self.logger}
        if self.use_local_manifest:
            manifest_path = get_local_manifest_path()
            kwargs["manifest_loader"] = lambda: Manifest.load(manifest_path)
        return SyncOrchestrator.from_config(self.config, **kwargs)

    def run(self) -> int:
        if self.config.disable_auto_update:
            print("Auto-update disabled in settings, skipping file synchronization.")
            self.logger.info("disable_auto_update=true, skipping file synchronization")
            return EXIT_OK

        orchestrator = self.build_orchestrator()
        progress = ConsoleProgress()
        orchestrator.subscribe(progress)

        def handle_interrupt(signum, frame):
            if not self.cancel.cancelled:
                self.cancel.cancel()
                print("\n  Cancelling...")

        original_handler = None
        try:
            original_handler = signal.signal(signal.SIGINT, handle_interrupt)
        except ValueError:
            # Not on the main thread
            pass

        start = time.time()
        try:
            result = orchestrator.run_sync()
        finally:
            progress.close()
            if original_handler is not None:
                signal.signal(signal.SIGINT, original_handler)

        print_summary(result, time.time() - start)
        return exit_code_for(result)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Lethe Sync - verify and update game files from the manifest"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Settings file (default: lethe-sync.json next to the app)"
    )
    parser.add_argument("--dest", help="Installation folder to sync (default: from settings)")
    parser.add_argument("--donor", help="Existing installation to copy verified files from")
    parser.add_argument(
        "--no-donor", action="store_true",
        help="Never copy from another installation; download everything"
    )
    parser.add_argument(
        "--local-manifest", action="store_true",
        help="Use local lethe-manifest.json instead of fetching it"
    )
    parser.add_argument("--workers", type=int, help="Files to fetch concurrently (default: 1)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> SyncConfig:
    """Settings file values, overridden by command-line flags."""
    config = SyncConfig.load(args.config or get_settings_path())
    if args.dest:
        config.destination = args.dest
    if args.donor:
        config.donor_root = args.donor
    if args.no_donor:
        config.use_donor = False
    if args.workers:
        config.max_workers = args.workers
    return config


def main(argv=None) -> int:
    """Entry point."""
    args = parse_args(argv)
    app = SyncApp(load_config(args), use_local_manifest=args.local_manifest, verbose=args.verbose)
    return app.run()


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nCancelled by user.")
        sys.exit(EXIT_CANCELLED)
