#!/usr/bin/env python3
"""
SyncWatch Tree Watcher Script.

Recursively watches directories and logs every event and error.
Requires Python 3.11+.

Usage:
    python scripts/watch_tree.py /path/to/dir [/another/dir ...] [--duration 60] [--dump]
"""

import argparse
import queue
import sys
import threading
import time
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from syncwatch import SyncWatcher, SyncWatchError
from utils.logger import configure_logging, get_logger


configure_logging()
logger = get_logger("watch_tree")


def _drain_errors(watcher: SyncWatcher) -> None:
    """Log errors until the error stream closes."""
    for error in watcher.errors:
        logger.error("watch_error", error=str(error), error_type=type(error).__name__)


def run(paths: list[Path], duration: float | None, dump: bool) -> int:
    """
    Watch ``paths`` and log events.

    Args:
        paths: Directories to watch
        duration: Seconds to run, or None to run until interrupted
        dump: Log the watch tree when finished

    Returns:
        Process exit code
    """
    watcher = SyncWatcher()

    for path in paths:
        try:
            watcher.watch(path)
        except SyncWatchError as e:
            logger.error("watch_failed", path=str(path), error=str(e))
            watcher.close()
            return 1

    error_thread = threading.Thread(target=_drain_errors, args=(watcher,), daemon=True)
    error_thread.start()

    deadline = time.monotonic() + duration if duration is not None else None
    count = 0

    try:
        while deadline is None or time.monotonic() < deadline:
            try:
                event = watcher.events.get(timeout=0.5)
            except queue.Empty:
                continue
            count += 1
            logger.info("event", kind=event.kind.value, path=event.path)
    except KeyboardInterrupt:
        logger.info("interrupted")
    finally:
        if dump:
            logger.info("watch_tree", tree=watcher.dump())
        watcher.close()
        # Let the dispatcher flush into the closing streams
        for _ in watcher.events:
            count += 1
        error_thread.join(timeout=5.0)

    logger.info("watch_finished", events=count)
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Recursively watch directories and log filesystem events"
    )
    parser.add_argument(
        "paths",
        type=Path,
        nargs="+",
        help="Directories to watch",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until Ctrl+C)",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Log the watch tree before exiting",
    )

    args = parser.parse_args()

    for path in args.paths:
        if not path.is_dir():
            logger.error("not_a_directory", path=str(path))
            sys.exit(1)

    sys.exit(run([p.resolve() for p in args.paths], args.duration, args.dump))


if __name__ == "__main__":
    main()
