"""
SyncWatch Recursive Watcher.

Watches whole directory trees on top of a single-directory primitive.
Requires Python 3.11+.
"""

import os
import threading
from typing import Any

from syncwatch.bridge import Bridge, create_bridge
from syncwatch.dispatcher import Dispatcher
from syncwatch.errors import UnknownWatchError, WatcherClosedError
from syncwatch.events import RawEvent
from syncwatch.streams import Stream
from syncwatch.tree import WatchTree
from utils.config import WatcherSettings, get_settings
from utils.logger import LoggerMixin


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Make ``path`` absolute and normalized, without resolving symlinks."""
    return os.path.abspath(os.fspath(path))


class SyncWatcher(LoggerMixin):
    """
    Recursive directory watcher.

    When a directory is watched, so are all its subdirectories, and
    subdirectories created, moved in or moved out later are watched or
    unwatched as appropriate. A root directory (as passed to ``watch``) is
    never unwatched implicitly, even if deleted or moved.

    Events are read from ``events`` and asynchronous engine errors from
    ``errors``. Each stream buffers ``stream_capacity`` items (one by
    default) and a caller that stops reading either stream stalls the
    watcher once that buffer is full. The hand-off is not a rendezvous:
    the tree may already reflect up to ``stream_capacity + 1`` events the
    caller has not yet received, the buffered ones plus the one waiting to
    be put. Both close after ``close()``, once pending items have been
    delivered.

    When a watched directory changes, its subtree is unwatched and rebuilt
    from later create events; changes inside it during that window are
    missed. Assume anything may have happened in that time.

    ``watch`` and ``remove_watch`` raise ``WatcherClosedError`` once
    ``close`` has been called.
    """

    def __init__(
        self,
        bridge: Bridge | None = None,
        settings: WatcherSettings | None = None,
    ) -> None:
        """
        Initialize the watcher and start its dispatcher.

        Args:
            bridge: Primitive bridge (defaults to the one chosen by settings)
            settings: Watcher settings (defaults to the environment)
        """
        settings = settings or get_settings().watcher

        self._strict = settings.registration_policy == "strict"
        self._bridge = bridge if bridge is not None else create_bridge(settings)
        self._tree = WatchTree()
        self.events: Stream[RawEvent] = Stream("events", settings.stream_capacity)
        self.errors: Stream[BaseException] = Stream("errors", settings.stream_capacity)

        self._dispatcher = Dispatcher(
            tree=self._tree,
            bridge=self._bridge,
            events=self.events,
            errors=self.errors,
            follow_symlinks=settings.follow_symlinks,
        )
        self._closing = False
        self._close_lock = threading.Lock()
        self._dispatcher.start()

    def watch(self, path: str | os.PathLike[str]) -> None:
        """
        Watch a directory and everything below it.

        Args:
            path: Directory to watch

        Raises:
            DuplicateWatchError: The directory is already watched
            RegistrationError: The directory (or, under the strict policy,
                any directory below it) could not be registered
            WatcherClosedError: close() has been called
        """
        self._ensure_open()
        path = normalize_path(path)

        self._tree.claim_root(path)
        try:
            added = self._dispatcher.register_subtree(
                path,
                strict=self._strict,
                require_top=True,
            )
        except Exception:
            self._tree.drop_root(path)
            raise

        self.log.info("watch_added", path=path, directories=len(added))

    def remove_watch(self, path: str | os.PathLike[str]) -> None:
        """
        Stop watching a directory and everything below it.

        Works on roots and on any watched subdirectory. A subdirectory
        removed this way is watched again if a later event recreates it.

        Raises:
            UnknownWatchError: The directory is not watched
            WatcherClosedError: close() has been called
        """
        self._ensure_open()
        path = normalize_path(path)

        if path not in self._tree:
            raise UnknownWatchError(path)

        self._tree.drop_root(path)
        removed = self._dispatcher.invalidate(path, include_target=True)
        self.log.info("watch_removed", path=path, directories=len(removed))

    def close(self) -> None:
        """
        Shut down the watcher.

        Closing the bridge ends its inbox, which stops the dispatcher and
        closes both outbound streams. Safe to call more than once.

        Raises:
            Exception: Whatever the bridge raised while shutting down
        """
        with self._close_lock:
            if self._closing:
                return
            self._closing = True

        self._bridge.close()
        self.log.info("watcher_closed")

    def wait_closed(self, timeout: float | None = None) -> bool:
        """
        Wait for the dispatcher to finish after close().

        Both streams must be read to the end for this to return True.
        """
        self._dispatcher.join(timeout)
        return not self._dispatcher.is_running

    def snapshot(self) -> dict[str, frozenset[str]]:
        """Get a copy of the watch tree: path -> watched child basenames."""
        return self._tree.snapshot()

    @property
    def roots(self) -> frozenset[str]:
        """Get the directories passed to watch()."""
        return self._tree.roots

    @property
    def closed(self) -> bool:
        """Check if close() has been called."""
        return self._closing

    def dump(self) -> str:
        """Render the watch tree for debugging. The format is not stable."""
        return self._tree.render()

    def _ensure_open(self) -> None:
        if self._closing:
            raise WatcherClosedError("watcher is closed")

    def __str__(self) -> str:
        return self.dump()

    def __enter__(self) -> "SyncWatcher":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()
