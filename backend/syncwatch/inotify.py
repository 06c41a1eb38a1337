"""
SyncWatch inotify Bridge.

Linux bridge holding every watch on one inotify descriptor.
Requires Python 3.11+.
"""

import errno
import os
import threading

from inotify_simple import INotify, flags

from syncwatch.bridge import Bridge
from syncwatch.errors import (
    RegistrationError,
    SyncWatchError,
    UnregistrationError,
)
from syncwatch.events import EventKind, RawEvent

WATCH_MASK = (
    flags.CREATE
    | flags.MODIFY
    | flags.ATTRIB
    | flags.DELETE
    | flags.DELETE_SELF
    | flags.MOVED_FROM
    | flags.MOVED_TO
    | flags.MOVE_SELF
    | flags.ONLYDIR
)

# Checked in order; one inotify event normally carries a single one of these
_KINDS = (
    (flags.CREATE | flags.MOVED_TO, EventKind.CREATE),
    (flags.MODIFY, EventKind.WRITE),
    (flags.ATTRIB, EventKind.METADATA),
    (flags.DELETE | flags.DELETE_SELF, EventKind.REMOVE),
    (flags.MOVED_FROM | flags.MOVE_SELF, EventKind.RENAME),
)


def translate_mask(path: str, mask: int) -> list[RawEvent]:
    """
    Convert an inotify event mask for ``path`` into raw events.

    Moves arrive as two inotify events, so the source becomes a rename and
    the destination a create. Masks with none of the watched bits, such as
    ``IN_IGNORED``, give nothing.
    """
    return [RawEvent(path, kind) for bits, kind in _KINDS if mask & bits]


class InotifyBridge(Bridge):
    """
    Bridge backed by a single inotify instance.

    Every registered directory is one watch descriptor on the same inotify
    file descriptor, so the watch count is bounded by
    ``fs.inotify.max_user_watches`` rather than by the per-user instance
    limit. A reader thread turns kernel events into raw events in the order
    the kernel reports them.
    """

    def __init__(self, timeout: float = 5.0, poll_interval: float = 0.2) -> None:
        """
        Initialize the descriptor and start the reader thread.

        Args:
            timeout: Seconds to wait for the reader thread on close
            poll_interval: Seconds each read waits before checking for shutdown
        """
        super().__init__()
        self._inotify = INotify()
        self._timeout = timeout
        self._poll_ms = max(1, int(poll_interval * 1000))
        # wd -> path for live watches; path -> wd until unregistered
        self._paths: dict[int, str] = {}
        self._wds: dict[str, int] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._reader = threading.Thread(
            target=self._read_loop,
            name="SyncWatchInotifyReader",
            daemon=True,
        )
        self._reader.start()

    def register(self, path: str) -> None:
        self._ensure_open()
        with self._lock:
            try:
                wd = self._inotify.add_watch(path, WATCH_MASK)
            except OSError as e:
                if e.errno == errno.ENOSPC:
                    reason = "inotify watch limit reached"
                else:
                    reason = e.strerror or str(e)
                raise RegistrationError(path, reason) from e

            other = self._paths.get(wd)
            if other is not None and other != path:
                # Same inode reached through a second path
                raise RegistrationError(path, f"already watched as {other}")
            self._paths[wd] = path
            self._wds[path] = wd

    def unregister(self, path: str) -> None:
        if self._closed:
            return

        with self._lock:
            wd = self._wds.pop(path, None)
            if wd is None:
                raise UnregistrationError(path, "not registered")
            if self._paths.pop(wd, None) is None:
                # The kernel dropped the watch when the directory went away
                return
            try:
                self._inotify.rm_watch(wd)
            except OSError as e:
                if e.errno != errno.EINVAL:
                    raise UnregistrationError(path, e.strerror or str(e)) from e

    def _read_loop(self) -> None:
        self.log.debug("inotify_reader_started", fd=self._inotify.fileno())
        while not self._stop.is_set():
            try:
                kernel_events = self._inotify.read(timeout=self._poll_ms)
            except OSError as e:
                if self._stop.is_set():
                    break
                self.log.error("inotify_read_failed", error=str(e))
                self.report_error(e)
                break

            for event in kernel_events:
                self._dispatch(event.wd, event.mask, event.name)
        self.log.debug("inotify_reader_stopped")

    def _dispatch(self, wd: int, mask: int, name: str) -> None:
        if mask & flags.Q_OVERFLOW:
            self.report_error(SyncWatchError("inotify event queue overflowed"))
            return

        with self._lock:
            directory = self._paths.get(wd)
            if mask & flags.IGNORED:
                self._paths.pop(wd, None)
        if directory is None:
            # Late event for a watch that was already removed
            return

        path = os.path.join(directory, name) if name else directory
        for raw in translate_mask(path, mask):
            self.publish(raw)

    def _shutdown(self) -> None:
        self._stop.set()
        self._reader.join(timeout=self._timeout)
        alive = self._reader.is_alive()
        if not alive:
            self._inotify.close()
        with self._lock:
            self._paths.clear()
            self._wds.clear()
        if alive:
            raise SyncWatchError(
                f"inotify reader did not stop within {self._timeout} seconds"
            )

    @property
    def watched_paths(self) -> frozenset[str]:
        """Get the currently armed paths."""
        with self._lock:
            return frozenset(self._wds)
