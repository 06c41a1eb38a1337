"""
SyncWatch Primitive Bridges.

Adapters to single-directory (non-recursive) watch engines.
Requires Python 3.11+.
"""

import os
import queue
import sys
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from syncwatch.errors import (
    BridgeError,
    RegistrationError,
    SyncWatchError,
    UnregistrationError,
    WatcherClosedError,
)
from syncwatch.events import EventKind, RawEvent
from utils.config import WatcherSettings
from utils.logger import LoggerMixin


class _Closed:
    """End-of-inbox marker."""

    def __repr__(self) -> str:
        return "CLOSED"


CLOSED = _Closed()

InboxItem = RawEvent | BridgeError | _Closed


class Bridge(ABC, LoggerMixin):
    """
    Contract for a single-directory watch engine.

    A bridge arms and disarms watches on exactly the paths it is given and
    knows nothing about directory trees. Events and asynchronous errors are
    posted to one FIFO ``inbox`` in arrival order; ``close`` ends the inbox
    with the ``CLOSED`` marker.
    """

    def __init__(self) -> None:
        """Initialize the inbox."""
        self.inbox: queue.Queue[InboxItem] = queue.Queue()
        self._closed = False
        self._close_lock = threading.Lock()

    @abstractmethod
    def register(self, path: str) -> None:
        """
        Arm a non-recursive watch on a directory.

        Raises:
            RegistrationError: Path missing, not a directory, or no resources
            WatcherClosedError: The bridge was closed
        """

    @abstractmethod
    def unregister(self, path: str) -> None:
        """
        Disarm a watch. Does nothing once the bridge is closed.

        Raises:
            UnregistrationError: The path was never armed
        """

    @abstractmethod
    def _shutdown(self) -> None:
        """Stop the underlying engine."""

    def close(self) -> None:
        """
        Shut the engine down and end the inbox.

        The ``CLOSED`` marker is posted even when shutdown fails; the failure
        is re-raised. Calling close twice is a no-op.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            self._shutdown()
        finally:
            self.inbox.put(CLOSED)
            self.log.debug("bridge_closed")

    def publish(self, event: RawEvent) -> None:
        """Post a raw event to the inbox."""
        self.inbox.put(event)

    def report_error(self, error: BaseException) -> None:
        """Post an asynchronous engine error to the inbox."""
        self.inbox.put(BridgeError(error))

    def _ensure_open(self) -> None:
        if self._closed:
            raise WatcherClosedError("bridge is closed")

    @property
    def closed(self) -> bool:
        """Check if close() has been called."""
        return self._closed


def translate_event(event: FileSystemEvent) -> list[RawEvent]:
    """
    Convert a watchdog event into raw events.

    A move becomes a rename of the old path followed by a create of the new
    one. Directory-modified events are dropped: watchdog synthesizes one for
    the parent of every create, delete and move. Open/close notifications are
    dropped as well.
    """
    src_path = os.fsdecode(event.src_path)

    if event.event_type == EVENT_TYPE_CREATED:
        return [RawEvent(src_path, EventKind.CREATE)]
    if event.event_type == EVENT_TYPE_MODIFIED:
        if event.is_directory:
            return []
        return [RawEvent(src_path, EventKind.WRITE)]
    if event.event_type == EVENT_TYPE_DELETED:
        return [RawEvent(src_path, EventKind.REMOVE)]
    if event.event_type == EVENT_TYPE_MOVED:
        dest_path = os.fsdecode(event.dest_path)
        return [
            RawEvent(src_path, EventKind.RENAME),
            RawEvent(dest_path, EventKind.CREATE),
        ]
    return []


class _ForwardingHandler(FileSystemEventHandler):
    """Forwards every watchdog event to the bridge inbox."""

    def __init__(self, bridge: Bridge) -> None:
        super().__init__()
        self._bridge = bridge

    def dispatch(self, event: FileSystemEvent) -> None:
        try:
            raw_events = translate_event(event)
        except Exception as e:
            self._bridge.report_error(e)
            return
        for raw in raw_events:
            self._bridge.publish(raw)


class WatchdogBridge(Bridge):
    """
    Bridge backed by a watchdog observer.

    Each directory gets its own non-recursive schedule on one shared
    observer, so events from all directories arrive through the observer's
    single dispatch thread in order. Used where inotify is unavailable: on
    Linux every schedule opens its own inotify instance, which caps the
    tree at ``fs.inotify.max_user_instances`` directories.
    """

    def __init__(self, observer: Any | None = None, timeout: float = 5.0) -> None:
        """
        Initialize and start the observer.

        Args:
            observer: watchdog observer to use (defaults to the platform Observer)
            timeout: Seconds to wait for the observer thread on close
        """
        super().__init__()
        self._observer = observer if observer is not None else Observer()
        self._timeout = timeout
        self._handler = _ForwardingHandler(self)
        self._watches: dict[str, Any] = {}
        self._lock = threading.Lock()
        self._observer.start()

    def register(self, path: str) -> None:
        self._ensure_open()
        if not os.path.isdir(path):
            raise RegistrationError(path, "not a directory")

        try:
            watch = self._observer.schedule(self._handler, path, recursive=False)
        except OSError as e:
            raise RegistrationError(path, e.strerror or str(e)) from e

        with self._lock:
            self._watches[path] = watch

    def unregister(self, path: str) -> None:
        if self._closed:
            return

        with self._lock:
            watch = self._watches.pop(path, None)
        if watch is None:
            raise UnregistrationError(path, "not registered")

        try:
            self._observer.unschedule(watch)
        except (KeyError, OSError) as e:
            raise UnregistrationError(path, str(e)) from e

    def _shutdown(self) -> None:
        with self._lock:
            self._watches.clear()
        self._observer.stop()
        self._observer.join(timeout=self._timeout)
        if self._observer.is_alive():
            raise SyncWatchError(
                f"watchdog observer did not stop within {self._timeout} seconds"
            )

    @property
    def watched_paths(self) -> frozenset[str]:
        """Get the currently armed paths."""
        with self._lock:
            return frozenset(self._watches)


class InMemoryBridge(Bridge):
    """
    Scriptable bridge that touches no OS notification API.

    Registration succeeds for any existing directory not listed in
    ``fail_on``. Events and errors are injected with ``publish`` and
    ``report_error``. Useful for tests and for driving the watcher from
    another event source.
    """

    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        super().__init__()
        self.fail_on: set[str] = set(fail_on)
        self.close_error: BaseException | None = None
        self.armed: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def register(self, path: str) -> None:
        self._ensure_open()
        with self._lock:
            self.calls.append(("register", path))
            if path in self.fail_on:
                raise RegistrationError(path, "refused")
            if not os.path.isdir(path):
                raise RegistrationError(path, "not a directory")
            self.armed.add(path)

    def unregister(self, path: str) -> None:
        if self._closed:
            return
        with self._lock:
            self.calls.append(("unregister", path))
            if path not in self.armed:
                raise UnregistrationError(path, "not registered")
            self.armed.remove(path)

    def _shutdown(self) -> None:
        if self.close_error is not None:
            raise self.close_error
        with self._lock:
            self.armed.clear()


def create_bridge(settings: WatcherSettings) -> Bridge:
    """
    Build the primitive bridge selected by ``settings.backend``.

    ``auto`` picks the inotify bridge on Linux and the watchdog bridge
    everywhere else.
    """
    backend = settings.backend
    if backend == "auto":
        backend = "inotify" if sys.platform.startswith("linux") else "watchdog"

    if backend == "inotify":
        # inotify_simple is only installed on Linux
        from syncwatch.inotify import InotifyBridge

        return InotifyBridge(
            timeout=settings.shutdown_timeout,
            poll_interval=settings.poll_interval,
        )
    return WatchdogBridge(timeout=settings.shutdown_timeout)
