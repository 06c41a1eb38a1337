"""
SyncWatch Event Dispatcher.

The single worker that keeps the watch tree in step with the filesystem.
Requires Python 3.11+.
"""

import os
import stat
import threading

from syncwatch.bridge import CLOSED, Bridge
from syncwatch.errors import (
    BridgeError,
    SyncWatchError,
    UnknownWatchError,
)
from syncwatch.events import RawEvent
from syncwatch.streams import Stream
from syncwatch.tree import WatchTree
from utils.logger import LoggerMixin


def is_directory(path: str, follow_symlinks: bool = False) -> bool:
    """Check whether ``path`` is a directory right now."""
    try:
        st = os.stat(path) if follow_symlinks else os.lstat(path)
    except OSError:
        return False
    return stat.S_ISDIR(st.st_mode)


class Dispatcher(LoggerMixin):
    """
    Consumes the bridge inbox and maintains the watch tree.

    For each event: a path already in the tree has changed in a way the
    primitive cannot describe, so its subtree is invalidated; an unknown
    path that is now a directory is walked and registered. The event is
    forwarded only after that bookkeeping, so a caller reacting to it sees
    a tree that already reflects it. Errors are forwarded verbatim.

    Changes inside an invalidated subtree go unseen until a later create
    event rebuilds it.
    """

    def __init__(
        self,
        tree: WatchTree,
        bridge: Bridge,
        events: Stream[RawEvent],
        errors: Stream[BaseException],
        follow_symlinks: bool = False,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            tree: Watch tree shared with the public API
            bridge: Primitive bridge whose inbox is consumed
            events: Outbound event stream
            errors: Outbound error stream
            follow_symlinks: Descend into symlinked directories when walking
        """
        self._tree = tree
        self._bridge = bridge
        self._events = events
        self._errors = errors
        self._follow_symlinks = follow_symlinks
        self._thread = threading.Thread(
            target=self._run,
            name="SyncWatchDispatcher",
            daemon=True,
        )

    def start(self) -> None:
        """Start the worker thread."""
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker thread to finish."""
        self._thread.join(timeout)

    @property
    def is_running(self) -> bool:
        """Check if the worker thread is alive."""
        return self._thread.is_alive()

    def _run(self) -> None:
        self.log.debug("dispatcher_started")
        processed = 0
        while True:
            item = self._bridge.inbox.get()
            if item is CLOSED:
                break
            if isinstance(item, BridgeError):
                self.log.debug("error_forwarded", error=str(item.error))
                self._errors.put(item.error)
                continue

            self.handle_event(item)
            processed += 1

        self._events.close()
        self._errors.close()
        self.log.debug("dispatcher_stopped", processed=processed)

    def handle_event(self, event: RawEvent) -> None:
        """
        Apply bookkeeping for one raw event, then forward it.

        The event is forwarded even when the bookkeeping fails; the failure
        goes to the error stream first.
        """
        try:
            self.update_tree(event)
        except Exception as e:
            self.log.exception("event_handling_failed", path=event.path)
            self._errors.put(e)
        self._events.put(event)

    def update_tree(self, event: RawEvent) -> None:
        """Invalidate a known path, or walk a new directory."""
        path = event.path
        if path in self._tree:
            try:
                self.invalidate(path)
            except UnknownWatchError:
                # Removed by remove_watch() since the membership check
                self.log.debug("invalidate_skipped", path=path)
        elif is_directory(path, self._follow_symlinks):
            self.register_subtree(path)

    def invalidate(self, path: str, *, include_target: bool = False) -> list[str]:
        """
        Drop the subtree at ``path`` from the tree and unregister it.

        Unregistration is best-effort: a failure is logged and the remaining
        paths are still unregistered.

        Raises:
            UnknownWatchError: ``path`` is not watched
        """
        removed = self._tree.invalidate_subtree(path, include_target=include_target)
        self.unregister_all(removed)
        return removed

    def unregister_all(self, paths: list[str]) -> None:
        """Unregister every path, logging failures."""
        for path in paths:
            try:
                self._bridge.unregister(path)
            except SyncWatchError as e:
                self.log.warning("unregister_failed", path=path, error=str(e))

    def register_subtree(
        self,
        top: str,
        *,
        strict: bool = False,
        require_top: bool = False,
    ) -> list[str]:
        """
        Register ``top`` and every directory below it.

        Each directory is registered with the bridge before it is inserted
        into the tree. Directories already in the tree are linked to their
        parent but not descended into. A directory that fails to register is
        skipped together with its subtree.

        Args:
            top: Directory to walk
            strict: Raise on the first registration failure, after rolling
                back every registration made by this walk
            require_top: Raise if ``top`` itself cannot be registered

        Returns:
            Newly inserted paths, parents before children

        Raises:
            RegistrationError: See ``strict`` and ``require_top``
            WatcherClosedError: Same conditions, once the bridge has closed
        """
        added: list[str] = []
        seen: set[str] = set()
        stack = [top]

        while stack:
            directory = stack.pop()

            if directory in self._tree:
                self._tree.insert(directory)
                continue

            if self._follow_symlinks:
                real = os.path.realpath(directory)
                if real in seen:
                    continue
                seen.add(real)

            try:
                self._bridge.register(directory)
            except SyncWatchError as e:
                # A closed bridge refuses every registration
                if strict or (require_top and directory == top):
                    self._rollback(added)
                    raise
                self.log.warning("register_failed", path=directory, error=str(e))
                continue

            self._tree.insert(directory)
            added.append(directory)

            try:
                with os.scandir(directory) as entries:
                    subdirs = [
                        entry.path
                        for entry in entries
                        if entry.is_dir(follow_symlinks=self._follow_symlinks)
                    ]
            except OSError as e:
                self.log.warning("scan_failed", path=directory, error=str(e))
                continue
            stack.extend(subdirs)

        if added:
            self.log.debug("subtree_registered", path=top, directories=len(added))
        return added

    def _rollback(self, added: list[str]) -> None:
        if not added:
            return
        self._tree.discard(added)
        self.unregister_all(added)
        self.log.debug("registration_rolled_back", directories=len(added))
