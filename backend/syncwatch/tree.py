"""
SyncWatch Watch Tree.

In-memory mirror of which directories are watched and how they nest.
Requires Python 3.11+.
"""

import os
import threading

from syncwatch.errors import DuplicateWatchError, UnknownWatchError
from utils.logger import LoggerMixin


class WatchTree(LoggerMixin):
    """
    Registry of watched directories and their watched children.

    Maps each watched directory to the set of basenames of its immediate
    subdirectories that are watched too, and tracks the root set: the paths
    the caller asked for explicitly. Every operation takes the same lock, so
    the tree can be shared between caller threads and the dispatcher.

    The tree never talks to the primitive itself. Operations that drop
    entries return the dropped paths so the caller can unregister them
    outside the lock.
    """

    def __init__(self) -> None:
        """Initialize an empty tree."""
        self._paths: dict[str, set[str]] = {}
        self._roots: set[str] = set()
        self._lock = threading.Lock()

    def insert(self, path: str) -> bool:
        """
        Add a watched directory.

        The directory is linked into its parent's child set when the parent
        is watched. An existing entry keeps its children.

        Args:
            path: Absolute, normalized directory path

        Returns:
            True if the entry is new, False if it already existed
        """
        with self._lock:
            created = path not in self._paths
            if created:
                self._paths[path] = set()
            parent = os.path.dirname(path)
            if parent != path and parent in self._paths:
                self._paths[parent].add(os.path.basename(path))
            return created

    def discard(self, paths: list[str]) -> None:
        """Drop entries regardless of root status, unlinking them from parents."""
        with self._lock:
            for path in paths:
                if path in self._paths:
                    self._remove_entry(path)

    def invalidate_subtree(self, path: str, *, include_target: bool = False) -> list[str]:
        """
        Drop every entry beneath ``path``.

        The walk is depth-first with an explicit stack. Roots keep their own
        entry but lose everything beneath them, so a root met below the
        target survives with no children. The target itself is kept when it
        is a root, unless ``include_target`` is set.

        Args:
            path: Watched directory to invalidate
            include_target: Also drop ``path`` even if it is a root

        Returns:
            Paths removed from the tree, in removal order

        Raises:
            UnknownWatchError: ``path`` is not watched
        """
        with self._lock:
            if path not in self._paths:
                raise UnknownWatchError(path)

            removed: list[str] = []
            stack = [path]
            while stack:
                current = stack.pop()
                children = self._paths.get(current)
                if children is None:
                    continue
                stack.extend(os.path.join(current, name) for name in children)

                if current in self._roots and not (include_target and current == path):
                    continue
                self._remove_entry(current)
                removed.append(current)

        self.log.debug("subtree_invalidated", path=path, removed=len(removed))
        return removed

    def _remove_entry(self, path: str) -> None:
        # Caller holds the lock.
        del self._paths[path]
        parent = os.path.dirname(path)
        siblings = self._paths.get(parent)
        if siblings is not None and parent != path:
            siblings.discard(os.path.basename(path))

    def is_root(self, path: str) -> bool:
        """Check whether ``path`` was passed to watch()."""
        with self._lock:
            return path in self._roots

    def add_root(self, path: str) -> None:
        """Mark ``path`` as a root."""
        with self._lock:
            self._roots.add(path)

    def drop_root(self, path: str) -> bool:
        """Unmark ``path`` as a root; returns whether it was one."""
        with self._lock:
            if path in self._roots:
                self._roots.remove(path)
                return True
            return False

    def claim_root(self, path: str) -> None:
        """
        Atomically check ``path`` is untracked and mark it as a root.

        Raises:
            DuplicateWatchError: ``path`` is already watched or being watched
        """
        with self._lock:
            if path in self._paths or path in self._roots:
                raise DuplicateWatchError(path)
            self._roots.add(path)

    def children(self, path: str) -> frozenset[str]:
        """Get the watched child basenames of ``path``."""
        with self._lock:
            if path not in self._paths:
                raise UnknownWatchError(path)
            return frozenset(self._paths[path])

    def snapshot(self) -> dict[str, frozenset[str]]:
        """Get a detached copy of the mapping, for diagnostics and tests."""
        with self._lock:
            return {path: frozenset(children) for path, children in self._paths.items()}

    def render(self) -> str:
        """Render the tree as one line, sorted by path."""
        parts = ["SyncWatch:"]
        for path, children in sorted(self.snapshot().items()):
            parts.append(f"{path} {{{', '.join(sorted(children))}}}")
        return " ".join(parts)

    @property
    def roots(self) -> frozenset[str]:
        """Get the current root set."""
        with self._lock:
            return frozenset(self._roots)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
