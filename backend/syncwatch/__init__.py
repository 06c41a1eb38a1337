"""
SyncWatch Package.

Recursive directory watching on top of a single-directory primitive.
Requires Python 3.11+.
"""

from syncwatch.bridge import Bridge, InMemoryBridge, WatchdogBridge, create_bridge
from syncwatch.errors import (
    DuplicateWatchError,
    RegistrationError,
    StreamClosedError,
    SyncWatchError,
    UnknownWatchError,
    UnregistrationError,
    WatcherClosedError,
)
from syncwatch.events import EventKind, RawEvent
from syncwatch.sync_watcher import SyncWatcher
from syncwatch.tree import WatchTree

__all__ = [
    "SyncWatcher",
    "WatchTree",
    "Bridge",
    "WatchdogBridge",
    "InMemoryBridge",
    "create_bridge",
    "EventKind",
    "RawEvent",
    "SyncWatchError",
    "DuplicateWatchError",
    "UnknownWatchError",
    "RegistrationError",
    "UnregistrationError",
    "WatcherClosedError",
    "StreamClosedError",
]
