"""
SyncWatch Exceptions.

Requires Python 3.11+.
"""


class SyncWatchError(Exception):
    """Base class for all watcher errors."""


class DuplicateWatchError(SyncWatchError):
    """Raised when watch() is called on a path that is already tracked."""

    def __init__(self, path: str) -> None:
        super().__init__(f"cannot watch path twice: {path}")
        self.path = path


class UnknownWatchError(SyncWatchError):
    """Raised when a path is not a tracked directory."""

    def __init__(self, path: str) -> None:
        super().__init__(f"cannot remove unknown watch: {path}")
        self.path = path


class RegistrationError(SyncWatchError):
    """The primitive refused to arm a watch on a directory."""

    def __init__(self, path: str, reason: str = "") -> None:
        message = f"cannot register watch: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.path = path


class UnregistrationError(SyncWatchError):
    """The primitive refused to disarm a watch."""

    def __init__(self, path: str, reason: str = "") -> None:
        message = f"cannot unregister watch: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.path = path


class WatcherClosedError(SyncWatchError):
    """Raised by API calls made after close() was initiated."""


class BridgeError(SyncWatchError):
    """
    Wraps an asynchronous error raised inside a primitive bridge.

    Only the wrapped ``error`` is handed to callers; the wrapper tags the
    item on the bridge inbox so it can travel alongside events.
    """

    def __init__(self, error: BaseException) -> None:
        super().__init__(str(error))
        self.error = error


class StreamClosedError(SyncWatchError):
    """Raised when reading from an outbound stream that has been closed."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} stream is closed")
        self.name = name
