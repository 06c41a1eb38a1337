"""
SyncWatch Outbound Streams.

Bounded, closable hand-off queues between the dispatcher and the caller.
Requires Python 3.11+.
"""

import queue
from collections.abc import Iterator
from typing import Generic, TypeVar

from syncwatch.errors import StreamClosedError

T = TypeVar("T")

_CLOSED = object()


class Stream(Generic[T]):
    """
    A one-way stream of items from the dispatcher to the caller.

    ``put`` blocks while the stream is full, so a caller that stops reading
    stalls the producer. ``close`` enqueues an end marker behind any items
    already waiting; readers see every item before the stream reports closed.
    """

    def __init__(self, name: str, capacity: int = 1) -> None:
        """
        Initialize the stream.

        Args:
            name: Label used in errors and logs ("events", "errors")
            capacity: Items buffered before put() blocks
        """
        self.name = name
        self._queue: queue.Queue[object] = queue.Queue(maxsize=capacity)
        self._drained = False

    def put(self, item: T) -> None:
        """Hand an item to the caller, blocking while the stream is full."""
        self._queue.put(item)

    def close(self) -> None:
        """Mark the end of the stream. Blocks while the stream is full."""
        self._queue.put(_CLOSED)

    def get(self, timeout: float | None = None) -> T:
        """
        Receive the next item.

        Args:
            timeout: Seconds to wait; None waits forever

        Raises:
            StreamClosedError: The stream was closed and fully drained
            queue.Empty: Nothing arrived within ``timeout``
        """
        if self._drained:
            raise StreamClosedError(self.name)

        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            self._drained = True
            # Leave the marker for any other reader
            try:
                self._queue.put_nowait(_CLOSED)
            except queue.Full:
                pass
            raise StreamClosedError(self.name)
        return item  # type: ignore[return-value]

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except StreamClosedError:
                return

    @property
    def closed(self) -> bool:
        """True once a reader has received the end marker."""
        return self._drained

    def __repr__(self) -> str:
        return f"Stream({self.name!r}, pending={self._queue.qsize()})"
