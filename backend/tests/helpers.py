"""
Shared helpers for the SyncWatch tests.

Requires Python 3.11+.
"""

import queue
import time
from collections.abc import Callable
from typing import Any

import pytest

from syncwatch import InMemoryBridge, RawEvent, StreamClosedError, SyncWatcher
from syncwatch.streams import Stream


def next_item(stream: Stream[Any], timeout: float = 2.0) -> Any:
    """Read one item from a stream, failing the test on timeout."""
    try:
        return stream.get(timeout=timeout)
    except queue.Empty:
        pytest.fail(f"no item on {stream.name} stream within {timeout}s")


def drain(stream: Stream[Any], timeout: float = 5.0) -> list[Any]:
    """Read a stream until it closes, failing the test on timeout."""
    items: list[Any] = []
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            pytest.fail(f"{stream.name} stream did not close within {timeout}s")
        try:
            items.append(stream.get(timeout=remaining))
        except StreamClosedError:
            return items
        except queue.Empty:
            continue


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def publish(bridge: InMemoryBridge, watcher: SyncWatcher, event: RawEvent) -> RawEvent:
    """Publish an event and wait until the watcher forwards it."""
    bridge.publish(event)
    forwarded = next_item(watcher.events)
    assert forwarded == event
    return forwarded
