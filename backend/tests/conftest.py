"""
SyncWatch Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from helpers import drain
from syncwatch import InMemoryBridge, SyncWatchError, SyncWatcher
from utils.config import WatcherSettings


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    """Create an empty directory to watch."""
    path = tmp_path / "watched"
    path.mkdir()
    return path


@pytest.fixture
def bridge() -> InMemoryBridge:
    """Create an in-memory bridge."""
    return InMemoryBridge()


@pytest.fixture
def strict_settings() -> WatcherSettings:
    """Watcher settings with the strict registration policy."""
    return WatcherSettings(stream_capacity=1, registration_policy="strict")


@pytest.fixture
def best_effort_settings() -> WatcherSettings:
    """Watcher settings with the best-effort registration policy."""
    return WatcherSettings(stream_capacity=1, registration_policy="best_effort")


@pytest.fixture
def make_watcher() -> Generator[Callable[..., SyncWatcher], None, None]:
    """Factory for watchers that are closed and drained after the test."""
    created: list[SyncWatcher] = []

    def factory(bridge: InMemoryBridge, settings: WatcherSettings | None = None) -> SyncWatcher:
        watcher = SyncWatcher(
            bridge=bridge,
            settings=settings or WatcherSettings(stream_capacity=1),
        )
        created.append(watcher)
        return watcher

    yield factory

    for watcher in created:
        try:
            watcher.close()
        except (SyncWatchError, OSError):
            # Tests that inject close failures have already checked them
            pass
        drain(watcher.events)
        drain(watcher.errors)


@pytest.fixture
def watcher(
    make_watcher: Callable[..., SyncWatcher],
    bridge: InMemoryBridge,
    strict_settings: WatcherSettings,
) -> SyncWatcher:
    """Create a watcher on the in-memory bridge."""
    return make_watcher(bridge, strict_settings)
