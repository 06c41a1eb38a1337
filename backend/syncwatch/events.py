"""
SyncWatch Event Model.

Raw filesystem events as reported by a primitive bridge.
Requires Python 3.11+.
"""

from dataclasses import dataclass
from enum import Enum


class EventKind(str, Enum):
    """Kinds of change a primitive bridge can report."""

    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    METADATA = "metadata"


@dataclass(frozen=True)
class RawEvent:
    """A single change notification for one path."""

    path: str
    kind: EventKind

    def __str__(self) -> str:
        return f"{self.kind.value.upper()} {self.path}"
