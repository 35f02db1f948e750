from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

from rich.markup import escape

from .location import PathLocator

__all__ = [
    "PushState",
    "PendingPushUpdate",
    "PendingPullUpdate",
]


class PushState(Enum):
    """
    State of a local write. Maintained automatically as the write is
    committed to the remote store and observed in its change stream.
    """

    PENDING = auto()
    """Committed locally, not yet acknowledged by remote store"""

    ACKED = auto()
    """Remote write completed"""

    ECHOED = auto()
    """Observed in a snapshot from remote store, not yet acknowledged"""

    FAILED = auto()
    """Remote write raised an error or timed out"""

    EXPIRED = auto()
    """Dropped after waiting too long for acknowledgement"""

    def __str__(self) -> str:
        color_map = {
            PushState.PENDING: "bright_yellow",
            PushState.ACKED: "bright_green",
            PushState.ECHOED: "cyan",
            PushState.FAILED: "red",
            PushState.EXPIRED: "magenta",
        }

        start = escape("[")
        end = escape("]")
        return f"{start}[{color_map[self]}]{self.name}[/{color_map[self]}]{end}"


@dataclass(eq=False)
class PendingPushUpdate:
    """
    Local write which was sent to the remote store but not yet confirmed.
    Compared by identity, so duplicate writes of the same value are tracked
    separately.
    """

    locator: PathLocator
    """Location of the node which was written to"""

    key: str | int
    """Key within the node"""

    value: Any
    """Raw value written, or `None` for deletion"""

    state: PushState = PushState.PENDING

    created: float = field(default_factory=time.monotonic)
    """Monotonic timestamp of the write"""

    @property
    def target(self) -> PathLocator:
        """
        Location of the written value itself.
        """
        return self.locator.child(self.key)

    @property
    def age(self) -> float:
        return time.monotonic() - self.created

    @property
    def str_summary(self) -> str:
        return f"{self.target} = {self.value!r} {self.state}"


@dataclass(eq=False)
class PendingPullUpdate:
    """
    Snapshot received from the remote store, waiting to be diffed against
    the local tree.
    """

    snapshot: Any
    received: float = field(default_factory=time.monotonic)
