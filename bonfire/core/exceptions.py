from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .location import PathLocator
    from .types import PendingPushUpdate

__all__ = [
    "BonfireError",
    "MissingDependency",
    "NotInitialized",
    "EmptyNode",
    "PathNotFound",
    "RemoteWriteFailure",
    "ReconcileFailure",
    "CyclicStructure",
    "InvalidKeyError",
]


class BonfireError(Exception):
    """
    Base class for errors raised by Bonfire.
    """


class MissingDependency(BonfireError):
    """
    Raised when the remote store can't be obtained: its module or class is
    not importable, or no {obj}`Session` was provided and no default is
    registered.
    """


class NotInitialized(BonfireError):
    """
    Raised when the remote store exists but isn't ready to serve requests,
    or the {obj}`Session` context hasn't been entered.
    """


class EmptyNode(BonfireError):
    """
    Raised when a tree is requested at a path holding a leaf value. A tree
    needs children to be worth mirroring.
    """

    path: str
    value: Any

    def __init__(self, path: str, value: Any):
        self.path = path
        self.value = value
        super().__init__(
            f"Expected a node with children at '{path}', got leaf value {value!r}"
        )


class PathNotFound(BonfireError, KeyError):
    """
    Raised when a {obj}`PathLocator` doesn't resolve against a tree.
    Callers should generally treat this as "no value yet".
    """

    locator: PathLocator
    key: str | int

    def __init__(self, locator: PathLocator, key: str | int):
        self.locator = locator
        self.key = key
        super().__init__(f"Key {key!r} not found while resolving {locator}")

    def __str__(self):
        # KeyError quotes its argument, use plain message instead
        return str(self.args[0])


class RemoteWriteFailure(BonfireError):
    """
    Reported through the error channel of a tree when a write to the remote
    store fails or times out. Never raised from the assignment which
    triggered the write; the local value is left in place.
    """

    push: PendingPushUpdate
    reason: str

    def __init__(self, push: PendingPushUpdate, reason: str):
        self.push = push
        self.reason = reason
        super().__init__(
            f"Failed to write {push.target} = {push.value!r}: {reason}"
        )


class ReconcileFailure(BonfireError):
    """
    Reported through the error channel of a tree when a snapshot from the
    remote store couldn't be merged into it. The snapshot is dropped; the
    next one is diffed against the local tree as usual.
    """

    path: str
    reason: str

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to reconcile snapshot of '{path}': {reason}")


class CyclicStructure(BonfireError):
    """
    Raised when a value to be mirrored contains a reference to itself.
    """


class InvalidKeyError(BonfireError, ValueError):
    """
    Raised when a key can't be addressed in the remote store, e.g. it's
    empty or contains the path delimiter.
    """
