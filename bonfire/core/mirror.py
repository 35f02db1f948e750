"""
Bonification: turning nested data into a mirrored tree.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .location import PathLocator
from .node import BaseNode, TreeDict, TreeList
from .utils import dump_value, is_container

if TYPE_CHECKING:
    from .sync import SyncSession

__all__ = [
    "bonify",
]


def bonify(
    node: Any,
    sync: SyncSession | None,
    locator: PathLocator | None = None,
) -> BaseNode:
    """
    Wrap a container and, recursively, every container nested in it, so
    that writes at any depth are intercepted and committed to the remote
    store at the corresponding location.

    The data is copied first; the caller's object is never modified.
    Children are wrapped before their parent, so no node is exposed
    before all of its descendants are intercepted.

    :param node: Mapping or sequence to wrap
    :param sync: Sync session to report writes to and register nodes with
    :param locator: Location of node within the tree, root by default
    :raises CyclicStructure: If node references itself
    """
    assert is_container(node), f"Attempt to bonify leaf value {node!r}"

    if locator is None:
        locator = PathLocator.root()

    # copy and check for cycles before wrapping anything
    raw = dump_value(node)

    return _wrap(raw, sync, locator)


def _wrap(raw: Any, sync: SyncSession | None, locator: PathLocator) -> BaseNode:
    wrapped: BaseNode

    if isinstance(raw, Mapping):
        data: dict[str, Any] = {}
        for key, value in raw.items():
            data[key] = (
                _wrap(value, sync, locator.child(key))
                if is_container(value)
                else value
            )
        wrapped = TreeDict(data, locator, sync)
    else:
        items: list[Any] = [
            _wrap(value, sync, locator.child(index))
            if is_container(value)
            else value
            for index, value in enumerate(raw)
        ]
        wrapped = TreeList(items, locator, sync)

    if sync is not None:
        sync._register(wrapped)

    return wrapped
