"""
Interception of local writes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .location import PathLocator
from .utils import dump_value

if TYPE_CHECKING:
    from .node import BaseNode, TreeList
    from .sync import SyncSession

__all__ = [
    "MutationInterceptor",
]


class MutationInterceptor:
    """
    Write trap shared by all nodes of a tree. Each write is recorded as a
    pending push, scheduled for commit to the remote store, and applied to
    the local node synchronously and unconditionally: local reads observe
    the new value immediately, regardless of whether the remote write
    succeeds.
    """

    _sync: SyncSession

    def __init__(self, sync: SyncSession):
        self._sync = sync

    def on_set(self, node: BaseNode, key: str | int, value: Any) -> Any:
        """
        Handle `node[key] = value`. Returns the value as stored, which is
        a newly wrapped node if value is a container.

        :raises CyclicStructure: If value references itself
        """
        raw = dump_value(value)

        self._commit(node.locator, key, raw)
        return node._apply(key, raw)

    def on_delete(self, node: BaseNode, key: str | int):
        """
        Handle `del node[key]`. Deletion is written as `None`.
        """
        self._commit(node.locator, key, None)
        node._remove(key)

    def on_splice(self, node: TreeList, start: int, items: list[Any]):
        """
        Handle a structural edit of a list: items from start onward are
        replaced by the provided raw items.
        """
        if node.locator.is_root:
            # no parent key to rewrite the list at; write each shifted
            # index and clear any vacated trailing index
            for index in range(start, max(len(node), len(items))):
                self._commit(
                    node.locator,
                    index,
                    items[index] if index < len(items) else None,
                )
        else:
            self._commit(node.locator.parent, node.locator.key, items)

        node._splice_apply(start, items)

    def _commit(self, locator: PathLocator, key: str | int, value: Any):
        push = self._sync._record_push(locator, key, value)
        self._sync._schedule_write(push)
