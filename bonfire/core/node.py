"""
Change-intercepting containers which make up a mirrored tree.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import (
    Iterable,
    Iterator,
    MutableMapping,
    MutableSequence,
)
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidKeyError
from .location import PATH_DELIMITER, PathLocator
from .utils import dump_value, is_container

if TYPE_CHECKING:
    from .sync import SyncSession

__all__ = [
    "BaseNode",
    "TreeDict",
    "TreeList",
]

_logger = logging.getLogger("bonfire")


class BaseNode(ABC):
    """
    Base class for wrapped containers in a mirrored tree. Each node knows
    its location within the tree and the {obj}`SyncSession` it reports
    writes to.

    Should not be instantiated by user; created by {obj}`bonify`.
    """

    _locator: PathLocator
    """Location of this node within the tree"""

    _sync: SyncSession | None
    """Owning sync session, or None if this node was orphaned"""

    def __init__(self, locator: PathLocator, sync: SyncSession | None):
        self._locator = locator
        self._sync = sync

    @property
    def locator(self) -> PathLocator:
        """
        Location of this node within its tree.
        """
        return self._locator

    @property
    def sync(self) -> SyncSession | None:
        """
        Sync session of the tree this node belongs to, or `None` if this
        node was overwritten and is no longer part of a tree.
        """
        return self._sync

    @property
    def is_orphan(self) -> bool:
        return self._sync is None

    def dump(self) -> Any:
        """
        Get a deep copy of this node as plain `dict`/`list` values.
        """
        return dump_value(self)

    @property
    def _is_synced(self) -> bool:
        return self._sync is not None and not self._sync.is_detached

    def _wrap(self, key: str | int, value: Any) -> Any:
        """
        Bonify raw value for storage at key, if it's a container and this
        node is still synced.
        """
        if is_container(value) and self._is_synced:
            from .mirror import bonify

            return bonify(value, self._sync, self._locator.child(key))
        return value

    def _release(self, value: Any):
        if isinstance(value, BaseNode) and self._sync is not None:
            self._sync._release(value)

    def _log_local(self, key: str | int):
        _logger.debug(
            f"Write to {self._locator.child(key)} applied locally only: node is not synced"
        )

    @abstractmethod
    def _children(self) -> Iterable[tuple[str | int, Any]]:
        """
        Get (key, value) pairs of this node.
        """
        ...

    @abstractmethod
    def _apply(self, key: str | int, value: Any) -> Any:
        """
        Store a raw value at key without writing to remote store, replacing
        and orphaning any existing node. Returns the stored value.
        """
        ...

    @abstractmethod
    def _remove(self, key: str | int):
        """
        Remove key without writing to remote store.
        """
        ...


class TreeDict(BaseNode, MutableMapping[str, Any]):
    """
    Map-like node of a mirrored tree. Assigning or deleting a key commits
    the change to the remote store; nested containers which are assigned
    are mirrored as well.
    """

    _data: dict[str, Any]

    def __init__(
        self,
        data: dict[str, Any],
        locator: PathLocator,
        sync: SyncSession | None,
    ):
        super().__init__(locator, sync)
        self._data = data

    def __repr__(self):
        return repr(self._data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any):
        _check_key(key)

        if self._is_synced:
            assert self._sync is not None
            self._sync.interceptor.on_set(self, key, value)
        else:
            self._log_local(key)
            self._apply(key, dump_value(value))

    def __delitem__(self, key: str):
        if key not in self._data:
            raise KeyError(key)

        if self._is_synced:
            assert self._sync is not None
            self._sync.interceptor.on_delete(self, key)
        else:
            self._log_local(key)
            self._remove(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def _children(self) -> Iterable[tuple[str, Any]]:
        return self._data.items()

    def _apply(self, key: str, value: Any) -> Any:
        self._release(self._data.get(key))
        self._data[key] = self._wrap(key, value)
        return self._data[key]

    def _remove(self, key: str):
        self._release(self._data.pop(key))


class TreeList(BaseNode, MutableSequence[Any]):
    """
    Sequence-like node of a mirrored tree.

    Assigning an index is committed as a point write. Insertions and
    deletions shift later items, so they are committed by rewriting the
    list.
    """

    _data: list[Any]

    def __init__(
        self,
        data: list[Any],
        locator: PathLocator,
        sync: SyncSession | None,
    ):
        super().__init__(locator, sync)
        self._data = data

    def __repr__(self):
        return repr(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TreeList):
            return self._data == other._data
        if isinstance(other, list):
            return self._data == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __getitem__(self, index):
        return self._data[index]

    def __setitem__(self, index, value: Any):
        if isinstance(index, slice):
            raise TypeError(f"{type(self).__name__} does not support slice assignment")

        index = self._normalize(index)

        if self._is_synced:
            assert self._sync is not None
            self._sync.interceptor.on_set(self, index, value)
        else:
            self._log_local(index)
            self._apply(index, dump_value(value))

    def __delitem__(self, index):
        if isinstance(index, slice):
            raise TypeError(f"{type(self).__name__} does not support slice deletion")

        index = self._normalize(index)

        items = self.dump()
        del items[index]
        self._splice(index, items)

    def __len__(self) -> int:
        return len(self._data)

    def insert(self, index: int, value: Any):
        # same clamping as list.insert()
        size = len(self._data)
        if index < 0:
            index = max(0, size + index)
        index = min(index, size)

        items = self.dump()
        items.insert(index, dump_value(value))
        self._splice(index, items)

    def _normalize(self, index: int) -> int:
        size = len(self._data)
        if index < 0:
            index += size
        if not 0 <= index < size:
            raise IndexError(f"{type(self).__name__} index out of range")
        return index

    def _splice(self, start: int, items: list[Any]):
        if self._is_synced:
            assert self._sync is not None
            self._sync.interceptor.on_splice(self, start, items)
        else:
            self._log_local(start)
            self._splice_apply(start, items)

    def _splice_apply(self, start: int, items: list[Any]):
        """
        Replace items from start onward with the corresponding raw items,
        re-bonifying them at their new locations.
        """
        for value in self._data[start:]:
            self._release(value)

        self._data[start:] = [
            self._wrap(index, items[index]) for index in range(start, len(items))
        ]

    def _children(self) -> Iterable[tuple[int, Any]]:
        return enumerate(self._data)

    def _apply(self, key: str | int, value: Any) -> Any:
        index = int(key)
        self._release(self._data[index])
        self._data[index] = self._wrap(index, value)
        return self._data[index]

    def _remove(self, key: str | int):
        # removal from a list leaves the slot empty, same as the remote store
        self._apply(key, None)


def _check_key(key: Any):
    if not isinstance(key, str):
        raise InvalidKeyError(
            f"Keys must be strings, got {type(key).__name__}: {key!r}"
        )
    if not key or PATH_DELIMITER in key:
        raise InvalidKeyError(
            f"Keys must be non-empty and not contain '{PATH_DELIMITER}': {key!r}"
        )
