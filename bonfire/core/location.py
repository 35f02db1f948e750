"""
Addressing of nodes within a tree.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import PathNotFound
from .utils import is_container

if TYPE_CHECKING:
    from ..store.base import RemoteStore

__all__ = [
    "PathLocator",
    "RemoteHandle",
    "PATH_DELIMITER",
]

PATH_DELIMITER = "/"
"""
Delimiter between segments of a remote path.
"""


@dataclass(frozen=True, slots=True)
class PathLocator:
    """
    Immutable position of a node relative to the root of a tree, as the
    sequence of keys to traverse from the root. The root is the empty
    sequence.

    String keys index mappings and integer keys index sequences.
    """

    keys: tuple[str | int, ...] = ()

    def __str__(self):
        return self.to_remote_path()

    def __len__(self) -> int:
        return len(self.keys)

    def __iter__(self) -> Iterator[str | int]:
        return iter(self.keys)

    @classmethod
    def root(cls) -> PathLocator:
        return cls()

    @classmethod
    def from_remote_path(cls, path: str) -> PathLocator:
        """
        Parse a slash-delimited path; empty segments are ignored so `"/"`,
        `""` and `"//foo/"` are all accepted.
        """
        return cls(tuple(s for s in path.split(PATH_DELIMITER) if s))

    @property
    def is_root(self) -> bool:
        return not self.keys

    @property
    def parent(self) -> PathLocator:
        """
        Locator of the parent node.
        """
        assert self.keys, "Root location has no parent"
        return PathLocator(self.keys[:-1])

    @property
    def key(self) -> str | int:
        """
        Last key of this locator, i.e. the key of this node within its parent.
        """
        assert self.keys, "Root location has no key"
        return self.keys[-1]

    def child(self, key: str | int) -> PathLocator:
        """
        Get the location of this node's child with the provided key.
        """
        return PathLocator(self.keys + (key,))

    def join(self, other: PathLocator) -> PathLocator:
        """
        Get the location of `other`, taken relative to this location.
        """
        return PathLocator(self.keys + other.keys)

    def is_prefix_of(self, other: PathLocator) -> bool:
        """
        Whether this location is `other` or one of its ancestors.
        """
        return self.keys == other.keys[: len(self.keys)]

    def relative_to(self, prefix: PathLocator) -> PathLocator:
        """
        Get this location relative to an ancestor location.
        """
        assert prefix.is_prefix_of(
            self
        ), f"{prefix} is not an ancestor of {self}"
        return PathLocator(self.keys[len(prefix.keys) :])

    def resolve(self, root_object: Any) -> Any:
        """
        Traverse `root_object` by successively indexing it with each key
        and return the value at this location.

        :raises PathNotFound: If an intermediate key is absent
        """
        node = root_object

        for depth, key in enumerate(self.keys):
            node = _index(node, key, PathLocator(self.keys[:depth]))

        return node

    def to_remote_path(self) -> str:
        """
        Convert to a path as addressed by the remote store, e.g.
        `PathLocator(("foo", "bar"))` maps to `"/foo/bar"` and the root
        maps to `"/"`.

        No escaping is performed.
        """
        return PATH_DELIMITER + PATH_DELIMITER.join(str(k) for k in self.keys)


@dataclass(frozen=True)
class RemoteHandle:
    """
    Reference to the location in the remote store a tree is bound to. Shared
    by every node of one tree.
    """

    store: RemoteStore
    base: PathLocator

    def path_for(self, locator: PathLocator) -> str:
        """
        Get remote path of a node given its location within the tree.
        """
        return self.base.join(locator).to_remote_path()


def _index(node: Any, key: str | int, where: PathLocator) -> Any:
    """
    Get child of node at key, accepting digit strings as sequence indices.
    """
    if not is_container(node):
        raise PathNotFound(where, key)

    if isinstance(node, Mapping):
        if key not in node:
            raise PathNotFound(where, key)
        return node[key]

    index = int(key) if isinstance(key, str) and key.isdigit() else key
    if not isinstance(index, int) or not 0 <= index < len(node):
        raise PathNotFound(where, key)

    return node[index]
