from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from typing import Any, Callable

from ..core.exceptions import MissingDependency

__all__ = [
    "RemoteStore",
    "SnapshotCallback",
    "load_store",
]

SnapshotCallback = Callable[[Any], None]
"""
Callback invoked with the current value of a subscribed path.
"""


class RemoteStore(ABC):
    """
    Interface to a hierarchical key-value store which trees are mirrored
    from. Paths are slash-delimited with a leading slash, e.g. `"/foo/bar"`.

    Implementations are used from a single event loop and need no locking.
    """

    @abstractmethod
    def is_ready(self) -> bool:
        """
        Whether the store is initialized and can serve requests.
        """
        ...

    @abstractmethod
    async def fetch_once(self, path: str) -> Any:
        """
        Read the value at path, or `None` if there is none.
        """
        ...

    @abstractmethod
    def subscribe(
        self, path: str, callback: SnapshotCallback
    ) -> Callable[[], None]:
        """
        Invoke callback with the value at path upon every change at or
        below path, including changes made through this store. Callbacks
        are delivered in order: one delivered after a `write` returns
        reflects that write or a later change. Returns a callable which ends
        the subscription.
        """
        ...

    @abstractmethod
    async def write(self, path: str, key: str | int, value: Any) -> None:
        """
        Set the child key of the node at path to value; `None` deletes it.
        """
        ...


def load_store(import_str: str, **options: Any) -> RemoteStore:
    """
    Create a store from an import string like `"my_pkg.stores:MyStore"`,
    passing options to its constructor.

    :raises MissingDependency: If the module or class can't be found
    """
    module_name, _, cls_name = import_str.partition(":")

    if not module_name or not cls_name:
        raise ValueError(
            f"Invalid store '{import_str}': expected '<module>:<class>'"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise MissingDependency(
            f"Store module '{module_name}' could not be imported ({e}); install the package providing it or fix the store setting"
        ) from e

    store_cls = getattr(module, cls_name, None)
    if store_cls is None:
        raise MissingDependency(
            f"Store class '{cls_name}' not found in module '{module_name}'"
        )

    if not (isinstance(store_cls, type) and issubclass(store_cls, RemoteStore)):
        raise TypeError(f"'{import_str}' is not a RemoteStore subclass")

    return store_cls(**options)
