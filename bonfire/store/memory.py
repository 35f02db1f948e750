"""
In-process stores.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from logging import Logger
from pathlib import Path
from typing import Any, Callable

import anyio
import yaml

from ..core.exceptions import PathNotFound
from ..core.location import PathLocator
from ..core.utils import dump_value, is_container
from .base import RemoteStore, SnapshotCallback

__all__ = [
    "MemoryStore",
    "YamlFileStore",
]


class MemoryStore(RemoteStore):
    """
    Store holding its data in memory. Every write notifies subscribers of
    overlapping paths with a copy of their current value, as a remote store
    shared by several clients would.
    """

    latency: float
    """
    Seconds each read or write takes to complete.
    """

    _data: Any
    _ready: bool
    _subscribers: list[tuple[PathLocator, SnapshotCallback]]
    _logger: Logger

    def __init__(
        self,
        data: Any = None,
        *,
        ready: bool = True,
        latency: float = 0.0,
        logger: Logger | None = None,
    ):
        """
        :param data: Initial contents, copied
        :param ready: Whether the store reports itself as initialized
        :param latency: Seconds each read or write takes to complete
        :param logger: Logger to use, or `None` to use default logger
        """
        self._data = dump_value(data) if data is not None else {}
        self._ready = ready
        self._subscribers = list()
        self._logger = logger or logging.getLogger("bonfire")
        self.latency = latency

    @property
    def data(self) -> Any:
        """
        Copy of all contents.
        """
        return dump_value(self._data)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def is_ready(self) -> bool:
        return self._ready

    async def fetch_once(self, path: str) -> Any:
        await self._delay()
        return self.get(path)

    def subscribe(
        self, path: str, callback: SnapshotCallback
    ) -> Callable[[], None]:
        entry = (PathLocator.from_remote_path(path), callback)
        self._subscribers.append(entry)

        def unsubscribe():
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    async def write(self, path: str, key: str | int, value: Any) -> None:
        await self._delay()
        self.set(PathLocator.from_remote_path(path).child(key), value)

    def get(self, path: str | PathLocator) -> Any:
        """
        Get a copy of the value at path, or `None` if there is none.
        """
        locator = _normalize(path)

        try:
            return dump_value(locator.resolve(self._data))
        except PathNotFound:
            return None

    def set(self, path: str | PathLocator, value: Any):
        """
        Set value at path immediately and notify subscribers. Missing
        intermediate nodes are created; `None` deletes.
        """
        locator = _normalize(path)
        value = dump_value(value)

        self._logger.debug(f"Store set {locator}: {value!r}")

        if locator.is_root:
            self._data = value if value is not None else {}
        else:
            self._set(locator, value)

        self._on_change()
        self._notify(locator)

    def _set(self, locator: PathLocator, value: Any):
        if not is_container(self._data):
            self._data = {}

        node = self._data
        for key in locator.parent:
            child = _get_child(node, key)

            if not is_container(child):
                if value is None:
                    # nothing to delete
                    return

                child = {}
                _put_child(node, key, child)

            node = child

        if value is None:
            _delete_child(node, locator.key)
        else:
            _put_child(node, locator.key, value)

    def _notify(self, locator: PathLocator):
        # copy since callbacks may unsubscribe
        for sub_locator, callback in list(self._subscribers):
            if sub_locator.is_prefix_of(locator) or locator.is_prefix_of(
                sub_locator
            ):
                callback(self.get(sub_locator))

    def _on_change(self):
        """
        Invoked after every change, before notifying subscribers.
        """
        ...

    async def _delay(self):
        if self.latency:
            await anyio.sleep(self.latency)


class YamlFileStore(MemoryStore):
    """
    Memory store loaded from and persisted to a .yaml file, rewritten upon
    every change. Not ready if the file's folder doesn't exist.
    """

    file: Path

    def __init__(
        self,
        file: Path | str,
        *,
        latency: float = 0.0,
        logger: Logger | None = None,
    ):
        self.file = Path(file)

        data: Any = None
        if self.file.is_file():
            with self.file.open() as fh:
                data = yaml.safe_load(fh)

        super().__init__(
            data,
            ready=self.file.parent.is_dir(),
            latency=latency,
            logger=logger,
        )

    def _on_change(self):
        data_yaml = yaml.safe_dump(
            self._data, default_flow_style=False, sort_keys=False
        )
        self.file.write_text(data_yaml)


def _normalize(path: str | PathLocator) -> PathLocator:
    return (
        path
        if isinstance(path, PathLocator)
        else PathLocator.from_remote_path(path)
    )


def _get_child(node: Any, key: str | int) -> Any:
    if isinstance(node, Mapping):
        return node.get(str(key))

    index = int(key)
    return node[index] if 0 <= index < len(node) else None


def _put_child(node: Any, key: str | int, value: Any):
    if isinstance(node, Mapping):
        node[str(key)] = value
        return

    index = int(key)
    if index == len(node):
        node.append(value)
    elif 0 <= index < len(node):
        node[index] = value
    else:
        raise IndexError(f"Index {index} out of range for list of length {len(node)}")


def _delete_child(node: Any, key: str | int):
    if isinstance(node, Mapping):
        node.pop(str(key), None)
        return

    index = int(key)
    if index == len(node) - 1:
        node.pop()
    elif 0 <= index < len(node):
        # keep later indices in place
        node[index] = None
