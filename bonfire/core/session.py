"""
Implementation of session functionality.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging import Logger
from typing import TYPE_CHECKING, Any, AsyncGenerator, Awaitable, Callable

import anyio
from anyio import AsyncContextManagerMixin
from anyio.abc import TaskGroup

from .exceptions import (
    BonfireError,
    EmptyNode,
    MissingDependency,
    NotInitialized,
)
from .location import PathLocator, RemoteHandle
from .sync import SyncSession
from .utils import is_container

if TYPE_CHECKING:
    from ..store.base import RemoteStore
    from .node import BaseNode

__all__ = [
    "Session",
    "request_tree",
]
__canonical_syms__ = __all__


PUSH_TIMEOUT = 10.0
"""
Seconds to wait for the remote store to complete a write before reporting
it as failed.
"""


default_session: Session | None = None


class Session(AsyncContextManagerMixin):
    """
    Interface to a remote store and context in which mirrored trees live.

    Writes to mirrored trees are committed in the background while the
    session context is active. Exiting the context waits for writes in
    progress and detaches all trees.

    Example usage:
    ```
    async with Session(MemoryStore({"foo": "bar"})) as session:
        tree = await session.request_tree("/")
        tree["foo"] = "baz"
    ```
    """

    _store: RemoteStore
    """
    Remote store to mirror.
    """

    _trees: list[SyncSession]
    """
    Sync sessions of trees requested from this session.
    """

    _task_group: TaskGroup | None = None
    """
    Task group running remote writes, set while context is active.
    """

    _logger: Logger
    """
    Logger to use.
    """

    push_timeout: float
    """
    Seconds to wait for each remote write.
    """

    error_handler: Callable[[BonfireError], Any] | None
    """
    Invoked with each error reported by a tree, in addition to logging it.
    """

    def __init__(
        self,
        store: RemoteStore,
        *,
        default: bool = True,
        logger: Logger | None = None,
        push_timeout: float = PUSH_TIMEOUT,
        error_handler: Callable[[BonfireError], Any] | None = None,
    ):
        """
        :param store: Remote store to mirror
        :param default: Register this as the default session; in this case, `session` may be omitted from {obj}`request_tree`
        :param logger: Logger to use, or `None` to use default logger
        :param push_timeout: Seconds to wait for each remote write before reporting it as failed
        :param error_handler: Callback for errors which can't be raised to the user, e.g. failed remote writes
        """
        self._logger = logger or logging.getLogger("bonfire")

        # ensure no existing default session, if requested to use as default
        if default:
            global default_session
            assert (
                default_session is None
            ), f"Attempt to create default Session {self} when default {default_session} already registered"
            default_session = self

        self._store = store
        self._trees = list()
        self.push_timeout = push_timeout
        self.error_handler = error_handler

    def __str__(self):
        return f"Session(store={type(self._store).__name__}, trees={len(self._trees)})"

    @asynccontextmanager
    async def __asynccontextmanager__(self) -> AsyncGenerator[Session, None]:
        self._logger.debug(f"Entering context: {self}")
        error: Exception | None = None

        try:
            async with anyio.create_task_group() as task_group:
                self._task_group = task_group

                try:
                    yield self
                except Exception as e:
                    # cancel pending writes; error is raised outside task group
                    # so it isn't wrapped in an exception group
                    self._logger.error(f"Exiting context with error: {self}")
                    error = e
                    task_group.cancel_scope.cancel()
                else:
                    self._logger.debug(f"Exiting context: {self}")
                    await self.flush()
                finally:
                    for sync in self._trees:
                        sync.detach()
        finally:
            self._task_group = None
            self.deregister_default()

        if error is not None:
            raise error

    @property
    def store(self) -> RemoteStore:
        return self._store

    @property
    def trees(self) -> list[SyncSession]:
        """
        Copy of sync sessions of trees requested from this session.
        """
        return list(self._trees)

    @property
    def is_default(self) -> bool:
        global default_session
        return default_session is self

    async def request_tree(self, path: str = "/") -> BaseNode:
        """
        Fetch the subtree at path and return it as a mirrored tree. The tree
        stays in sync with the remote store until it's detached or this
        session's context exits.

        :param path: Remote path of tree root, e.g. `"/users/alice"`
        :raises NotInitialized: If context not entered or store not ready
        :raises EmptyNode: If path holds a leaf value
        """
        if self._task_group is None:
            raise NotInitialized(
                f"Session context not entered; use 'async with {type(self).__name__}(...)' before requesting trees"
            )

        if not self._store.is_ready():
            raise NotInitialized(
                f"Remote store {type(self._store).__name__} is not initialized; ensure it's connected before requesting trees"
            )

        base = PathLocator.from_remote_path(path)
        snapshot = await self._store.fetch_once(base.to_remote_path())

        if not is_container(snapshot):
            raise EmptyNode(base.to_remote_path(), snapshot)

        sync = SyncSession(self, RemoteHandle(self._store, base))
        tree = sync.attach(snapshot)

        self._trees.append(sync)
        return tree

    async def flush(self):
        """
        Wait until remote writes in progress for all trees have completed.
        """
        for sync in self._trees:
            await sync.flush()

    def deregister_default(self):
        """
        If this session was registered as default, deregister it. No-op
        otherwise.
        """
        if self.is_default:
            global default_session
            default_session = None

    def _start_soon(
        self, func: Callable[..., Awaitable[Any]], *args: Any
    ):
        assert (
            self._task_group is not None
        ), f"Attempt to start task with inactive session {self}"
        self._task_group.start_soon(func, *args)


async def request_tree(path: str = "/", session: Session | None = None) -> BaseNode:
    """
    Request a mirrored tree at path. Uses the default {obj}`Session` if
    none provided.

    :raises MissingDependency: If no session provided and no default set
    :raises NotInitialized: If session context not entered or store not ready
    :raises EmptyNode: If path holds a leaf value
    """
    return await normalize_session(session).request_tree(path)


def normalize_session(session: Session | None) -> Session:
    """
    Interface to get default Session if none provided.
    """

    if session is not None:
        return session

    # get default
    global default_session

    if default_session is None:
        raise MissingDependency(
            "No session provided and no default set; create one with 'Session(store)' around a RemoteStore"
        )

    return default_session
