"""
Per-tree synchronization state.
"""

from __future__ import annotations

from collections import deque
from logging import Logger
from typing import TYPE_CHECKING, Any, Callable

import anyio

from .exceptions import BonfireError, ReconcileFailure, RemoteWriteFailure
from .interceptor import MutationInterceptor
from .location import PathLocator, RemoteHandle
from .mirror import bonify
from .node import BaseNode
from .reconcile import UpdateReconciler
from .types import PendingPullUpdate, PendingPushUpdate, PushState
from .utils import is_container

if TYPE_CHECKING:
    from .session import Session

__all__ = [
    "SyncSession",
]

MAX_ERRORS = 100
"""
Number of most recent errors kept per tree.
"""


class SyncSession:
    """
    Synchronization state of one mirrored tree: its nodes by location, its
    local writes not yet confirmed by the remote store, and snapshots from
    the remote store not yet reconciled.

    Created by {obj}`Session.request_tree`; reachable from any node of the
    tree as `node.sync`.
    """

    handle: RemoteHandle
    """Remote store and base path this tree is bound to"""

    root: BaseNode | None = None
    """Root node of the tree"""

    registry: dict[PathLocator, BaseNode]
    """Mapping of location to node, for every node in the tree"""

    pending_pushes: list[PendingPushUpdate]
    """Local writes not yet confirmed, oldest first"""

    pending_pulls: deque[PendingPullUpdate]
    """Remote snapshots not yet reconciled, oldest first"""

    errors: deque[BonfireError]
    """Most recent write and reconcile failures, oldest first"""

    interceptor: MutationInterceptor
    reconciler: UpdateReconciler

    _session: Session
    _logger: Logger
    _unsubscribe: Callable[[], None] | None = None
    _detached: bool = False

    _inflight: int = 0
    """Number of remote writes in progress"""

    _idle: anyio.Event | None = None
    """Set when the last remote write in progress completes"""

    def __init__(self, session: Session, handle: RemoteHandle):
        self._session = session
        self._logger = session._logger
        self.handle = handle
        self.registry = dict()
        self.pending_pushes = list()
        self.pending_pulls = deque()
        self.errors = deque(maxlen=MAX_ERRORS)
        self.interceptor = MutationInterceptor(self)
        self.reconciler = UpdateReconciler(self)

    def __str__(self):
        return (
            f"SyncSession(path='{self.path}', nodes={len(self.registry)}, "
            f"pending_pushes={len(self.pending_pushes)}, pending_pulls={len(self.pending_pulls)})"
        )

    @property
    def path(self) -> str:
        """
        Remote path of the tree root.
        """
        return self.handle.path_for(PathLocator.root())

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_detached(self) -> bool:
        return self._detached

    def attach(self, snapshot: Any) -> BaseNode:
        """
        Mirror the initial snapshot and start listening for remote changes.
        """
        assert self.root is None, f"Already attached: {self}"
        assert is_container(snapshot)

        self.root = bonify(snapshot, self)
        self._unsubscribe = self.handle.store.subscribe(
            self.path, self.on_remote_snapshot
        )

        self._logger.debug(
            f"Attached tree at '{self.path}' with {len(self.registry)} nodes"
        )
        return self.root

    def detach(self):
        """
        Stop listening for remote changes. Local writes to the tree are no
        longer committed; writes already in progress complete, but are no
        longer tracked.
        """
        if self._detached:
            return

        self._detached = True

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self.pending_pushes:
            self._logger.warning(
                f"Detaching tree at '{self.path}' with {len(self.pending_pushes)} unconfirmed writes"
            )

        self.pending_pulls.clear()
        self._logger.debug(f"Detached tree at '{self.path}'")

    def on_remote_snapshot(self, snapshot: Any):
        """
        Callback invoked by remote store upon change of the tree.
        """
        if self._detached:
            return

        # invoked from within the store, possibly during one of this tree's
        # own writes
        self._reconcile(self.reconciler.on_remote_snapshot, snapshot)

    async def flush(self):
        """
        Wait until all remote writes in progress have completed.
        """
        while self._inflight:
            assert self._idle is not None
            await self._idle.wait()

    def expire_pushes(self, max_age: float) -> list[RemoteWriteFailure]:
        """
        Drop pending writes unconfirmed for longer than max_age seconds,
        reporting each as a failure.
        """
        failures: list[RemoteWriteFailure] = []

        for push in [p for p in self.pending_pushes if p.age > max_age]:
            self._settle_push(push, PushState.EXPIRED)
            failure = RemoteWriteFailure(
                push, f"not confirmed after {max_age}s"
            )
            self._report(failure)
            failures.append(failure)

        return failures

    def _register(self, node: BaseNode):
        self.registry[node.locator] = node

    def _release(self, node: BaseNode):
        """
        Orphan a node which was replaced or removed, along with its
        descendants.
        """
        for _, value in node._children():
            if isinstance(value, BaseNode):
                self._release(value)

        if self.registry.get(node.locator) is node:
            del self.registry[node.locator]

        node._sync = None

    def _record_push(
        self, locator: PathLocator, key: str | int, value: Any
    ) -> PendingPushUpdate:
        push = PendingPushUpdate(locator, key, value)
        self.pending_pushes.append(push)
        return push

    def _remove_push(self, push: PendingPushUpdate, state: PushState) -> bool:
        """
        Remove push by identity, searching newest first. Returns whether it
        was still pending.
        """
        for index in reversed(range(len(self.pending_pushes))):
            if self.pending_pushes[index] is push:
                del self.pending_pushes[index]
                push.state = state
                return True
        return False

    def _settle_push(self, push: PendingPushUpdate, state: PushState):
        """
        Remove push once its write has completed or been given up on, then
        apply any remote changes it was holding back.
        """
        if self._remove_push(push, state) and not self._detached:
            self._reconcile(self.reconciler.resume)

    def _reconcile(self, func: Callable[..., Any], *args: Any):
        """
        Run reconciler, reporting rather than propagating its errors.
        """
        try:
            func(*args)
        except Exception as e:
            self._logger.debug(
                f"Failed to reconcile snapshot of '{self.path}'", exc_info=True
            )
            self._report(ReconcileFailure(self.path, f"{type(e).__name__}: {e}"))

    def _schedule_write(self, push: PendingPushUpdate):
        if self._inflight == 0:
            self._idle = anyio.Event()
        self._inflight += 1

        self._session._start_soon(self._write, push)

    async def _write(self, push: PendingPushUpdate):
        path = self.handle.path_for(push.locator)
        timeout = self._session.push_timeout

        self._logger.debug(f"Writing {path}: {push.str_summary}")

        try:
            try:
                with anyio.fail_after(timeout):
                    await self.handle.store.write(path, push.key, push.value)
            except TimeoutError:
                self._fail(push, f"timed out after {timeout}s")
                return
            except Exception as e:
                # triggering assignment already completed locally
                self._fail(push, f"{type(e).__name__}: {e}")
                return

            if not self._detached:
                self._settle_push(push, PushState.ACKED)
        finally:
            self._inflight -= 1
            if self._inflight == 0:
                assert self._idle is not None
                self._idle.set()

    def _fail(self, push: PendingPushUpdate, reason: str):
        if self._detached:
            return

        self._settle_push(push, PushState.FAILED)
        push.state = PushState.FAILED
        self._report(RemoteWriteFailure(push, reason))

    def _report(self, error: BonfireError):
        self.errors.append(error)
        self._logger.error(str(error))

        if self._session.error_handler is not None:
            try:
                self._session.error_handler(error)
            except Exception:
                self._logger.exception(f"Error handler failed on {type(error).__name__}")
