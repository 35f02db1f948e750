"""
Reconciliation of snapshots pushed by the remote store with the local tree.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .compare import diff
from .exceptions import PathNotFound
from .location import PathLocator
from .node import TreeList
from .types import PendingPullUpdate, PendingPushUpdate, PushState
from .utils import dump_value, is_container, values_equal

if TYPE_CHECKING:
    from .sync import SyncSession

__all__ = [
    "UpdateReconciler",
]


class UpdateReconciler:
    """
    Merges snapshots from the remote store into the local tree.

    Each snapshot is diffed against the local tree. A differing location
    which is explained by one of this tree's own pending writes is an echo
    and is dropped. A location overlapping a pending write which the
    snapshot doesn't reflect yet is deferred: the local value stays until
    the write completes, at which point the latest snapshot is reconciled
    again. Anything else is a genuine remote change and overwrites local
    state.
    """

    _sync: SyncSession

    _running: bool = False
    """Whether a reconcile pass is in progress"""

    _latest: PendingPullUpdate | None = None
    """Most recently reconciled snapshot"""

    _deferred: bool = False
    """Whether the latest snapshot had locations covered by pending writes"""

    def __init__(self, sync: SyncSession):
        self._sync = sync

    @property
    def is_deferred(self) -> bool:
        return self._deferred

    def on_remote_snapshot(self, snapshot: Any) -> list[PathLocator]:
        """
        Queue a snapshot received from the remote store and reconcile.
        """
        self._sync.pending_pulls.append(PendingPullUpdate(snapshot))
        return self.reconcile()

    def reconcile(self) -> list[PathLocator]:
        """
        Apply queued snapshots, oldest first. Returns locations which were
        updated from the remote store.
        """
        # re-entrant calls just leave their snapshot in the queue
        if self._running:
            return []

        applied: list[PathLocator] = []

        self._running = True
        try:
            while self._sync.pending_pulls:
                pull = self._sync.pending_pulls.popleft()
                self._latest = pull
                applied += self._reconcile_pull(pull)
        except Exception:
            # not resumed from a snapshot which failed to apply
            self._latest = None
            raise
        finally:
            self._running = False

        return applied

    def resume(self) -> list[PathLocator]:
        """
        Reconcile the latest snapshot again if it had deferred locations.
        Invoked when a pending write is no longer pending.
        """
        if not self._deferred or self._latest is None:
            return []

        self._sync.pending_pulls.append(self._latest)
        return self.reconcile()

    def find_echo(
        self, locator: PathLocator, value: Any
    ) -> PendingPushUpdate | None:
        """
        Find the newest pending push which explains value at locator: its
        target is locator or an ancestor of it, and the value it wrote
        holds the same value at locator.
        """
        for push in reversed(self._sync.pending_pushes):
            target = push.target
            if not target.is_prefix_of(locator):
                continue

            try:
                expected = locator.relative_to(target).resolve(push.value)
            except PathNotFound:
                expected = None

            if values_equal(expected, value):
                return push

        return None

    def find_pending(self, locator: PathLocator) -> PendingPushUpdate | None:
        """
        Find the newest pending push overlapping locator: its target is
        locator, an ancestor or a descendant of it.
        """
        for push in reversed(self._sync.pending_pushes):
            target = push.target
            if target.is_prefix_of(locator) or locator.is_prefix_of(target):
                return push

        return None

    def _reconcile_pull(self, pull: PendingPullUpdate) -> list[PathLocator]:
        sync = self._sync
        assert sync.root is not None

        applied: list[PathLocator] = []
        self._deferred = False

        for locator in diff(pull.snapshot, sync.root):
            value = _lookup(locator, pull.snapshot)

            push = self.find_echo(locator, value)
            if push is not None:
                sync._logger.debug(f"Dropping echo at {locator}: {push.str_summary}")
                push.state = PushState.ECHOED
                continue

            push = self.find_pending(locator)
            if push is not None:
                sync._logger.debug(
                    f"Deferring remote change at {locator} until written: {push.str_summary}"
                )
                self._deferred = True
                continue

            self._apply(locator, value)
            applied.append(locator)

        return applied

    def _apply(self, locator: PathLocator, value: Any):
        """
        Overwrite local state at locator with value from remote store.
        """
        sync = self._sync
        assert sync.root is not None

        sync._logger.debug(f"Applying remote change at {locator}: {value!r}")

        if locator.is_root:
            if isinstance(sync.root, TreeList) and not isinstance(value, Mapping):
                sync.root._splice_apply(
                    0, dump_value(value) if is_container(value) else []
                )
            else:
                sync._logger.warning(
                    f"Ignoring remote change of root type at {sync.handle.path_for(locator)}: {value!r}"
                )
            return

        parent = sync.registry.get(locator.parent)
        if parent is None:
            sync._logger.warning(
                f"No local node at {locator.parent} to apply remote change to"
            )
            return

        if value is None:
            if isinstance(parent, TreeList) or locator.key in parent:
                parent._remove(locator.key)
        else:
            parent._apply(locator.key, dump_value(value))


def _lookup(locator: PathLocator, snapshot: Any) -> Any:
    try:
        return locator.resolve(snapshot)
    except PathNotFound:
        return None
