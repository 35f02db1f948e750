from pytest import mark

from bonfire import (
    PathLocator,
    PendingPullUpdate,
    PendingPushUpdate,
    PushState,
    Session,
    TreeDict,
)

pytestmark = mark.anyio


@mark.store_data({"a": {"b": 1}})
async def test_remote_change(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        a = tree["a"]

        # another client changes the store
        store.set("/a/b", 3)

        assert tree["a"]["b"] == 3
        assert tree["a"] is a
        assert not tree.sync.pending_pulls

    # nothing written back
    assert store.writes == []


@mark.store_data({"a": {"b": 1}})
async def test_remote_subtree(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        store.set("/a", {"b": 1, "c": {"d": [1, 2]}})
        store.set("/e", "f")

        # new containers are mirrored and registered
        c = tree["a"]["c"]
        assert isinstance(c, TreeDict)
        assert sync.registry[PathLocator(("a", "c", "d"))] is c["d"]
        assert tree["e"] == "f"

        # and writes to them are committed
        c["d"][0] = 10
        await session.flush()

        assert store.write_paths == ["/a/c/d/0"]
        assert store.get("/a/c/d") == [10, 2]

        # remote deletion
        store.set("/a", None)
        assert "a" not in tree
        assert c.is_orphan
        assert PathLocator(("a",)) not in sync.registry


@mark.store_data({"a": 1})
async def test_echo(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        tree["a"] = 2
        tree["a"] = 3
        push_2, push_3 = sync.pending_pushes

        # local state as of each notification from the store
        states: list[tuple] = []
        store.subscribe("/", lambda _: states.append((tree["a"], push_2.state)))

        await session.flush()

        # snapshot with the first write arrived while the second was
        # pending: dropped as an echo rather than reverting the local value
        assert states[0] == (3, PushState.ECHOED)
        assert all(value == 3 for value, _ in states)

        assert push_2.state is PushState.ACKED
        assert push_3.state is PushState.ACKED
        assert tree["a"] == 3
        assert store.data == {"a": 3}
        assert sync.pending_pushes == []


@mark.store_data({"a": 1, "b": 1})
async def test_pending_container(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        tree["a"] = 2
        tree["b"] = {"c": 1}
        b = tree["b"]

        values: list = []
        store.subscribe("/", lambda _: values.append(tree.dump()["b"]))

        await session.flush()

        # snapshot with only the write to "a" doesn't revert "b"
        assert values == [{"c": 1}, {"c": 1}]
        assert tree["b"] is b
        assert not b.is_orphan

        # held reference still syncs
        b["c"] = 5
        await session.flush()

        assert store.get("/b/c") == 5
        assert store.data == {"a": 2, "b": {"c": 5}}
        assert sync.pending_pushes == []


@mark.store_data({"a": 1, "b": 1})
@mark.store_latency(0.01)
async def test_pending_latency(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        tree["a"] = 2
        tree["b"] = {"c": 1}
        b = tree["b"]

        # another client writes while local writes are in flight
        store.set("/d", 4)

        assert tree["d"] == 4
        assert tree["a"] == 2
        assert tree["b"] is b
        assert sync.reconciler.is_deferred

        await session.flush()

        assert tree.dump() == {"a": 2, "b": {"c": 1}, "d": 4}
        assert store.data == {"a": 2, "b": {"c": 1}, "d": 4}
        assert not b.is_orphan
        assert not sync.reconciler.is_deferred
        assert sync.pending_pushes == []


@mark.store_data({"a": 1, "b": 1})
async def test_idempotent(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        snapshot = {"a": 2, "b": 1}

        assert sync.reconciler.on_remote_snapshot(snapshot) == [
            PathLocator(("a",))
        ]
        assert tree.dump() == snapshot

        # applying same snapshot again changes nothing
        assert sync.reconciler.on_remote_snapshot(snapshot) == []
        assert tree.dump() == snapshot


@mark.store_data({"a": 1})
async def test_find_echo(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        reconciler = tree.sync.reconciler

        tree["x"] = {"y": {"z": 1}}
        push = tree.sync.pending_pushes[0]

        # value at descendant of push target
        assert reconciler.find_echo(PathLocator(("x", "y", "z")), 1) is push
        assert reconciler.find_echo(PathLocator(("x", "y")), {"z": 1}) is push

        # absent in push value
        assert reconciler.find_echo(PathLocator(("x", "w")), None) is push

        # different value or unrelated location
        assert reconciler.find_echo(PathLocator(("x", "y", "z")), 2) is None
        assert reconciler.find_echo(PathLocator(("a",)), 1) is None

        # any overlapping push, regardless of value
        assert reconciler.find_pending(PathLocator(("x", "y", "z"))) is push
        assert reconciler.find_pending(PathLocator.root()) is push
        assert reconciler.find_pending(PathLocator(("a",))) is None


@mark.store_data({"a": 1})
async def test_deferred(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        tree["a"] = 2
        push = sync.pending_pushes[0]

        # remote change at location of unconfirmed local write waits for it
        assert sync.reconciler.on_remote_snapshot({"a": 5}) == []
        assert tree["a"] == 2
        assert push.state is PushState.PENDING
        assert sync.reconciler.is_deferred

        await session.flush()

        # local write lands afterward
        assert push.state is PushState.ACKED
        assert store.data == {"a": 2}
        assert tree["a"] == 2
        assert not sync.reconciler.is_deferred


@mark.store_data({"a": 1, "b": 1})
async def test_deferred_failure(store, errors):
    async with Session(store, default=False, error_handler=errors.append) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        store.fail_with = ConnectionError("connection lost")
        tree["a"] = 2

        # another client changes the store before the write fails
        store.set("/a", 5)
        store.set("/b", 3)
        assert tree.dump() == {"a": 2, "b": 3}

        await session.flush()

        # remote value applied once no local write covers it
        assert len(errors) == 1
        assert tree.dump() == {"a": 5, "b": 3}
        assert sync.pending_pushes == []


@mark.store_data({"a": 1})
async def test_pull_order(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        sync = tree.sync

        sync.pending_pulls.append(PendingPullUpdate({"a": 2, "b": 1}))
        sync.pending_pulls.append(PendingPullUpdate({"a": 3, "b": 1}))

        # queued snapshots applied oldest first
        assert sync.reconciler.reconcile() == [
            PathLocator(("a",)),
            PathLocator(("b",)),
            PathLocator(("a",)),
        ]
        assert tree.dump() == {"a": 3, "b": 1}
        assert not sync.pending_pulls


@mark.store_data({"a": 1})
async def test_detached_pull(store):
    async with Session(store, default=False) as session:
        tree = await session.request_tree("/")
        assert store.subscriber_count == 1

        tree.sync.detach()
        assert store.subscriber_count == 0

        store.set("/a", 2)
        tree.sync.on_remote_snapshot({"a": 3})

        assert tree["a"] == 1


def test_push_update():
    push = PendingPushUpdate(PathLocator(("a",)), "b", 1)

    assert push.target == PathLocator(("a", "b"))
    assert push.state is PushState.PENDING
    assert push.age >= 0

    # tracked by identity
    assert push != PendingPushUpdate(PathLocator(("a",)), "b", 1)
