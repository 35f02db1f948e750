from abc import ABCMeta

import bonfire


def test_import():
    # make sure symbols are accessible by fully qualified path
    assert isinstance(bonfire.core.Session, type)
    assert isinstance(bonfire.core.node.TreeDict, ABCMeta)
    assert isinstance(bonfire.core.node.TreeList, ABCMeta)
    assert isinstance(bonfire.core.location.PathLocator, type)
    assert isinstance(bonfire.core.sync.SyncSession, type)
    assert isinstance(bonfire.store.base.RemoteStore, ABCMeta)
    assert isinstance(bonfire.store.memory.MemoryStore, ABCMeta)
    assert callable(bonfire.bonify)
    assert callable(bonfire.request_tree)

    # ensure no internal symbols accidentally exported
    assert all([not sym.startswith("_") for sym in bonfire.__all__])


def test_errors():
    # all errors catchable by common base
    for error in [
        bonfire.MissingDependency,
        bonfire.NotInitialized,
        bonfire.EmptyNode,
        bonfire.PathNotFound,
        bonfire.RemoteWriteFailure,
        bonfire.ReconcileFailure,
        bonfire.CyclicStructure,
        bonfire.InvalidKeyError,
    ]:
        assert issubclass(error, bonfire.BonfireError)

    assert issubclass(bonfire.PathNotFound, KeyError)
    assert issubclass(bonfire.InvalidKeyError, ValueError)
