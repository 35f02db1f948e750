"""
Value-level structural comparison of trees.
"""

from collections.abc import Mapping
from typing import Any

from .location import PathLocator
from .utils import is_container, values_equal

__all__ = [
    "diff",
]


def diff(remote: Any, local: Any) -> list[PathLocator]:
    """
    Get locations where `remote` differs from `local`, depth-first.

    Only the deepest differing locations are reported: a changed parent is
    implied by its changed descendants. A key present on one side and absent
    (or `None`) on the other is reported at the key's location. Sequences
    are compared by index if their lengths match; otherwise the sequence
    itself is reported.

    A leaf or `None` in place of the root is treated as an empty container.
    """
    if not is_container(remote) and is_container(local):
        remote = {} if isinstance(local, Mapping) else []

    locators: list[PathLocator] = []
    _diff(remote, local, PathLocator.root(), locators)
    return locators


def _diff(remote: Any, local: Any, locator: PathLocator, out: list[PathLocator]):
    if isinstance(remote, Mapping) and isinstance(local, Mapping):
        # local keys keep their order, followed by keys new in remote
        for key in dict.fromkeys([*local, *remote]):
            remote_value = remote.get(key)
            local_value = local.get(key)

            # absent and None are equivalent in the remote store
            if remote_value is None and local_value is None:
                continue

            _diff(remote_value, local_value, locator.child(key), out)

    elif (
        is_container(remote)
        and is_container(local)
        and not isinstance(remote, Mapping)
        and not isinstance(local, Mapping)
    ):
        if len(remote) != len(local):
            out.append(locator)
        else:
            for index, (remote_value, local_value) in enumerate(
                zip(remote, local)
            ):
                _diff(remote_value, local_value, locator.child(index), out)

    elif not values_equal(remote, local):
        out.append(locator)
