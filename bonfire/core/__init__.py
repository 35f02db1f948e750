"""
This module implements the synchronization engine: mirrored trees, their
addressing, interception of local writes and reconciliation of remote
changes.
"""

from pyrollup import rollup

from . import (
    compare,
    exceptions,
    interceptor,
    location,
    mirror,
    node,
    reconcile,
    session,
    sync,
    types,
    utils,
)
from .compare import *  # noqa
from .exceptions import *  # noqa
from .interceptor import *  # noqa
from .location import *  # noqa
from .mirror import *  # noqa
from .node import *  # noqa
from .reconcile import *  # noqa
from .session import *  # noqa
from .sync import *  # noqa
from .types import *  # noqa
from .utils import *  # noqa

__all__ = rollup(
    session,
    node,
    location,
    mirror,
    interceptor,
    reconcile,
    sync,
    compare,
    types,
    utils,
    exceptions,
)

__canonical_children__ = [
    "session",
    "node",
    "location",
    "mirror",
    "interceptor",
    "reconcile",
    "sync",
    "compare",
    "types",
    "utils",
    "exceptions",
]
