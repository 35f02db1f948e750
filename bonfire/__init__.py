"""
Bonfire: local object trees which transparently mirror a remote
hierarchical key-value store.
"""

from pyrollup import rollup

from . import core, store
from .core import *  # noqa
from .store import *  # noqa

__version__ = "0.1.0"

__all__ = rollup(core, store)

__canonical_children__ = [
    "core",
    "store",
]
