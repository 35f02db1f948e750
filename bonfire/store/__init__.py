"""
Remote stores which trees can be mirrored from.
"""

from pyrollup import rollup

from . import base, memory
from .base import *  # noqa
from .memory import *  # noqa

__all__ = rollup(base, memory)

__canonical_children__ = [
    "base",
    "memory",
]
