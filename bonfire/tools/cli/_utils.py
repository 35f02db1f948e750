"""
Utilities specific to CLI functionality.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from click import Parameter
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.tree import Tree
from typer import Context, Typer

from ...core import BaseNode, PathLocator, is_container

if TYPE_CHECKING:
    from .main import RootContext


console = Console()

rich_handler = RichHandler(
    console=console,
    rich_tracebacks=True,
    show_level=True,
    show_time=True,
    show_path=False,
)
rich_handler.setFormatter(logging.Formatter("%(message)s"))

logger = logging.getLogger("bonfire")
logger.setLevel(logging.INFO)
logger.addHandler(rich_handler)
logger.propagate = False


class MainTyper(Typer):
    """
    Typer app with preconfigured settings.
    """

    def __init__(self, name: str, *, help: str):
        return super().__init__(
            name=name,
            help=help,
            rich_markup_mode="markdown",
            no_args_is_help=True,
            add_completion=False,
        )


def get_root_context(ctx: Context) -> RootContext:
    from .main import RootContext

    root_context = ctx.obj
    assert isinstance(root_context, RootContext)
    return root_context


def lookup_param(ctx: Context, name: str) -> Parameter:
    """
    Lookup param by name.
    """
    param = next((p for p in ctx.command.params if p.name == name), None)
    assert param, f"Could not find param with name: {name}"
    return param


def render_tree(node: Any, label: str) -> Tree:
    """
    Render a tree for printing, keys in bold and leaves with their values.
    """
    tree = Tree(f"[bold cyan]{escape(label)}[/bold cyan]")
    _add_children(tree, node)
    return tree


def set_path(tree: BaseNode, locator: PathLocator, value: Any):
    """
    Set value at locator relative to tree, creating missing or leaf
    intermediate nodes as mappings. An index one past the end of a list
    appends to it.
    """
    assert not locator.is_root

    node: Any = tree
    for key in locator.parent:
        key = _normalize_key(node, key)

        if key not in _keys(node) or not is_container(node[key]):
            _put(node, key, {})

        node = node[key]

    _put(node, _normalize_key(node, locator.key), value)


def _add_children(branch: Tree, node: Any):
    items = node.items() if isinstance(node, Mapping) else enumerate(node)

    for key, value in items:
        key_str = escape(str(key))
        if is_container(value):
            _add_children(branch.add(f"[bold]{key_str}[/bold]"), value)
        else:
            branch.add(f"[bold]{key_str}[/bold]: {escape(repr(value))}")


def _normalize_key(node: Any, key: str | int) -> str | int:
    # list indices arrive as digit strings from the command line
    if not isinstance(node, Mapping) and isinstance(key, str) and key.isdigit():
        return int(key)
    return key


def _keys(node: Any) -> Any:
    return node.keys() if isinstance(node, Mapping) else range(len(node))


def _put(node: Any, key: str | int, value: Any):
    if isinstance(key, int) and key == len(node):
        node.append(value)
    else:
        node[key] = value
