"""
Entry point of `bonfire` CLI.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import anyio
import dotenv
import yaml
from click.exceptions import BadParameter, MissingParameter
from pydantic import ValidationError
from typer import Argument, Context, Exit, Option

from ...core import (
    BonfireError,
    EmptyNode,
    PathLocator,
    Session,
)
from ...store import RemoteStore
from ..config import FILE_STORE, Config, InstanceConfig
from ._utils import (
    MainTyper,
    console,
    get_root_context,
    logger,
    lookup_param,
    render_tree,
    set_path,
)

app = MainTyper(
    "bonfire",
    help="Bonfire CLI Toolkit",
)


@app.callback()
def main(
    ctx: Context,
    file: Path
    | None = Option(
        None,
        help=".yaml file to use as store",
        envvar="BONFIRE_FILE",
        dir_okay=False,
    ),
    store: str
    | None = Option(
        None,
        help="Store class as '<module>:<class>', e.g. 'bonfire.store:MemoryStore'",
        envvar="BONFIRE_STORE",
    ),
    instance_name: str
    | None = Option(
        None,
        "--instance",
        help="Instance name as configured in .yaml",
        envvar="BONFIRE_INSTANCE",
    ),
    config_file: Path = Option(
        "bonfire.yaml",
        help=".yaml file containing instance info, only applicable with --instance",
        envvar="BONFIRE_CONFIG_FILE",
        dir_okay=False,
    ),
    verbose: bool = Option(
        False,
        "--verbose",
        "-v",
        help="Log synchronization details",
    ),
):
    # load environment variables from .env file if it exists
    dotenv.load_dotenv(Path(".env").resolve(), override=True)

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if instance_name:
        root_context = RootContext.from_config(
            ctx=ctx, instance_name=instance_name, config_file=config_file
        )
    else:
        if not (file or store):
            raise MissingParameter(
                message="either --file, --store or --instance must be provided",
                ctx=ctx,
                param_hint=["file", "store", "instance"],
                param_type="option",
            )

        try:
            instance = InstanceConfig(
                store=store or FILE_STORE,
                options={"file": str(file)} if file else {},
            )
        except ValidationError as e:
            raise BadParameter(
                f"invalid store: {e}",
                ctx=ctx,
                param=lookup_param(ctx, "store"),
            )

        root_context = RootContext(ctx=ctx, instance=instance)

    ctx.obj = root_context


@app.command()
def check(ctx: Context):
    """
    Check that store is ready
    """
    root_context = get_root_context(ctx)
    store = root_context.create_store()

    if not store.is_ready():
        logger.error(f"Store {type(store).__name__} is not initialized")
        raise Exit(code=1)

    logger.info(f"Store {type(store).__name__} is ready")


@app.command()
def show(
    ctx: Context,
    path: str = Argument(
        "/",
        help="Path relative to instance path",
    ),
):
    """
    Print tree at path
    """
    root_context = get_root_context(ctx)
    tree_path = root_context.resolve_path(path)

    async def fetch():
        async with root_context.create_session() as session:
            tree = await session.request_tree(tree_path)
            return tree.dump()

    data = root_context.run(fetch)
    console.print(render_tree(data, tree_path))


@app.command("set")
def set_(
    ctx: Context,
    path: str = Argument(
        help="Path relative to instance path, e.g. 'users/alice/name'",
    ),
    value: str = Argument(
        help="Value as yaml, e.g. 'baz', '1' or '{a: 1}'",
    ),
):
    """
    Set value at path
    """
    root_context = get_root_context(ctx)
    locator = PathLocator.from_remote_path(path)

    if locator.is_root:
        raise BadParameter(
            "cannot set root of tree",
            ctx=ctx,
            param=lookup_param(ctx, "path"),
        )

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as e:
        raise BadParameter(
            f"failed to parse value: {e}",
            ctx=ctx,
            param=lookup_param(ctx, "value"),
        )

    # write through the store root so missing parents of instance path
    # are created as well
    full_locator = PathLocator.from_remote_path(root_context.resolve_path(path))
    errors: list[BonfireError] = []

    async def write():
        session = root_context.create_session(error_handler=errors.append)
        async with session:
            tree = await session.request_tree("/")
            try:
                set_path(tree, full_locator, parsed_value)
            except (BonfireError, IndexError, TypeError) as e:
                raise BadParameter(
                    f"cannot set '{path}': {e}",
                    ctx=ctx,
                    param=lookup_param(ctx, "path"),
                )

    root_context.run(write)

    if errors:
        raise Exit(code=1)

    logger.info(f"Set {full_locator} = {parsed_value!r}")


def run():
    app()


@dataclass(kw_only=True)
class RootContext:
    ctx: Context
    instance: InstanceConfig

    @classmethod
    def from_config(
        cls,
        *,
        ctx: Context,
        instance_name: str,
        config_file: Path,
    ) -> RootContext:
        # ensure config file exists
        if not config_file.is_file():
            raise BadParameter(
                message=f"file does not exist: {config_file}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get config from file
        try:
            config = Config.load_yaml(config_file)
        except (ValueError, ValidationError) as e:
            raise BadParameter(
                f"failed to load config file '{config_file}': {e}",
                ctx=ctx,
                param=lookup_param(ctx, "config_file"),
            )

        # get instance from config
        instance = config.instances.get(instance_name)
        if not instance:
            raise BadParameter(
                f"instance '{instance_name}' not found in '{config_file}'",
                ctx=ctx,
                param=lookup_param(ctx, "instance_name"),
            )

        return RootContext(ctx=ctx, instance=instance)

    def resolve_path(self, path: str) -> str:
        """
        Get remote path given a path relative to the instance path.
        """
        base = PathLocator.from_remote_path(self.instance.path)
        return base.join(PathLocator.from_remote_path(path)).to_remote_path()

    def create_store(self) -> RemoteStore:
        try:
            return self.instance.create_store()
        except (BonfireError, TypeError) as e:
            logger.error(str(e))
            raise Exit(code=1)

    def create_session(self, **kwargs) -> Session:
        try:
            return self.instance.create_session(logger=logger, **kwargs)
        except (BonfireError, TypeError) as e:
            logger.error(str(e))
            raise Exit(code=1)

    def run(self, func):
        """
        Run async function, exiting upon setup errors.
        """
        try:
            return anyio.run(func)
        except EmptyNode as e:
            logger.error(f"{e}")
            raise Exit(code=1)
        except BonfireError as e:
            logger.error(f"{type(e).__name__}: {e}")
            raise Exit(code=1)


if __name__ == "__main__":
    app()
