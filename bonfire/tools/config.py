"""
Interface to configuration as persisted in .yaml file.
"""
from __future__ import annotations

from logging import Logger
from pathlib import Path
from typing import Any, Callable, Self

import yaml
from pydantic import (
    BaseModel,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from ..core import BonfireError, Session
from ..core.location import PathLocator
from ..core.session import PUSH_TIMEOUT
from ..store import RemoteStore, load_store

__all__ = [
    "Config",
    "InstanceConfig",
    "BaseYamlModel",
    "FILE_STORE",
]

FILE_STORE = "bonfire.store:YamlFileStore"
"""
Import string of the store used by default.
"""


class BaseYamlModel(BaseModel):
    """
    Base pydantic model which can be loaded from and dumped to a .yaml file.
    """

    @classmethod
    def load_yaml(cls, file: Path) -> Self:
        """
        Load model from .yaml file; an empty file gives the default model.
        """
        if not file.is_file():
            raise FileNotFoundError(f"Config file does not exist: '{file}'")

        with file.open() as fh:
            model = yaml.safe_load(fh)

        if model is None:
            model = {}

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        return cls.model_validate(model)

    def dump_yaml(self, file: Path):
        """
        Dump model to .yaml file.
        """
        model = self.model_dump(mode="json", exclude_defaults=True)
        file.write_text(
            yaml.safe_dump(model, default_flow_style=False, sort_keys=False)
        )


class InstanceConfig(BaseModel):
    """
    Encapsulates how to reach a remote store and which tree to mirror from it.
    """

    store: str = FILE_STORE
    """
    Import string of store class, `<module>:<class>`.
    """

    options: dict[str, Any] = Field(default_factory=dict)
    """
    Keyword arguments passed to store class.
    """

    path: str = "/"
    """
    Remote path of tree to mirror by default.
    """

    push_timeout: float = Field(default=PUSH_TIMEOUT, gt=0)
    """
    Seconds to wait for each remote write.
    """

    @field_validator("store")
    def validate_store(cls, value: str) -> str:
        module_name, _, cls_name = value.partition(":")
        if not module_name or not cls_name:
            raise ValueError(f"expected '<module>:<class>', got '{value}'")
        return value

    @field_validator("path")
    def validate_path(cls, value: str) -> str:
        return PathLocator.from_remote_path(value).to_remote_path()

    def create_store(self) -> RemoteStore:
        """
        Instantiate configured store.

        :raises MissingDependency: If store class can't be imported
        """
        return load_store(self.store, **self.options)

    def create_session(
        self,
        *,
        logger: Logger | None = None,
        default: bool = False,
        error_handler: Callable[[BonfireError], Any] | None = None,
    ) -> Session:
        """
        Get session from this instance's fields.
        """
        return Session(
            self.create_store(),
            default=default,
            logger=logger,
            push_timeout=self.push_timeout,
            error_handler=error_handler,
        )


class Config(BaseYamlModel):
    """
    Encapsulates configuration for use in tools.
    """

    data_dir: Path | None = None
    """
    Folder holding a `<instance name>.yaml` file for each file-backed
    instance which doesn't set its own file.
    """

    instances: dict[str, InstanceConfig] = Field(default_factory=dict)
    """
    Mapping of instance names to configs.
    """

    @field_validator("data_dir", mode="before")
    def validate_data_dir(cls, value: Any) -> Any:
        if not isinstance(value, (str, Path)):
            # let pydantic handle type error
            return value

        path = Path(value)
        if not path.is_dir():
            raise ValueError(f"folder does not exist: '{path}'")

        return path

    @field_serializer("data_dir")
    def serialize_data_dir(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @model_validator(mode="after")
    def validate_instances(self) -> Self:
        # propagate data dir to file-backed instances if applicable
        if self.data_dir:
            for instance_name, instance in self.instances.items():
                if instance.store == FILE_STORE and "file" not in instance.options:
                    instance.options["file"] = str(
                        self.data_dir / f"{instance_name}.yaml"
                    )
        return self
