from pathlib import Path

from pydantic import ValidationError
from pytest import mark, raises

from bonfire import MemoryStore, Session, YamlFileStore
from bonfire.tools.config import FILE_STORE, Config, InstanceConfig

pytestmark = mark.anyio


def test_instance():
    instance = InstanceConfig(
        store="bonfire.store:MemoryStore",
        options={"data": {"a": 1}},
        path="users//alice/",
    )

    # path normalized
    assert instance.path == "/users/alice"
    assert instance.push_timeout > 0

    store = instance.create_store()
    assert isinstance(store, MemoryStore)
    assert store.data == {"a": 1}

    with raises(ValidationError):
        InstanceConfig(store="bonfire.store")

    with raises(ValidationError):
        InstanceConfig(push_timeout=0)


def test_config(tmp_path: Path):
    config_path = tmp_path / "bonfire.yaml"
    data_dir = tmp_path / "data"
    data_dir.mkdir()

    model = Config(
        data_dir=data_dir,
        instances={
            "file-instance": InstanceConfig(),
            "explicit-file-instance": InstanceConfig(
                options={"file": str(tmp_path / "explicit.yaml")}
            ),
            "memory-instance": InstanceConfig(
                store="bonfire.store:MemoryStore",
                path="/users",
                push_timeout=1.0,
            ),
        },
    )
    model.dump_yaml(config_path)

    config = Config.load_yaml(config_path)
    assert config.data_dir == data_dir
    assert set(config.instances) == {
        "file-instance",
        "explicit-file-instance",
        "memory-instance",
    }

    # file-backed instance without a file placed in data dir
    file_instance = config.instances["file-instance"]
    assert file_instance.store == FILE_STORE
    assert file_instance.options["file"] == str(data_dir / "file-instance.yaml")

    explicit_instance = config.instances["explicit-file-instance"]
    assert explicit_instance.options["file"] == str(tmp_path / "explicit.yaml")

    memory_instance = config.instances["memory-instance"]
    assert memory_instance.path == "/users"
    assert memory_instance.push_timeout == 1.0
    assert "file" not in memory_instance.options

    store = file_instance.create_store()
    assert isinstance(store, YamlFileStore)
    assert store.file == data_dir / "file-instance.yaml"


def test_config_invalid(tmp_path: Path):
    config_path = tmp_path / "bonfire.yaml"

    with raises(FileNotFoundError):
        Config.load_yaml(config_path)

    # empty file gives default config
    config_path.write_text("")
    assert Config.load_yaml(config_path).instances == {}

    config_path.write_text("- not a mapping")
    with raises(ValueError):
        Config.load_yaml(config_path)

    config_path.write_text(f"data_dir: {tmp_path / 'nonexistent'}")
    with raises(ValidationError):
        Config.load_yaml(config_path)


async def test_create_session(tmp_path: Path):
    instance = InstanceConfig(
        options={"file": str(tmp_path / "store.yaml")},
        push_timeout=2.0,
    )
    session = instance.create_session(logger=None)

    assert isinstance(session, Session)
    assert isinstance(session.store, YamlFileStore)
    assert session.push_timeout == 2.0
    assert not session.is_default

    async with session:
        tree = await session.request_tree("/")
        tree["a"] = {"b": 1}

    assert YamlFileStore(tmp_path / "store.yaml").data == {"a": {"b": 1}}
