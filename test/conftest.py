import logging
from typing import Any

from pytest import Config, FixtureRequest, fixture

from bonfire import BonfireError, MemoryStore

logging.basicConfig(level=logging.WARNING)

MARKERS = [
    "store_data",
    "store_latency",
]


def pytest_configure(config: Config) -> None:
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)


class RecordingStore(MemoryStore):
    """
    Memory store which keeps a list of writes for testcases to verify.
    Writes fail with the given exception if one is set.
    """

    writes: list[tuple[str, str | int, Any]]
    fail_with: Exception | None

    def __init__(self, data: Any = None, **kwargs):
        super().__init__(data, **kwargs)
        self.writes = []
        self.fail_with = None

    async def write(self, path: str, key: str | int, value: Any) -> None:
        self.writes.append((path, key, value))

        if self.fail_with is not None:
            raise self.fail_with

        await super().write(path, key, value)

    @property
    def write_paths(self) -> list[str]:
        return [
            f"{path.rstrip('/')}/{key}" for path, key, _ in self.writes
        ]


@fixture
def anyio_backend():
    return "asyncio"


@fixture
def store(request: FixtureRequest) -> RecordingStore:
    """
    Create a new store, populated from `@mark.store_data(...)` if given.
    """
    marker_data = request.node.get_closest_marker("store_data")
    marker_latency = request.node.get_closest_marker("store_latency")

    data = marker_data.args[0] if marker_data else {}
    latency = marker_latency.args[0] if marker_latency else 0.0

    return RecordingStore(data, latency=latency)


@fixture
def errors() -> list[BonfireError]:
    """
    List to pass as a session's error handler.
    """
    return []
