"""Pytest configuration and fixtures."""

from concurrent.futures import Future

import pytest
from persistjar.jar import PersistentCookieJar
from persistjar.storage import MemoryStorage

NOW = 1_700_000_000_000
HOUR_MS = 3_600_000


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class InlineExecutor:
    """Runs submitted work immediately on the calling thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        future.set_result(fn(*args, **kwargs))
        return future


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def jar(clock, storage):
    """Initialized jar without a sync target."""
    jar = PersistentCookieJar(clock=clock)
    jar.init(storage)
    yield jar
    jar.close()


@pytest.fixture
def sync_target(mocker):
    return mocker.MagicMock()


@pytest.fixture
def inline_executor():
    return InlineExecutor()
