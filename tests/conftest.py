import logging
from collections.abc import Callable
from pathlib import Path

import pytest

HERE = Path(__file__).parent

logger = logging.getLogger("microbench")
logger.setLevel(logging.DEBUG)


class FakeClock:
    """A manually advanced nanosecond clock, making timing fully deterministic."""

    def __init__(self, start: int = 0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ns: int) -> None:
        self.now += ns

    def workload(self, ns: int, calls: list[str] | None = None, name: str = "") -> Callable:
        """A workload taking exactly ``ns`` nanoseconds, optionally logging its calls."""

        def fn(*args):
            if calls is not None:
                calls.append(name)
            self.advance(ns)

        return fn


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def testfolder() -> str:
    """A test directory for task collection."""
    return str(HERE / "benchmarks")
