"""Shared test fixtures."""

import pytest

from cronkit.scheduler.engine import MemoryTriggerEngine
from cronkit.scheduler.introspection import CronInspector
from cronkit.scheduler.registry import EventRegistry
from cronkit.scheduler.scheduler import Scheduler

NOW = 1_700_000_000


class FakeClock:
    """Settable clock returning epoch seconds."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(clock: FakeClock) -> MemoryTriggerEngine:
    return MemoryTriggerEngine(duplicate_window=600, clock=clock)


@pytest.fixture
def registry(engine: MemoryTriggerEngine) -> EventRegistry:
    return EventRegistry(engine, prefix="app", separator="_")


@pytest.fixture
def scheduler(registry: EventRegistry, clock: FakeClock) -> Scheduler:
    return Scheduler(registry, clock=clock, drain_limit=50)


@pytest.fixture
def inspector(registry: EventRegistry) -> CronInspector:
    return CronInspector(registry)
