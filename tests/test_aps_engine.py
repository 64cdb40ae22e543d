"""Tests for APSchedulerTriggerEngine: APScheduler-backed series."""

import time
from unittest.mock import AsyncMock

import pytest

from cronkit.scheduler.aps_engine import APSchedulerTriggerEngine
from cronkit.scheduler.errors import UnknownRecurrenceError
from cronkit.scheduler.registry import EventRegistry
from cronkit.scheduler.scheduler import Scheduler

NOW = 1_700_000_000


@pytest.fixture
async def engine() -> APSchedulerTriggerEngine:
    return APSchedulerTriggerEngine(timezone="UTC", duplicate_window=600)


# -- Series (scheduler not started; jobs stay pending) -------------------------


async def test_schedule_and_next_occurrence(engine: APSchedulerTriggerEngine) -> None:
    assert await engine.next_occurrence("k") is None
    assert await engine.schedule_occurrence("k", "hourly", NOW) is True
    assert await engine.next_occurrence("k") == NOW

    (series,) = await engine.list_series("k")
    assert series.recurrence == "hourly"
    assert series.interval == 3600
    assert series.next_run == NOW


async def test_duplicate_within_window(engine: APSchedulerTriggerEngine) -> None:
    await engine.schedule_occurrence("k", "hourly", NOW)
    assert await engine.schedule_occurrence("k", "daily", NOW + 60) is False
    assert len(await engine.list_series("k")) == 1


async def test_unknown_recurrence(engine: APSchedulerTriggerEngine) -> None:
    with pytest.raises(UnknownRecurrenceError):
        await engine.schedule_occurrence("k", "monthly", NOW)


async def test_unschedule_exactly_one(engine: APSchedulerTriggerEngine) -> None:
    await engine.schedule_occurrence("k", "hourly", NOW)
    await engine.schedule_occurrence("k", "daily", NOW + 5000)
    await engine.schedule_occurrence("other", "daily", NOW)

    assert await engine.unschedule_occurrence(NOW, "k") is True
    assert await engine.next_occurrence("k") == NOW + 5000
    assert await engine.unschedule_occurrence(NOW, "k") is False
    assert await engine.next_occurrence("other") == NOW


async def test_custom_recurrence(engine: APSchedulerTriggerEngine) -> None:
    engine.extend_recurrence_catalog("every_minute", 60, "Every Minute")
    await engine.schedule_occurrence("k", "every_minute", NOW)
    (series,) = await engine.list_series()
    assert series.interval == 60


async def test_scheduler_reschedule(engine: APSchedulerTriggerEngine) -> None:
    registry = EventRegistry(engine, prefix="app")
    scheduler = Scheduler(registry, clock=lambda: NOW)
    registry.register("digest", "daily")

    await scheduler.schedule_all()
    await engine.schedule_occurrence("app_digest", "hourly", NOW + 9000)
    await scheduler.reschedule("digest", "weekly", NOW + 1)
    assert [(s.recurrence, s.next_run) for s in await engine.list_series()] == [
        ("weekly", NOW + 1)
    ]


# -- Lifecycle -----------------------------------------------------------------


async def test_start_and_stop(engine: APSchedulerTriggerEngine) -> None:
    await engine.start()
    assert engine.running is True

    await engine.stop()
    assert engine.running is False


async def test_stop_when_not_running(engine: APSchedulerTriggerEngine) -> None:
    # Should not raise
    await engine.stop()


async def test_pending_series_kept_after_start(engine: APSchedulerTriggerEngine) -> None:
    future = int(time.time()) + 86400
    await engine.schedule_occurrence("k", "daily", future)
    await engine.start()
    try:
        assert await engine.next_occurrence("k") == future
    finally:
        await engine.stop()


async def test_fire_dispatches_to_latest_binding(engine: APSchedulerTriggerEngine) -> None:
    old, new = AsyncMock(), AsyncMock()
    engine.bind_dispatch("k", old)
    engine.bind_dispatch("k", new)
    await engine._fire("k")
    new.assert_awaited_once()
    old.assert_not_awaited()
