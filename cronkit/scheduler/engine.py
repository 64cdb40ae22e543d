"""Trigger engines — where pending occurrences live and callbacks fire.

The registry and scheduler only ever talk to an engine through the
:class:`TriggerEngine` protocol. Three implementations ship:

- :class:`MemoryTriggerEngine` — in-process, driven by :meth:`run_due`.
- :class:`cronkit.scheduler.store.SQLiteTriggerEngine` — durable, aiosqlite.
- :class:`cronkit.scheduler.aps_engine.APSchedulerTriggerEngine` — APScheduler
  fires the occurrences itself.
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Callable
from typing import Any, Protocol

from cronkit.config import settings
from cronkit.scheduler.catalog import IntervalCatalog
from cronkit.scheduler.models import OccurrenceSeries, make_series_id

logger = logging.getLogger(__name__)

# Handler signature: () -> None | Awaitable[None]
DispatchHandler = Callable[[], Any]


class TriggerEngine(Protocol):
    """Protocol for trigger engine implementations."""

    catalog: IntervalCatalog

    async def schedule_occurrence(self, key: str, recurrence: str, first_run: int) -> bool:
        """Create a recurring series. Returns False for a duplicate within the window."""
        ...

    async def next_occurrence(self, key: str) -> int | None:
        """Return the next pending epoch for *key*, or None."""
        ...

    async def unschedule_occurrence(self, epoch: int, key: str) -> bool:
        """Remove exactly one pending occurrence. Returns False if none matched."""
        ...

    async def list_series(self, key: str | None = None) -> list[OccurrenceSeries]:
        """Return pending series, optionally only those of *key*."""
        ...

    def bind_dispatch(self, key: str, handler: DispatchHandler) -> None:
        """Associate the handler invoked when *key* fires. Latest bind wins."""
        ...

    def extend_recurrence_catalog(self, name: str, seconds: int, label: str) -> None:
        """Add a recurrence unless the name is already known."""
        ...


def next_slot(next_run: int, interval: int, now: int) -> int:
    """Return the first slot of a series strictly after *now*."""
    following = next_run + interval
    if following <= now:
        following = now + (interval - ((now - next_run) % interval))
    return following


class BaseTriggerEngine:
    """Dispatch bindings, catalog and duplicate detection shared by engines.

    Args:
        catalog: Recurrence catalog (defaults to the built-in recurrences).
        duplicate_window: Seconds within which a second series for the same
            key is treated as a duplicate (default from settings).
        clock: Callable returning the current epoch seconds.
    """

    def __init__(
        self,
        catalog: IntervalCatalog | None = None,
        duplicate_window: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.catalog = catalog or IntervalCatalog()
        self._duplicate_window = (
            settings.duplicate_window_seconds if duplicate_window is None else duplicate_window
        )
        self._clock = clock or time.time
        self._handlers: dict[str, DispatchHandler] = {}

    def now(self) -> int:
        return int(self._clock())

    # -- Dispatch --------------------------------------------------------------

    def bind_dispatch(self, key: str, handler: DispatchHandler) -> None:
        if key in self._handlers:
            logger.debug("Rebinding dispatch for %s", key)
        self._handlers[key] = handler

    def handler_for(self, key: str) -> DispatchHandler | None:
        return self._handlers.get(key)

    async def dispatch(self, key: str) -> bool:
        """Invoke the handler bound to *key*. Returns True if it ran cleanly."""
        handler = self._handlers.get(key)
        if handler is None:
            logger.debug("No handler bound for %s", key)
            return False
        try:
            result = handler()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Cron handler failed: %s", key)
            return False
        return True

    # -- Catalog ---------------------------------------------------------------

    def extend_recurrence_catalog(self, name: str, seconds: int, label: str) -> None:
        self.catalog.extend(name, seconds, label)

    def _is_duplicate(self, first_run: int, pending: list[int]) -> bool:
        return any(abs(epoch - first_run) <= self._duplicate_window for epoch in pending)


class MemoryTriggerEngine(BaseTriggerEngine):
    """Keeps series in process memory. Call :meth:`run_due` to fire them."""

    def __init__(
        self,
        catalog: IntervalCatalog | None = None,
        duplicate_window: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        super().__init__(catalog=catalog, duplicate_window=duplicate_window, clock=clock)
        self._series: list[OccurrenceSeries] = []

    async def schedule_occurrence(self, key: str, recurrence: str, first_run: int) -> bool:
        interval = self.catalog.interval(recurrence)
        pending = [s.next_run for s in self._series if s.hook == key]
        if self._is_duplicate(first_run, pending):
            logger.debug("Skipping duplicate series for %s at %d", key, first_run)
            return False
        self._series.append(
            OccurrenceSeries(
                id=make_series_id(),
                hook=key,
                recurrence=recurrence,
                interval=interval,
                next_run=int(first_run),
            )
        )
        return True

    async def next_occurrence(self, key: str) -> int | None:
        pending = [s.next_run for s in self._series if s.hook == key]
        return min(pending) if pending else None

    async def unschedule_occurrence(self, epoch: int, key: str) -> bool:
        for index, series in enumerate(self._series):
            if series.hook == key and series.next_run == epoch:
                del self._series[index]
                return True
        return False

    async def list_series(self, key: str | None = None) -> list[OccurrenceSeries]:
        return [
            OccurrenceSeries(s.id, s.hook, s.recurrence, s.interval, s.next_run)
            for s in sorted(self._series, key=lambda s: s.next_run)
            if key is None or s.hook == key
        ]

    async def run_due(self, now: int | None = None) -> int:
        """Fire every occurrence due at *now* and advance its series.

        Returns the number of occurrences fired.
        """
        now = self.now() if now is None else now
        due = [s for s in self._series if s.next_run <= now]
        for series in due:
            series.next_run = next_slot(series.next_run, series.interval, now)
        for series in due:
            await self.dispatch(series.hook)
        if due:
            logger.info("Fired %d due occurrence(s)", len(due))
        return len(due)
