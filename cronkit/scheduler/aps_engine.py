"""APSchedulerTriggerEngine — APScheduler jobs as occurrence series."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cronkit.config import settings
from cronkit.scheduler.engine import BaseTriggerEngine
from cronkit.scheduler.models import OccurrenceSeries, make_series_id

if TYPE_CHECKING:
    from collections.abc import Callable

    from apscheduler.job import Job

    from cronkit.scheduler.catalog import IntervalCatalog

logger = logging.getLogger(__name__)


def _epoch(job: Job) -> int | None:
    next_run = getattr(job, "next_run_time", None)
    return int(next_run.timestamp()) if next_run is not None else None


class APSchedulerTriggerEngine(BaseTriggerEngine):
    """Maps each occurrence series to one APScheduler interval job.

    The job's ``name`` carries the hook, so several series for one hook can
    coexist. Jobs always invoke :meth:`dispatch`, which looks up the current
    binding at fire time; rebinding a hook therefore never touches its jobs.

    Args:
        catalog: Recurrence catalog.
        timezone: IANA timezone string (default from settings).
        duplicate_window: See :class:`BaseTriggerEngine`.
        clock: Callable returning the current epoch seconds.
    """

    def __init__(
        self,
        catalog: IntervalCatalog | None = None,
        timezone: str | None = None,
        duplicate_window: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        super().__init__(catalog=catalog, duplicate_window=duplicate_window, clock=clock)
        self._timezone = timezone or settings.scheduler_timezone
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._recurrences: dict[str, str] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Start firing jobs. Must be called from a running event loop."""
        self._scheduler.start()
        self._running = True
        logger.info(
            "Trigger engine started with %d series (tz=%s)",
            len(self._scheduler.get_jobs()),
            self._timezone,
        )

    async def stop(self) -> None:
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Trigger engine stopped")

    # -- TriggerEngine ---------------------------------------------------------

    def _jobs_for(self, key: str) -> list[Job]:
        return [job for job in self._scheduler.get_jobs() if job.name == key]

    async def schedule_occurrence(self, key: str, recurrence: str, first_run: int) -> bool:
        interval = self.catalog.interval(recurrence)
        pending = [epoch for epoch in map(_epoch, self._jobs_for(key)) if epoch is not None]
        if self._is_duplicate(first_run, pending):
            logger.debug("Skipping duplicate series for %s at %d", key, first_run)
            return False
        start = datetime.fromtimestamp(int(first_run), tz=UTC)
        job = self._scheduler.add_job(
            self._fire,
            trigger=IntervalTrigger(seconds=interval, start_date=start, timezone=self._timezone),
            id=make_series_id(),
            name=key,
            args=[key],
            next_run_time=start,
            misfire_grace_time=None,
            coalesce=True,
        )
        self._recurrences[job.id] = recurrence
        return True

    async def next_occurrence(self, key: str) -> int | None:
        pending = [epoch for epoch in map(_epoch, self._jobs_for(key)) if epoch is not None]
        return min(pending) if pending else None

    async def unschedule_occurrence(self, epoch: int, key: str) -> bool:
        for job in self._jobs_for(key):
            if _epoch(job) == int(epoch):
                self._scheduler.remove_job(job.id)
                self._recurrences.pop(job.id, None)
                return True
        return False

    async def list_series(self, key: str | None = None) -> list[OccurrenceSeries]:
        series = []
        for job in self._scheduler.get_jobs():
            epoch = _epoch(job)
            if epoch is None or (key is not None and job.name != key):
                continue
            series.append(
                OccurrenceSeries(
                    id=job.id,
                    hook=job.name,
                    recurrence=self._recurrences.get(job.id, ""),
                    interval=int(job.trigger.interval.total_seconds()),
                    next_run=epoch,
                )
            )
        return sorted(series, key=lambda s: s.next_run)

    # -- Internal --------------------------------------------------------------

    async def _fire(self, key: str) -> None:
        """Callback invoked by APScheduler. Delegates to the bound handler."""
        await self.dispatch(key)
