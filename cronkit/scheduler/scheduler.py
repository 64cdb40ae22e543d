"""Scheduler — reconciles registered cron events with a trigger engine."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from cronkit.config import settings
from cronkit.scheduler.conditions import ConditionEvaluator
from cronkit.scheduler.errors import DrainLimitError, EngineError, UnknownRecurrenceError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cronkit.scheduler.engine import TriggerEngine
    from cronkit.scheduler.models import CronEvent
    from cronkit.scheduler.registry import EventRegistry

logger = logging.getLogger(__name__)


def _always() -> bool:
    return True


class Scheduler:
    """Creates, drains and recreates occurrence series for registered events.

    Hooks are passed by short name; the registry namespaces them. Scheduling
    a hook that already has a pending occurrence is a no-op, draining an empty
    hook is a no-op, and a reschedule always leaves exactly one series behind.

    There is no locking: two processes reconciling the same durable engine at
    once can both observe "nothing pending" and create duplicate series.

    Args:
        registry: The registry whose definitions are reconciled.
        conditions: Predicate evaluator (default :class:`ConditionEvaluator`).
        clock: Callable returning the current epoch seconds.
        drain_limit: Maximum occurrences removed per drain (default from settings).
    """

    def __init__(
        self,
        registry: EventRegistry,
        conditions: ConditionEvaluator | None = None,
        clock: Callable[[], float] | None = None,
        drain_limit: int | None = None,
    ) -> None:
        self.registry = registry
        self.conditions = conditions or ConditionEvaluator()
        self._clock = clock or time.time
        self._drain_limit = settings.drain_limit if drain_limit is None else drain_limit

    @property
    def engine(self) -> TriggerEngine:
        return self.registry.engine

    def _now(self) -> int:
        return int(self._clock())

    def _check_recurrence(self, recurrence: str) -> None:
        if recurrence not in self.engine.catalog:
            raise UnknownRecurrenceError(recurrence)

    # -- Primitives ------------------------------------------------------------

    async def _is_pending(self, key: str) -> bool:
        return await self.engine.next_occurrence(key) is not None

    async def _drain_key(self, key: str) -> int:
        removed = 0
        epoch = await self.engine.next_occurrence(key)
        while epoch is not None:
            if removed >= self._drain_limit:
                raise DrainLimitError(key, self._drain_limit)
            if not await self.engine.unschedule_occurrence(epoch, key):
                msg = f"Engine could not unschedule '{key}' at {epoch}"
                raise EngineError(msg)
            removed += 1
            epoch = await self.engine.next_occurrence(key)
        return removed

    async def _admit(
        self,
        event: CronEvent,
        log: bool,
        action: str = "scheduled",
        recurrence: str | None = None,
        timestamp: int | None = None,
    ) -> bool:
        """Create a series for *event* unless one is already pending."""
        if await self._is_pending(event.hook):
            return False
        recurrence = recurrence or event.recurrence
        timestamp = timestamp if timestamp is not None else event.first_run(self._now())
        try:
            created = await self.engine.schedule_occurrence(event.hook, recurrence, timestamp)
        except UnknownRecurrenceError:
            logger.warning(
                "Cron '%s' not scheduled: unknown recurrence '%s'", event.hook, recurrence
            )
            return False
        if created and log:
            logger.info(
                "Cron '%s' %s for '%s' starting at %d", event.hook, action, recurrence, timestamp
            )
        return created

    # -- Scheduling ------------------------------------------------------------

    async def schedule_all(self) -> list[str]:
        """Schedule every definition whose condition holds and that is not pending.

        Returns the short names that received a new series.
        """
        scheduled = []
        for event in self.registry.events:
            if not await self.conditions.evaluate(event):
                if event.log:
                    logger.info("Cron '%s' condition not met; skipped", event.hook)
                continue
            if await self._admit(event, event.log):
                scheduled.append(event.name)
        return scheduled

    async def schedule_missed(self, log: bool = False) -> list[str]:
        """Schedule every definition lacking a pending occurrence, ignoring conditions."""
        scheduled = []
        for event in self.registry.events:
            if await self._admit(event, log, action="scheduled (missed)"):
                scheduled.append(event.name)
        return scheduled

    async def schedule_if(
        self, hook: str, condition: Callable[..., Any], log: bool = False
    ) -> bool:
        event = self.registry.find(hook)
        if event is None:
            return False
        if not await self.conditions.check(event, condition):
            return False
        return await self._admit(event, log, action="scheduled conditionally")

    async def schedule_batch(self, hooks: Sequence[str], log: bool = False) -> list[str]:
        """Schedule each known hook in *hooks*. Unknown hooks are skipped."""
        return await self.schedule_batch_with_recurrence(hooks, None, None, log)

    async def schedule_batch_if(
        self, hooks: Sequence[str], condition: Callable[[], Any], log: bool = False
    ) -> list[str]:
        """Schedule *hooks* only if the batch-level *condition* holds."""
        if not await self.conditions.check_batch(",".join(hooks), condition):
            return []
        return await self.schedule_batch(hooks, log)

    async def schedule_batch_with_recurrence(
        self,
        hooks: Sequence[str],
        recurrence: str | None,
        timestamp: int | None = None,
        log: bool = False,
    ) -> list[str]:
        """Schedule known *hooks* with an overriding recurrence and first run."""
        scheduled = []
        for hook in hooks:
            event = self.registry.find(hook)
            if event is None:
                continue
            if await self._admit(event, log, recurrence=recurrence, timestamp=timestamp):
                scheduled.append(hook)
        return scheduled

    async def schedule_at(self, hook: str, timestamp: int, log: bool = False) -> bool:
        event = self.registry.find(hook)
        if event is None:
            return False
        return await self._admit(event, log, timestamp=timestamp)

    async def schedule_after(self, hook: str, delay: int, log: bool = False) -> bool:
        return await self.schedule_at(hook, self._now() + delay, log)

    async def enable_hook(self, hook: str, log: bool = False) -> bool:
        event = self.registry.find(hook)
        if event is None:
            return False
        return await self._admit(event, log, action="re-enabled and scheduled")

    async def enable_hooks(self, hooks: Sequence[str], log: bool = False) -> list[str]:
        return await self.schedule_batch(hooks, log)

    async def enable_hooks_if(self, predicate: Callable[..., Any], log: bool = False) -> list[str]:
        enabled = []
        for event in self.registry.events:
            if await self.conditions.check(event, predicate) and await self.enable_hook(
                event.name, log
            ):
                enabled.append(event.name)
        return enabled

    # -- Unscheduling ----------------------------------------------------------

    async def drain(self, hook: str) -> int:
        """Remove every pending occurrence of *hook*. Returns how many."""
        return await self._drain_key(self.registry.namespaced(hook))

    async def unschedule_all(self, hook: str) -> int:
        return await self.drain(hook)

    async def remove(self, hook: str, log: bool = False) -> int:
        """Drain *hook*; the registry keeps its definition."""
        removed = await self.drain(hook)
        if log:
            logger.info(
                "All occurrences of cron '%s' removed (%d)", self.registry.namespaced(hook), removed
            )
        return removed

    async def disable_hook(self, hook: str, log: bool = False) -> int:
        removed = await self.drain(hook)
        if log:
            logger.info("Cron '%s' temporarily disabled", self.registry.namespaced(hook))
        return removed

    async def disable_hooks_if(self, predicate: Callable[..., Any], log: bool = False) -> list[str]:
        disabled = []
        for event in self.registry.events:
            if await self.conditions.check(event, predicate):
                await self.disable_hook(event.name, log)
                disabled.append(event.name)
        return disabled

    async def clear_all(self, log: bool = False) -> None:
        """Drain every registered hook. Definitions stay registered."""
        for event in self.registry.events:
            await self._drain_key(event.hook)
            if log:
                logger.info("All occurrences of cron '%s' cleared", event.hook)

    async def clear_batch(self, hooks: Sequence[str], log: bool = False) -> None:
        for hook in hooks:
            await self.remove(hook, log)

    async def unschedule_hooks(self, hooks: Sequence[str], log: bool = False) -> None:
        await self.clear_batch(hooks, log)

    async def clear_by_recurrence(self, recurrence: str, log: bool = False) -> list[str]:
        return await self.remove_if(lambda event: event.recurrence == recurrence, log)

    async def remove_if(self, predicate: Callable[..., Any], log: bool = False) -> list[str]:
        """Drain every definition matching *predicate*. Definitions stay registered."""
        removed = []
        for event in self.registry.events:
            if await self.conditions.check(event, predicate):
                await self.remove(event.name, log)
                removed.append(event.name)
        return removed

    async def unschedule_batch_if(
        self, hooks: Sequence[str], predicate: Callable[..., Any], log: bool = False
    ) -> list[str]:
        removed = []
        for hook in hooks:
            event = self.registry.find(hook)
            if event is not None and await self.conditions.check(event, predicate):
                await self.remove(hook, log)
                removed.append(hook)
        return removed

    async def remove_all_unscheduled(self, log: bool = False) -> list[str]:
        """Drop definitions that have no pending occurrence from the registry."""
        idle = {
            event.hook for event in self.registry.events if not await self._is_pending(event.hook)
        }
        removed = self.registry.remove_if(lambda event: event.hook in idle)
        if log:
            for event in removed:
                logger.info("Unscheduled cron '%s' removed from registry", event.hook)
        return [event.name for event in removed]

    async def reset_hooks(self, hooks: Sequence[str], log: bool = False) -> None:
        """Drain each hook and drop its definitions."""
        for hook in hooks:
            await self.remove(hook, log)
            self.registry.clear(hook, log)

    async def reset_all(self, log: bool = False) -> None:
        """Drain every hook and empty the registry."""
        for event in self.registry.events:
            await self._drain_key(event.hook)
            if log:
                logger.info("Cron '%s' completely removed", event.hook)
        self.registry.clear_all_events()

    # -- Rescheduling ----------------------------------------------------------

    async def reschedule(
        self,
        hook: str,
        recurrence: str | None = None,
        timestamp: int | None = None,
        log: bool = False,
    ) -> bool:
        """Drain *hook*, then create one series from the overrides or stored values.

        The drain happens even when the hook is unknown; in that case nothing
        is recreated and False is returned. An unknown recurrence raises
        :class:`UnknownRecurrenceError` before anything is drained.
        """
        key = self.registry.namespaced(hook)
        event = self.registry.find(hook)
        if event is None:
            await self._drain_key(key)
            return False
        recurrence = recurrence or event.recurrence
        self._check_recurrence(recurrence)
        await self._drain_key(key)
        timestamp = timestamp if timestamp is not None else event.first_run(self._now())
        created = await self.engine.schedule_occurrence(key, recurrence, timestamp)
        if created and log:
            logger.info("Cron '%s' rescheduled to '%s' starting at %d", key, recurrence, timestamp)
        return created

    async def reschedule_all(self, log: bool = False) -> None:
        for event in self.registry.events:
            try:
                await self.reschedule(event.name, event.recurrence, event.timestamp, log)
            except UnknownRecurrenceError:
                logger.warning(
                    "Cron '%s' not rescheduled: unknown recurrence '%s'",
                    event.hook,
                    event.recurrence,
                )

    async def reschedule_if_scheduled(
        self,
        hook: str,
        recurrence: str | None = None,
        timestamp: int | None = None,
        log: bool = False,
    ) -> bool:
        if not await self._is_pending(self.registry.namespaced(hook)):
            return False
        if not self.registry.has_hook(hook):
            return False
        return await self.reschedule(hook, recurrence, timestamp, log)

    async def update_recurrence(self, hook: str, recurrence: str, log: bool = False) -> bool:
        """Store a new recurrence on the first match and reschedule it."""
        self._check_recurrence(recurrence)
        event = self.registry.set_recurrence(hook, recurrence)
        if event is None:
            return False
        return await self.reschedule(hook, recurrence, event.timestamp, log)

    async def update_timestamp(self, hook: str, timestamp: int, log: bool = False) -> bool:
        """Store a new first-run epoch on the first match and reschedule it."""
        event = self.registry.find(hook)
        if event is None:
            return False
        self._check_recurrence(event.recurrence)
        self.registry.set_timestamp(hook, timestamp)
        return await self.reschedule(hook, event.recurrence, timestamp, log)

    async def reschedule_batch(
        self, hooks: Sequence[str], recurrence: str, log: bool = False
    ) -> None:
        self._check_recurrence(recurrence)
        for hook in hooks:
            await self.update_recurrence(hook, recurrence, log)

    async def shift_next_run(self, hook: str, seconds: int, log: bool = False) -> bool:
        """Replace the next pending occurrence with one at first-run + *seconds*."""
        event = self.registry.find(hook)
        if event is None:
            return False
        epoch = await self.engine.next_occurrence(event.hook)
        if epoch is None:
            return False
        self._check_recurrence(event.recurrence)
        await self.engine.unschedule_occurrence(epoch, event.hook)
        shifted = event.first_run(self._now()) + seconds
        created = await self.engine.schedule_occurrence(event.hook, event.recurrence, shifted)
        if log:
            logger.info("Cron '%s' shifted by %d seconds to %d", event.hook, seconds, shifted)
        return created

    async def shift_next_run_batch(
        self, hooks: Sequence[str], seconds: int, log: bool = False
    ) -> None:
        for hook in hooks:
            await self.shift_next_run(hook, seconds, log)
