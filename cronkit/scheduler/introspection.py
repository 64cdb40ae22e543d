"""CronInspector — read-only queries over the registry and live engine state.

Nothing here is cached. Each query walks the registry in registration order
and asks the engine for the hook's next occurrence, so results reflect the
engine at call time. Hook lists use short names.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cronkit.scheduler.conditions import ConditionEvaluator

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from cronkit.scheduler.models import CronEvent
    from cronkit.scheduler.registry import EventRegistry

logger = logging.getLogger(__name__)


class CronInspector:
    """Query API over an :class:`EventRegistry` and its engine."""

    def __init__(
        self, registry: EventRegistry, conditions: ConditionEvaluator | None = None
    ) -> None:
        self.registry = registry
        self.conditions = conditions or ConditionEvaluator()

    async def _next(self, key: str) -> int | None:
        return await self.registry.engine.next_occurrence(key)

    async def _next_runs(self) -> list[tuple[CronEvent, int | None]]:
        return [(event, await self._next(event.hook)) for event in self.registry.events]

    def _names(self, events: Sequence[CronEvent]) -> list[str]:
        return [event.name for event in events]

    # -- Single hook -----------------------------------------------------------

    async def get_next_run(self, hook: str) -> int | None:
        return await self._next(self.registry.namespaced(hook))

    async def is_scheduled(self, hook: str) -> bool:
        return await self.get_next_run(hook) is not None

    async def is_hook_active(self, hook: str) -> bool:
        """True when *hook* is both registered and pending."""
        return self.registry.has_hook(hook) and await self.is_scheduled(hook)

    def get_hook_info(self, hook: str) -> dict[str, Any] | None:
        event = self.registry.find(hook)
        return event.describe() if event else None

    def has_args(self, hook: str) -> bool:
        event = self.registry.find(hook)
        return event is not None and event.has_args

    def has_condition(self, hook: str) -> bool:
        event = self.registry.find(hook)
        return event is not None and event.has_condition

    def args_match(self, hook: str, args: Sequence[Any]) -> bool:
        """Exact ordered comparison of the first match's args with *args*."""
        event = self.registry.find(hook)
        return event is not None and event.args == list(args)

    async def is_next_run_before(self, hook: str, timestamp: int) -> bool:
        next_run = await self.get_next_run(hook)
        return next_run is not None and next_run < timestamp

    async def is_next_run_after(self, hook: str, timestamp: int) -> bool:
        next_run = await self.get_next_run(hook)
        return next_run is not None and next_run > timestamp

    async def check_hook_condition(self, hook: str, predicate: Callable[..., Any]) -> bool:
        event = self.registry.find(hook)
        if event is None:
            return False
        return await self.conditions.check(event, predicate)

    # -- Partitions ------------------------------------------------------------

    async def scheduled_events(self) -> dict[str, int | None]:
        """Namespaced hook → next occurrence (None when not pending)."""
        return {event.hook: next_run for event, next_run in await self._next_runs()}

    async def scheduled_hooks(self) -> list[str]:
        return [event.name for event, next_run in await self._next_runs() if next_run is not None]

    async def unscheduled_hooks(self) -> list[str]:
        return [event.name for event, next_run in await self._next_runs() if next_run is None]

    async def enabled_hooks(self) -> list[str]:
        return await self.scheduled_hooks()

    async def disabled_hooks(self) -> list[str]:
        return await self.unscheduled_hooks()

    async def summary(self) -> list[dict[str, Any]]:
        return [
            {"hook": event.name, "scheduled": next_run is not None, "next": next_run}
            for event, next_run in await self._next_runs()
        ]

    # -- Registry filters ------------------------------------------------------

    def hooks_by_recurrence(self, recurrence: str) -> list[str]:
        return self._names(self.registry.filter(lambda e: e.recurrence == recurrence))

    def hooks_by_recurrence_with_logging(self, recurrence: str) -> list[str]:
        return self._names(self.registry.filter(lambda e: e.recurrence == recurrence and e.log))

    def hooks_with_logging(self) -> list[str]:
        return self._names(self.registry.filter(lambda e: e.log))

    def hooks_by_callback(self, callback: Callable[..., Any]) -> list[str]:
        return self._names(
            self.registry.filter(lambda e: e.callback is not None and e.callback == callback)
        )

    def hooks_with_condition(self, condition: Callable[..., Any]) -> list[str]:
        """Hooks whose stored condition is *condition* itself."""
        return self._names(self.registry.filter(lambda e: e.condition is condition))

    def hooks_with_args(self) -> list[str]:
        return self._names(self.registry.filter(lambda e: e.has_args))

    def hooks_without_args(self) -> list[str]:
        return self._names(self.registry.filter(lambda e: not e.has_args))

    def hooks_by_arg(self, index: int, value: Any) -> list[str]:
        return self._names(
            self.registry.filter(lambda e: 0 <= index < len(e.args) and e.args[index] == value)
        )

    def hooks_by_args(self, args: Sequence[Any]) -> list[str]:
        wanted = list(args)
        return self._names(self.registry.filter(lambda e: e.args == wanted))

    async def is_any_hook_matching(self, predicate: Callable[..., Any]) -> bool:
        for event in self.registry.events:
            if await self.conditions.check(event, predicate):
                return True
        return False

    # -- Time ranges -----------------------------------------------------------

    async def _pending_runs(self) -> list[tuple[CronEvent, int]]:
        return [(event, run) for event, run in await self._next_runs() if run is not None]

    async def earliest_next_run(self) -> int | None:
        runs = [run for _, run in await self._pending_runs()]
        return min(runs) if runs else None

    async def latest_next_run(self) -> int | None:
        runs = [run for _, run in await self._pending_runs()]
        return max(runs) if runs else None

    async def hooks_in_range(self, start: int, end: int) -> list[str]:
        """Hooks whose next occurrence lies in ``[start, end]``."""
        return [event.name for event, run in await self._pending_runs() if start <= run <= end]

    async def hooks_before(self, timestamp: int) -> list[str]:
        return [event.name for event, run in await self._pending_runs() if run < timestamp]

    async def hooks_after(self, timestamp: int) -> list[str]:
        return [event.name for event, run in await self._pending_runs() if run > timestamp]

    # -- Aggregates ------------------------------------------------------------

    def count_hooks(self) -> int:
        return self.registry.count()

    async def count_scheduled_hooks(self) -> int:
        return len(await self.scheduled_hooks())

    async def all_scheduled(self) -> bool:
        for event in self.registry.events:
            if await self._next(event.hook) is None:
                return False
        return True

    async def any_scheduled(self) -> bool:
        for event in self.registry.events:
            if await self._next(event.hook) is not None:
                return True
        return False

    async def are_hooks_scheduled(self, hooks: Sequence[str]) -> bool:
        for hook in hooks:
            if not await self.is_scheduled(hook):
                return False
        return True

    # -- Logging ---------------------------------------------------------------

    async def log_all_events(self) -> None:
        for event, next_run in await self._next_runs():
            logger.info(
                "Cron '%s': recurrence='%s', next run=%s",
                event.hook,
                event.recurrence,
                next_run if next_run is not None else "not scheduled",
            )

    async def log_scheduled_hooks(self) -> None:
        for event, next_run in await self._pending_runs():
            logger.info("Scheduled cron '%s': next run=%d", event.hook, next_run)

    def log_hook_message(self, hook: str, message: str) -> None:
        logger.info("Cron '%s': %s", self.registry.namespaced(hook), message)
