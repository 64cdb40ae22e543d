"""EventRegistry — the declared set of recurring tasks."""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from cronkit.config import settings
from cronkit.scheduler.models import CronEvent

if TYPE_CHECKING:
    from cronkit.scheduler.engine import TriggerEngine

logger = logging.getLogger(__name__)

EventPredicate = Callable[[CronEvent], bool]


class EventRegistry:
    """Ordered registry of :class:`CronEvent` definitions.

    Hooks are namespaced with ``prefix + separator``. Registering the same
    hook twice keeps both definitions; lookups return the first match.
    Callbacks are bound to the engine's dispatch at registration time,
    whether or not the hook is ever scheduled.

    Args:
        engine: Trigger engine that receives dispatch bindings.
        prefix: Namespace prefix (default from settings).
        separator: Joiner between prefix and short name (default from settings).
    """

    def __init__(
        self,
        engine: TriggerEngine,
        prefix: str | None = None,
        separator: str | None = None,
    ) -> None:
        self.engine = engine
        self.prefix = settings.cron_prefix if prefix is None else prefix
        self.separator = settings.cron_separator if separator is None else separator
        self._events: list[CronEvent] = []

    # -- Naming ----------------------------------------------------------------

    def namespaced(self, hook: str) -> str:
        return f"{self.prefix}{self.separator}{hook}"

    def short_name(self, hook: str) -> str:
        """Strip a leading namespace from *hook*, if present."""
        head = f"{self.prefix}{self.separator}"
        return hook[len(head) :] if hook.startswith(head) else hook

    # -- Registration ----------------------------------------------------------

    def register(
        self,
        hook: str,
        recurrence: str = "hourly",
        callback: Callable[..., Any] | None = None,
        timestamp: int | None = None,
        log: bool = False,
        condition: Callable[..., Any] | None = None,
        args: Sequence[Any] | None = None,
    ) -> CronEvent:
        """Append a definition and bind its callback, if any."""
        event = CronEvent(
            hook=self.namespaced(hook),
            name=hook,
            recurrence=recurrence,
            callback=callback,
            args=list(args or []),
            timestamp=timestamp,
            log=log,
            condition=condition,
        )
        self._events.append(event)
        if callback is not None:
            self._bind(event)
        if log:
            logger.info("Cron '%s' registered (%s)", event.hook, recurrence)
        return event

    def register_with_args(
        self,
        hook: str,
        recurrence: str = "hourly",
        callback: Callable[..., Any] | None = None,
        args: Sequence[Any] = (),
        timestamp: int | None = None,
        log: bool = False,
        condition: Callable[..., Any] | None = None,
    ) -> CronEvent:
        """Register a definition whose callback receives *args* when it fires."""
        return self.register(
            hook,
            recurrence,
            callback,
            timestamp=timestamp,
            log=log,
            condition=condition,
            args=args,
        )

    def _bind(self, event: CronEvent) -> None:
        if event.callback is None:
            return
        self.engine.bind_dispatch(event.hook, functools.partial(event.callback, *event.args))

    # -- Lookup ----------------------------------------------------------------

    def find(self, hook: str) -> CronEvent | None:
        """Return the first definition registered under *hook*, or None."""
        namespaced = self.namespaced(hook)
        for event in self._events:
            if event.hook == namespaced:
                return event
        return None

    def has_hook(self, hook: str) -> bool:
        return self.find(hook) is not None

    @property
    def events(self) -> list[CronEvent]:
        """Snapshot of the registered definitions in registration order."""
        return list(self._events)

    def count(self) -> int:
        return len(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[CronEvent]:
        return iter(list(self._events))

    def filter(self, predicate: EventPredicate) -> list[CronEvent]:
        return [event for event in self._events if predicate(event)]

    def dump(self) -> list[dict[str, Any]]:
        return [event.describe() for event in self._events]

    # -- Mutation --------------------------------------------------------------

    def update_callback(self, hook: str, callback: Callable[..., Any], log: bool = False) -> bool:
        """Replace the callback of the first match and rebind dispatch."""
        event = self.find(hook)
        if event is None:
            return False
        event.callback = callback
        self._bind(event)
        if log:
            logger.info("Callback for cron '%s' updated", event.hook)
        return True

    def update_args(self, hook: str, args: Sequence[Any], log: bool = False) -> bool:
        event = self.find(hook)
        if event is None:
            return False
        event.args = list(args)
        self._bind(event)
        if log:
            logger.info("Arguments for cron '%s' updated", event.hook)
        return True

    def update_batch_args(self, hooks_args: Mapping[str, Sequence[Any]], log: bool = False) -> None:
        for hook, args in hooks_args.items():
            self.update_args(hook, args, log)

    def clear_args(self, hook: str, log: bool = False) -> bool:
        event = self.find(hook)
        if event is None:
            return False
        event.args = []
        self._bind(event)
        if log:
            logger.info("Arguments cleared for cron '%s'", event.hook)
        return True

    def clear_all_args(self, log: bool = False) -> None:
        for event in self._events:
            event.args = []
            self._bind(event)
            if log:
                logger.info("Arguments cleared for cron '%s'", event.hook)

    def set_recurrence(self, hook: str, recurrence: str) -> CronEvent | None:
        event = self.find(hook)
        if event is not None:
            event.recurrence = recurrence
        return event

    def set_timestamp(self, hook: str, timestamp: int | None) -> CronEvent | None:
        event = self.find(hook)
        if event is not None:
            event.timestamp = timestamp
        return event

    def enable_logging(self, hook: str) -> None:
        event = self.find(hook)
        if event is not None:
            event.log = True

    def disable_logging(self, hook: str) -> None:
        event = self.find(hook)
        if event is not None:
            event.log = False

    def enable_logging_batch(self, hooks: Sequence[str]) -> None:
        for hook in hooks:
            self.enable_logging(hook)

    def disable_logging_batch(self, hooks: Sequence[str]) -> None:
        for hook in hooks:
            self.disable_logging(hook)

    # -- Removal (registry only; pending occurrences are untouched) -----------

    def clear(self, hook: str, log: bool = False) -> int:
        """Drop every definition registered under *hook*. Returns how many."""
        namespaced = self.namespaced(hook)
        before = len(self._events)
        self._events = [event for event in self._events if event.hook != namespaced]
        removed = before - len(self._events)
        if log:
            logger.info("Hook '%s' removed from registry (%d definition(s))", namespaced, removed)
        return removed

    def remove_if(self, predicate: EventPredicate) -> list[CronEvent]:
        """Drop every definition matching *predicate* and return them."""
        kept: list[CronEvent] = []
        removed: list[CronEvent] = []
        for event in self._events:
            (removed if predicate(event) else kept).append(event)
        self._events = kept
        return removed

    def clear_all_events(self) -> None:
        self._events = []

    # -- Immediate execution ---------------------------------------------------

    async def run_now(self, hook: str) -> bool:
        """Run the first matching definition's callback with its args."""
        for event in self.filter(lambda e: e.hook == self.namespaced(hook)):
            if event.callback is not None:
                await _invoke(event)
                return True
        return False

    async def run_if(self, predicate: EventPredicate) -> int:
        """Run every definition with a callback that matches *predicate*."""
        ran = 0
        for event in self.filter(predicate):
            if event.callback is not None:
                await _invoke(event)
                ran += 1
        return ran


async def _invoke(event: CronEvent) -> None:
    result = event.callback(*event.args)
    if inspect.isawaitable(result):
        await result
