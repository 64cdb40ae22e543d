"""ConditionEvaluator — admission predicates for cron events."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from cronkit.scheduler.errors import ConditionError

if TYPE_CHECKING:
    from collections.abc import Callable

    from cronkit.scheduler.models import CronEvent


def _accepts_event(predicate: Callable[..., Any]) -> bool:
    """True when *predicate* can take the event as a positional argument."""
    try:
        signature = inspect.signature(predicate)
    except (TypeError, ValueError):
        return False
    positional = (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
        inspect.Parameter.VAR_POSITIONAL,
    )
    return any(param.kind in positional for param in signature.parameters.values())


class ConditionEvaluator:
    """Invokes admission predicates.

    Predicates take either no arguments or the event being considered, and
    return a bool or an awaitable resolving to one. Nothing is cached: every
    call re-runs the predicate. A predicate that raises is reported as
    :class:`ConditionError` (original exception chained), which aborts the
    batch operation that asked for the evaluation.
    """

    async def evaluate(self, event: CronEvent) -> bool:
        """Evaluate the event's own condition. Events without one are admitted."""
        if event.condition is None:
            return True
        return await self.check(event, event.condition)

    async def check(self, event: CronEvent, predicate: Callable[..., Any]) -> bool:
        """Evaluate an arbitrary *predicate* against *event*."""
        if _accepts_event(predicate):
            return await self._call(event.hook, predicate, event)
        return await self._call(event.hook, predicate)

    async def check_batch(self, label: str, predicate: Callable[[], Any]) -> bool:
        """Evaluate a zero-argument predicate guarding a whole batch."""
        return await self._call(label, predicate)

    async def _call(self, label: str, predicate: Callable[..., Any], *args: Any) -> bool:
        try:
            result = predicate(*args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            raise ConditionError(label) from exc
        return bool(result)
