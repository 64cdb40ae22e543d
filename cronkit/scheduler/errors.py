"""Exceptions raised by the cron registry, scheduler and trigger engines."""

from __future__ import annotations


class CronError(Exception):
    """Base class for cronkit errors."""


class EngineError(CronError):
    """A trigger engine call failed."""


class UnknownRecurrenceError(EngineError):
    """The recurrence name is not in the engine's catalog."""

    def __init__(self, recurrence: str) -> None:
        super().__init__(f"Unknown recurrence: {recurrence}")
        self.recurrence = recurrence


class DrainLimitError(EngineError):
    """Draining a hook did not finish within the iteration cap."""

    def __init__(self, hook: str, limit: int) -> None:
        super().__init__(f"Drain of '{hook}' exceeded {limit} iterations")
        self.hook = hook
        self.limit = limit


class ConditionError(CronError):
    """A condition predicate raised while deciding admission.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, hook: str) -> None:
        super().__init__(f"Condition for cron '{hook}' raised")
        self.hook = hook
