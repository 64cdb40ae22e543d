"""CronEvent and Recurrence data models."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Recurrence:
    """A named interval known to a trigger engine.

    Attributes:
        name: Recurrence name, e.g. ``"hourly"``.
        interval: Period length in seconds.
        display: Human-readable label.
    """

    name: str
    interval: int
    display: str

    def __post_init__(self) -> None:
        if self.interval <= 0:
            msg = f"Recurrence interval must be positive: {self.name}={self.interval}"
            raise ValueError(msg)


@dataclass
class CronEvent:
    """A declared recurring task.

    Attributes:
        hook: Namespaced key (prefix + separator + short name). Not unique.
        name: Short name as passed by the caller.
        recurrence: Recurrence name resolved through the engine's catalog.
        callback: Callable bound to the engine's dispatch for ``hook``.
        args: Positional arguments passed to ``callback`` when it fires.
        timestamp: First-run epoch seconds (``None`` → now at scheduling time).
        log: Whether scheduling actions on this event are logged.
        condition: Optional predicate gating admission. Takes no arguments or
            the event itself, and returns a bool (or an awaitable of one).
    """

    hook: str
    name: str
    recurrence: str = "hourly"
    callback: Callable[..., Any] | None = None
    args: list[Any] = field(default_factory=list)
    timestamp: int | None = None
    log: bool = False
    condition: Callable[..., Any] | None = None

    # -- Convenience properties ------------------------------------------------

    @property
    def has_args(self) -> bool:
        return bool(self.args)

    @property
    def has_condition(self) -> bool:
        return self.condition is not None

    @property
    def has_callback(self) -> bool:
        return self.callback is not None

    def first_run(self, now: int) -> int:
        """Return the stored first-run epoch, or *now* when none is set."""
        return self.timestamp if self.timestamp is not None else now

    # -- Serialization ---------------------------------------------------------

    def describe(self) -> dict[str, Any]:
        """Snapshot of the event as plain data (callables reduced to flags)."""
        return {
            "hook": self.hook,
            "name": self.name,
            "recurrence": self.recurrence,
            "args": list(self.args),
            "timestamp": self.timestamp,
            "log": self.log,
            "has_callback": self.has_callback,
            "has_condition": self.has_condition,
        }


@dataclass
class OccurrenceSeries:
    """One recurring series held by a trigger engine.

    Attributes:
        id: Series identifier (UUID hex).
        hook: Namespaced key the series fires.
        recurrence: Recurrence name the series was created with.
        interval: Period in seconds resolved at creation time.
        next_run: Epoch seconds of the next pending occurrence.
    """

    id: str
    hook: str
    recurrence: str
    interval: int
    next_run: int


def make_series_id() -> str:
    """Generate a new occurrence-series ID."""
    return uuid.uuid4().hex
