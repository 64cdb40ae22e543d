"""IntervalCatalog — the recurrence vocabulary of a trigger engine."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from cronkit.scheduler.errors import UnknownRecurrenceError
from cronkit.scheduler.models import Recurrence

logger = logging.getLogger(__name__)

# Transform signature: (schedules) -> schedules
CatalogTransform = Callable[[dict[str, Recurrence]], dict[str, Recurrence]]

BUILTIN_RECURRENCES: tuple[Recurrence, ...] = (
    Recurrence("hourly", 3600, "Once Hourly"),
    Recurrence("twicedaily", 43200, "Twice Daily"),
    Recurrence("daily", 86400, "Once Daily"),
    Recurrence("weekly", 604800, "Once Weekly"),
)


class IntervalCatalog:
    """Mapping of recurrence name to interval, materialized lazily.

    Extensions are registered as transforms and applied in registration order
    the next time the mapping is read. Extending never overwrites an existing
    name, so the first registration of a name wins.

    Usage::

        catalog = IntervalCatalog()
        catalog.extend("every_five_minutes", 300, "Every 5 Minutes")
        catalog.interval("every_five_minutes")  # 300
    """

    def __init__(self, base: Mapping[str, Recurrence] | None = None) -> None:
        if base is None:
            base = {r.name: r for r in BUILTIN_RECURRENCES}
        self._base = dict(base)
        self._transforms: list[CatalogTransform] = []
        self._materialized: dict[str, Recurrence] | None = None

    def add_transform(self, transform: CatalogTransform) -> None:
        """Register a transform applied at materialization time."""
        self._transforms.append(transform)
        self._materialized = None

    def extend(self, name: str, interval: int, display: str) -> None:
        """Add a recurrence unless *name* is already known."""
        entry = Recurrence(name, interval, display)

        def _add(schedules: dict[str, Recurrence]) -> dict[str, Recurrence]:
            if name not in schedules:
                schedules[name] = entry
            else:
                logger.debug("Recurrence '%s' already defined; keeping first", name)
            return schedules

        self.add_transform(_add)

    def extend_many(self, intervals: Mapping[str, Mapping[str, object]]) -> None:
        """Add several recurrences from ``{name: {"interval": s, "display": label}}``."""
        entries = [
            Recurrence(name, int(data["interval"]), str(data["display"]))
            for name, data in intervals.items()
        ]

        def _add_all(schedules: dict[str, Recurrence]) -> dict[str, Recurrence]:
            for entry in entries:
                schedules.setdefault(entry.name, entry)
            return schedules

        self.add_transform(_add_all)

    def schedules(self) -> dict[str, Recurrence]:
        """Return the materialized name → Recurrence mapping."""
        if self._materialized is None:
            schedules = dict(self._base)
            for transform in self._transforms:
                schedules = transform(schedules)
            self._materialized = schedules
        return dict(self._materialized)

    def get(self, name: str) -> Recurrence | None:
        return self.schedules().get(name)

    def interval(self, name: str) -> int:
        """Return the period of *name* in seconds."""
        entry = self.get(name)
        if entry is None:
            raise UnknownRecurrenceError(name)
        return entry.interval

    def names(self) -> list[str]:
        return list(self.schedules())

    def __contains__(self, name: object) -> bool:
        return name in self.schedules()
