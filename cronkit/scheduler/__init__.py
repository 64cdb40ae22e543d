"""Recurring task system — registry, trigger engines, reconciliation and queries."""

from cronkit.scheduler.aps_engine import APSchedulerTriggerEngine
from cronkit.scheduler.catalog import IntervalCatalog
from cronkit.scheduler.conditions import ConditionEvaluator
from cronkit.scheduler.engine import MemoryTriggerEngine, TriggerEngine
from cronkit.scheduler.errors import (
    ConditionError,
    CronError,
    DrainLimitError,
    EngineError,
    UnknownRecurrenceError,
)
from cronkit.scheduler.introspection import CronInspector
from cronkit.scheduler.models import CronEvent, OccurrenceSeries, Recurrence
from cronkit.scheduler.registry import EventRegistry
from cronkit.scheduler.scheduler import Scheduler
from cronkit.scheduler.store import SQLiteTriggerEngine

__all__ = [
    "APSchedulerTriggerEngine",
    "ConditionError",
    "ConditionEvaluator",
    "CronError",
    "CronEvent",
    "CronInspector",
    "DrainLimitError",
    "EngineError",
    "EventRegistry",
    "IntervalCatalog",
    "MemoryTriggerEngine",
    "OccurrenceSeries",
    "Recurrence",
    "SQLiteTriggerEngine",
    "Scheduler",
    "TriggerEngine",
    "UnknownRecurrenceError",
]
