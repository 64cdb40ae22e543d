"""SQLiteTriggerEngine — pending occurrence series persisted with aiosqlite."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from cronkit.config import settings
from cronkit.scheduler.engine import BaseTriggerEngine, next_slot
from cronkit.scheduler.errors import EngineError
from cronkit.scheduler.models import OccurrenceSeries, make_series_id

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from cronkit.scheduler.catalog import IntervalCatalog

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS cron_occurrences (
    id TEXT PRIMARY KEY,
    hook TEXT NOT NULL,
    recurrence TEXT NOT NULL,
    interval_seconds INTEGER NOT NULL,
    next_run INTEGER NOT NULL,
    created_at TEXT NOT NULL
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_cron_occurrences_hook
    ON cron_occurrences (hook, next_run)
"""

_COLUMNS = "id, hook, recurrence, interval_seconds, next_run"


def _series_from_row(row: tuple) -> OccurrenceSeries:
    return OccurrenceSeries(
        id=row[0],
        hook=row[1],
        recurrence=row[2],
        interval=int(row[3]),
        next_run=int(row[4]),
    )


class SQLiteTriggerEngine(BaseTriggerEngine):
    """Trigger engine whose series survive process restarts.

    Dispatch bindings stay in memory and must be re-registered on startup.
    Call :meth:`run_due` periodically to fire due occurrences. Pass an
    explicit *db_path* for test isolation (e.g. ``tmp_path / "cron.db"``).
    """

    def __init__(
        self,
        db_path: Path | None = None,
        catalog: IntervalCatalog | None = None,
        duplicate_window: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        super().__init__(catalog=catalog, duplicate_window=duplicate_window, clock=clock)
        self._db_path = db_path or settings.database_path
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(str(self._db_path))
            if not self._initialised:
                await db.execute(_CREATE_TABLE)
                await db.execute(_CREATE_INDEX)
                await db.commit()
                self._initialised = True
        except (aiosqlite.Error, OSError) as exc:
            msg = f"Cannot open cron database {self._db_path}"
            raise EngineError(msg) from exc
        return db

    async def _pending_for(self, db: aiosqlite.Connection, key: str) -> list[int]:
        cursor = await db.execute(
            "SELECT next_run FROM cron_occurrences WHERE hook = ? ORDER BY next_run", (key,)
        )
        rows = await cursor.fetchall()
        return [int(row[0]) for row in rows]

    # -- TriggerEngine ---------------------------------------------------------

    async def schedule_occurrence(self, key: str, recurrence: str, first_run: int) -> bool:
        interval = self.catalog.interval(recurrence)
        db = await self._connect()
        try:
            if self._is_duplicate(first_run, await self._pending_for(db, key)):
                logger.debug("Skipping duplicate series for %s at %d", key, first_run)
                return False
            await db.execute(
                f"INSERT INTO cron_occurrences ({_COLUMNS}, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    make_series_id(),
                    key,
                    recurrence,
                    interval,
                    int(first_run),
                    datetime.now(UTC).isoformat(),
                ),
            )
            await db.commit()
            return True
        except aiosqlite.Error as exc:
            msg = f"Cannot schedule '{key}'"
            raise EngineError(msg) from exc
        finally:
            await db.close()

    async def next_occurrence(self, key: str) -> int | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                "SELECT MIN(next_run) FROM cron_occurrences WHERE hook = ?", (key,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            msg = f"Cannot query '{key}'"
            raise EngineError(msg) from exc
        finally:
            await db.close()
        return int(row[0]) if row and row[0] is not None else None

    async def unschedule_occurrence(self, epoch: int, key: str) -> bool:
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                DELETE FROM cron_occurrences WHERE id = (
                    SELECT id FROM cron_occurrences
                    WHERE hook = ? AND next_run = ?
                    ORDER BY created_at LIMIT 1
                )
                """,
                (key, int(epoch)),
            )
            await db.commit()
            return cursor.rowcount > 0
        except aiosqlite.Error as exc:
            msg = f"Cannot unschedule '{key}' at {epoch}"
            raise EngineError(msg) from exc
        finally:
            await db.close()

    async def list_series(self, key: str | None = None) -> list[OccurrenceSeries]:
        db = await self._connect()
        try:
            if key is None:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM cron_occurrences ORDER BY next_run"
                )
            else:
                cursor = await db.execute(
                    f"SELECT {_COLUMNS} FROM cron_occurrences WHERE hook = ? ORDER BY next_run",
                    (key,),
                )
            rows = await cursor.fetchall()
            return [_series_from_row(row) for row in rows]
        except aiosqlite.Error as exc:
            msg = "Cannot list cron series"
            raise EngineError(msg) from exc
        finally:
            await db.close()

    async def run_due(self, now: int | None = None) -> int:
        """Fire every occurrence due at *now* and advance its series.

        Each series is advanced before its handler runs, so a crash inside a
        handler never replays the same occurrence.
        """
        now = self.now() if now is None else now
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM cron_occurrences WHERE next_run <= ? ORDER BY next_run",
                (now,),
            )
            due = [_series_from_row(row) for row in await cursor.fetchall()]
            for series in due:
                await db.execute(
                    "UPDATE cron_occurrences SET next_run = ? WHERE id = ?",
                    (next_slot(series.next_run, series.interval, now), series.id),
                )
            await db.commit()
        except aiosqlite.Error as exc:
            msg = "Cannot advance due cron series"
            raise EngineError(msg) from exc
        finally:
            await db.close()

        for series in due:
            await self.dispatch(series.hook)
        if due:
            logger.info("Fired %d due occurrence(s)", len(due))
        return len(due)
