"""
Recurring trigger scheduling for formsweep.

Pending fire times live in the scheduled_events table so they survive
process restarts. RetentionScheduler polls that table with APScheduler and
fires the callbacks registered for due hooks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

import duckdb
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from formsweep.data.db import DatabaseManager, get_db
from formsweep.data.schema import SCHEDULED_EVENTS_TABLE
from formsweep.exceptions import SchedulerError
from formsweep.utils.clock import local_now, resolve_timezone, to_local_naive

DAILY = timedelta(hours=24)

POLL_JOB_ID = "formsweep_trigger_poll"


@dataclass
class ScheduledEvent:
    """A pending recurring trigger."""

    hook: str
    next_fire_at: datetime
    interval: timedelta

    def following_fire(self, now: datetime) -> datetime:
        """First fire time on this event's cadence strictly after `now`."""
        steps = max(0, (now - self.next_fire_at) // self.interval) + 1
        return self.next_fire_at + steps * self.interval


class TriggerStore:
    """
    Persistent registry of recurring named triggers.

    At most one trigger is pending per hook. Times are naive wall-clock
    values in the configured zone.
    """

    def __init__(self, db: DatabaseManager | None = None, timezone: str = "UTC"):
        self._db = db or get_db()
        self._timezone = timezone

    def _event(self, row: tuple) -> ScheduledEvent:
        return ScheduledEvent(hook=row[0], next_fire_at=row[1], interval=timedelta(seconds=row[2]))

    def get_event(self, hook: str) -> ScheduledEvent | None:
        try:
            row = self._db.fetchone(
                f"SELECT hook, next_fire_at, interval_seconds FROM {SCHEDULED_EVENTS_TABLE} WHERE hook = ?",
                (hook,),
            )
        except duckdb.Error as e:
            logger.error(f"Failed to query trigger {hook}: {e}")
            raise SchedulerError(f"Failed to query trigger {hook}: {e}") from e
        return self._event(row) if row else None

    def next_scheduled(self, hook: str) -> datetime | None:
        """Pending fire time of a hook, or None if it is not scheduled."""
        event = self.get_event(hook)
        return event.next_fire_at if event else None

    def is_scheduled(self, hook: str) -> bool:
        return self.get_event(hook) is not None

    def schedule_event(self, first_fire_at: datetime, interval: timedelta, hook: str) -> bool:
        """
        Register a recurring trigger.

        Args:
            first_fire_at: When the trigger first fires
            interval: Time between fires
            hook: Name of the hook to fire

        Returns:
            True if registered, False if the hook already had a pending trigger
        """
        if interval <= timedelta(0):
            raise ValueError(f"Trigger interval must be positive, got {interval}")

        first_fire_at = to_local_naive(first_fire_at, self._timezone)
        try:
            with self._db.transaction() as conn:
                existing = conn.execute(
                    f"SELECT next_fire_at FROM {SCHEDULED_EVENTS_TABLE} WHERE hook = ?", (hook,)
                ).fetchone()
                if existing is not None:
                    logger.debug(f"Trigger {hook} already pending at {existing[0]}")
                    return False
                conn.execute(
                    f"INSERT INTO {SCHEDULED_EVENTS_TABLE} (hook, next_fire_at, interval_seconds) "
                    f"VALUES (?, ?, ?)",
                    (hook, first_fire_at, int(interval.total_seconds())),
                )
        except duckdb.Error as e:
            logger.error(f"Failed to schedule trigger {hook}: {e}")
            raise SchedulerError(f"Failed to schedule trigger {hook}: {e}") from e

        logger.info(f"Scheduled trigger {hook} at {first_fire_at}, every {interval}")
        return True

    def unschedule_event(self, hook: str) -> bool:
        """
        Cancel a hook's pending trigger.

        Returns:
            True if a trigger was removed, False if none was pending
        """
        try:
            row = self._db.fetchone(f"DELETE FROM {SCHEDULED_EVENTS_TABLE} WHERE hook = ?", (hook,))
        except duckdb.Error as e:
            logger.error(f"Failed to unschedule trigger {hook}: {e}")
            raise SchedulerError(f"Failed to unschedule trigger {hook}: {e}") from e

        removed = bool(row and row[0])
        if removed:
            logger.info(f"Unscheduled trigger {hook}")
        return removed

    def due_events(self, now: datetime) -> list[ScheduledEvent]:
        """Triggers whose fire time is at or before `now`."""
        now = to_local_naive(now, self._timezone)
        try:
            rows = self._db.fetchall(
                f"SELECT hook, next_fire_at, interval_seconds FROM {SCHEDULED_EVENTS_TABLE} "
                f"WHERE next_fire_at <= ? ORDER BY next_fire_at",
                (now,),
            )
        except duckdb.Error as e:
            logger.error(f"Failed to query due triggers: {e}")
            raise SchedulerError(f"Failed to query due triggers: {e}") from e
        return [self._event(row) for row in rows]

    def reschedule_event(self, hook: str, now: datetime) -> datetime | None:
        """
        Advance a trigger to its next fire time after `now`.

        Missed fires are skipped rather than replayed.

        Returns:
            New fire time, or None if the hook is not scheduled
        """
        now = to_local_naive(now, self._timezone)
        try:
            with self._db.transaction() as conn:
                row = conn.execute(
                    f"SELECT hook, next_fire_at, interval_seconds FROM {SCHEDULED_EVENTS_TABLE} WHERE hook = ?",
                    (hook,),
                ).fetchone()
                if row is None:
                    return None
                next_fire_at = self._event(row).following_fire(now)
                conn.execute(
                    f"UPDATE {SCHEDULED_EVENTS_TABLE} SET next_fire_at = ? WHERE hook = ?",
                    (next_fire_at, hook),
                )
        except duckdb.Error as e:
            logger.error(f"Failed to reschedule trigger {hook}: {e}")
            raise SchedulerError(f"Failed to reschedule trigger {hook}: {e}") from e

        logger.debug(f"Rescheduled trigger {hook} to {next_fire_at}")
        return next_fire_at

    def list_events(self) -> list[ScheduledEvent]:
        try:
            rows = self._db.fetchall(
                f"SELECT hook, next_fire_at, interval_seconds FROM {SCHEDULED_EVENTS_TABLE} ORDER BY next_fire_at"
            )
        except duckdb.Error as e:
            raise SchedulerError(f"Failed to list triggers: {e}") from e
        return [self._event(row) for row in rows]


class RetentionScheduler:
    """
    Background scheduler firing persisted triggers.

    A single APScheduler interval job polls the trigger store. Each due hook
    with a registered callback is advanced to its next fire time before the
    callback is invoked.
    """

    def __init__(
        self,
        trigger_store: TriggerStore,
        poll_interval_seconds: int = 60,
        timezone: str = "UTC",
    ):
        """
        Initialize the scheduler.

        Args:
            trigger_store: Persistent trigger registry
            poll_interval_seconds: How often to check for due triggers (default: 60)
            timezone: Zone the trigger times are expressed in
        """
        self._store = trigger_store
        self.poll_interval_seconds = poll_interval_seconds
        self._timezone = resolve_timezone(timezone)
        self.scheduler = BackgroundScheduler(timezone=self._timezone)
        self._callbacks: dict[str, Callable[[], Any]] = {}
        logger.info("Retention scheduler initialized")

    @property
    def trigger_store(self) -> TriggerStore:
        return self._store

    def register_hook(self, hook: str, callback: Callable[[], Any]) -> None:
        """Register the callback fired when `hook`'s trigger is due."""
        self._callbacks[hook] = callback
        logger.debug(f"Registered hook callback: {hook}")

    def unregister_hook(self, hook: str) -> bool:
        return self._callbacks.pop(hook, None) is not None

    def run_due(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Fire every due trigger that has a registered callback.

        Args:
            now: Reference time (defaults to the current time in the scheduler's zone)

        Returns:
            Mapping of fired hook name to its callback's return value
        """
        now = to_local_naive(now, self._timezone) if now is not None else local_now(self._timezone)
        results: dict[str, Any] = {}

        for event in self._store.due_events(now):
            callback = self._callbacks.get(event.hook)
            if callback is None:
                logger.debug(f"No callback registered for due trigger {event.hook}")
                continue

            next_fire_at = self._store.reschedule_event(event.hook, now)
            logger.info(
                f"Firing trigger {event.hook} (due {event.next_fire_at}, next {next_fire_at})"
            )
            try:
                results[event.hook] = callback()
            except Exception as e:
                logger.error(f"Trigger {event.hook} failed: {e}")
                raise

        return results

    def start(self) -> None:
        """Start polling for due triggers in the background."""
        if self.scheduler.running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler.add_job(
            self.run_due,
            IntervalTrigger(seconds=self.poll_interval_seconds, timezone=self._timezone),
            id=POLL_JOB_ID,
            name="Trigger Poller",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            # Poll once at startup
            next_run_time=datetime.now(self._timezone),
        )
        self.scheduler.start()
        logger.info(f"Scheduler started (poll interval: {self.poll_interval_seconds}s)")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: Wait for a running poll to complete before shutdown
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler shutdown complete")
        else:
            logger.warning("Scheduler is not running")

    @property
    def running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler.running

    def __repr__(self) -> str:
        status = "running" if self.running else "stopped"
        return f"<RetentionScheduler status={status} hooks={len(self._callbacks)}>"
