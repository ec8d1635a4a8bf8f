"""
Lifecycle hooks of the submissions retention job.

SubmissionsCleaner is the integration surface a host runtime dispatches to:

    cleaner = SubmissionsCleaner(get_db(), get_config())
    hooks = cleaner.hooks()

    hooks[HOOK_ACTIVATE]()                      # on enable
    hooks[HOOK_SAVE_SETTING](request.form)      # settings page submitted
    hooks[HOOK_DAILY_CLEANUP]()                 # fired by the scheduler
    hooks[HOOK_DEACTIVATE]()                    # on disable
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping

from loguru import logger

from formsweep.agents.scheduler import DAILY, RetentionScheduler, TriggerStore
from formsweep.data.db import DatabaseManager, get_db
from formsweep.data.options import RETENTION_OPTION, OptionStore
from formsweep.data.retention.purge import PurgeResult, SubmissionPurger
from formsweep.data.schema import SubmissionTables
from formsweep.utils.clock import local_now
from formsweep.utils.config import Config, get_config

HOOK_ACTIVATE = "activate"
HOOK_DEACTIVATE = "deactivate"
HOOK_DAILY_CLEANUP = "formsweep_daily_cleanup"
HOOK_SAVE_SETTING = "save_setting"


class SubmissionsCleaner:
    """
    Deletes form submissions older than the configured number of days.

    Wires the option store, the purge engine and the daily trigger together
    and exposes them as named hooks.
    """

    def __init__(
        self,
        db: DatabaseManager | None = None,
        config: Config | None = None,
        tables: SubmissionTables | None = None,
    ):
        """
        Initialize the cleaner.

        Args:
            db: Database manager (defaults to get_db())
            config: Configuration (defaults to get_config())
            tables: Submission table names (defaults to the configured prefix)
        """
        self.config = config or get_config()
        self._db = db or get_db()
        retention = self.config.retention
        self.tables = tables or SubmissionTables.from_prefix(retention.table_prefix)

        self.options = OptionStore(self._db)
        self.triggers = TriggerStore(self._db, timezone=retention.timezone)
        self.purger = SubmissionPurger(
            self._db,
            self.tables,
            timeout_seconds=retention.purge_timeout_seconds,
            timezone=retention.timezone,
        )
        self.scheduler = RetentionScheduler(
            self.triggers,
            poll_interval_seconds=retention.poll_interval_seconds,
            timezone=retention.timezone,
        )
        self.scheduler.register_hook(HOOK_DAILY_CLEANUP, self.delete_old_submissions)

    def _now(self) -> datetime:
        return local_now(self.config.retention.timezone)

    def activate(self, now: datetime | None = None) -> datetime:
        """
        Arm the daily cleanup trigger.

        The first fire is a day after activation, never immediate. An
        already pending trigger is kept as is.

        Returns:
            Fire time of the pending trigger
        """
        pending = self.triggers.next_scheduled(HOOK_DAILY_CLEANUP)
        if pending is not None:
            logger.info(f"Daily cleanup already scheduled at {pending}")
            return pending

        first_fire_at = (now or self._now()) + DAILY
        self.triggers.schedule_event(first_fire_at, DAILY, HOOK_DAILY_CLEANUP)
        return first_fire_at

    def deactivate(self) -> bool:
        """
        Cancel the daily cleanup trigger. No-op when none is pending.

        Returns:
            True if a pending trigger was cancelled
        """
        removed = self.triggers.unschedule_event(HOOK_DAILY_CLEANUP)
        if not removed:
            logger.debug("Daily cleanup was not scheduled")
        return removed

    def is_active(self) -> bool:
        return self.triggers.is_scheduled(HOOK_DAILY_CLEANUP)

    def delete_old_submissions(self, now: datetime | None = None) -> PurgeResult:
        """Purge submissions older than the stored retention threshold."""
        retention_days = self.options.get_retention_days()
        result = self.purger.purge_expired(now or self._now(), retention_days)
        if not result.success:
            logger.error(f"Daily cleanup failed, nothing was deleted: {result.error}")
        return result

    def save_setting(self, form: Mapping[str, Any]) -> int | None:
        """
        Persist the retention threshold from submitted settings.

        Args:
            form: Submitted form fields

        Returns:
            Stored number of days, or None if the field was not submitted
        """
        if RETENTION_OPTION not in form:
            return None
        return self.options.set_retention_days(form[RETENTION_OPTION])

    def hooks(self) -> dict[str, Callable[..., Any]]:
        """Hook names mapped to their entry points, for host dispatch."""
        return {
            HOOK_ACTIVATE: self.activate,
            HOOK_DEACTIVATE: self.deactivate,
            HOOK_DAILY_CLEANUP: self.delete_old_submissions,
            HOOK_SAVE_SETTING: self.save_setting,
        }
