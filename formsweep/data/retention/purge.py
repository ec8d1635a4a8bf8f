"""
Age-based purge of form submissions.

Deletes submissions older than the retention threshold together with their
action-log and field-value rows. All three deletes run inside one DuckDB
transaction and are keyed off a single snapshot of eligible submission ids,
so a run either removes a submission and all its children or nothing.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import duckdb
from loguru import logger

from formsweep.data.db import DatabaseManager, get_db
from formsweep.data.schema import SubmissionTables
from formsweep.exceptions import PurgeError, PurgeTimeoutError
from formsweep.utils.clock import to_local_naive

# Children before parent
PASS_ORDER = ("actions_log", "values", "submissions")

SNAPSHOT_TABLE = "purge_snapshot"


class PurgeStatus(Enum):
    """Outcome of a purge run."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"
    FAILED = "failed"


@dataclass
class PurgeResult:
    """
    Result of a purge run.

    Attributes:
        status: Outcome of the run
        retention_days: Threshold the run was invoked with
        cutoff: Rows created strictly before this were eligible
        deleted: Rows deleted per table (counted, in dry-run mode)
        rolled_back: Rows a failed run had deleted before it was rolled back
        failed_pass: Step that failed ("snapshot", a table pass, "cleanup" or "commit")
        error: Error message of a failed run
        timed_out: Whether the failure was the time bound being hit
        duration_seconds: Time taken
    """

    status: PurgeStatus
    retention_days: int | None
    cutoff: datetime | None = None
    deleted: dict[str, int] = field(default_factory=lambda: {name: 0 for name in PASS_ORDER})
    rolled_back: dict[str, int] = field(default_factory=dict)
    failed_pass: str | None = None
    error: str | None = None
    timed_out: bool = False
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status is not PurgeStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status is PurgeStatus.SKIPPED

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    def raise_for_status(self) -> None:
        """Raise PurgeError (or PurgeTimeoutError) if the run failed."""
        if self.success:
            return
        error_cls = PurgeTimeoutError if self.timed_out else PurgeError
        raise error_cls(
            f"Purge failed during {self.failed_pass} pass: {self.error}",
            failed_pass=self.failed_pass,
            rolled_back=self.rolled_back,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "retention_days": self.retention_days,
            "cutoff": self.cutoff.isoformat() if self.cutoff else None,
            "deleted": dict(self.deleted),
            "rolled_back": dict(self.rolled_back),
            "failed_pass": self.failed_pass,
            "error": self.error,
            "timed_out": self.timed_out,
            "duration_seconds": self.duration_seconds,
        }


def compute_cutoff(now: datetime, retention_days: int, tz: str = "UTC") -> datetime:
    """
    Cutoff timestamp for a retention threshold.

    Plain day subtraction on the wall clock of `tz`, the zone the creation
    timestamps are recorded in.

    Raises:
        OverflowError: If the threshold reaches back before datetime.min
    """
    return to_local_naive(now, tz) - timedelta(days=retention_days)


class _Watchdog:
    """Interrupts a connection's running statement once a deadline passes."""

    def __init__(self, conn: duckdb.DuckDBPyConnection, timeout_seconds: float | None):
        self._conn = conn
        self._timeout = timeout_seconds
        self._timer: threading.Timer | None = None
        self.fired = False

    def _interrupt(self) -> None:
        self.fired = True
        logger.warning(f"Purge exceeded {self._timeout}s, interrupting")
        self._conn.interrupt()

    def __enter__(self) -> "_Watchdog":
        if self._timeout:
            self._timer = threading.Timer(self._timeout, self._interrupt)
            self._timer.daemon = True
            self._timer.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._timer is not None:
            self._timer.cancel()


class SubmissionPurger:
    """
    Deletes expired submissions and their child rows.

    Only the three submission tables are touched. A threshold that is unset
    or not positive never deletes anything.
    """

    def __init__(
        self,
        db: DatabaseManager | None = None,
        tables: SubmissionTables | None = None,
        timeout_seconds: float | None = 300.0,
        dry_run: bool = False,
        timezone: str = "UTC",
    ):
        """
        Initialize the purger.

        Args:
            db: Database manager (defaults to get_db())
            tables: Resolved submission table names
            timeout_seconds: Time bound for one run; None or 0 disables it
            dry_run: If True, only count what would be deleted
            timezone: Zone the submission timestamps are recorded in
        """
        self._db = db or get_db()
        self._tables = tables or SubmissionTables()
        self._timeout = timeout_seconds
        self._dry_run = dry_run
        self._timezone = timezone

    @property
    def tables(self) -> SubmissionTables:
        return self._tables

    def purge_expired(self, now: datetime, retention_days: int | None) -> PurgeResult:
        """
        Delete every submission created before `now - retention_days` days.

        Args:
            now: Reference time for the cutoff
            retention_days: Threshold in days; None or <= 0 skips the run

        Returns:
            PurgeResult with per-table counts, or a FAILED result whose
            transaction was rolled back
        """
        if retention_days is None or retention_days <= 0:
            logger.info(f"Retention disabled (retention_days={retention_days}), skipping purge")
            return PurgeResult(status=PurgeStatus.SKIPPED, retention_days=retention_days)

        status = PurgeStatus.DRY_RUN if self._dry_run else PurgeStatus.COMPLETED
        try:
            cutoff = compute_cutoff(now, retention_days, self._timezone)
        except OverflowError:
            logger.info(f"Retention of {retention_days} days predates every timestamp, nothing to purge")
            return PurgeResult(status=status, retention_days=retention_days)

        start_time = time.time()
        counts: dict[str, int] = {}
        current_pass = "snapshot"
        watchdog: _Watchdog | None = None

        logger.info(
            f"Purging submissions created before {cutoff} "
            f"(retention={retention_days} days, dry_run={self._dry_run})"
        )

        try:
            # The watchdog stays armed until the transaction has committed
            with self._db.connection() as conn, _Watchdog(conn, self._timeout) as watchdog:
                with self._db.transaction(conn):
                    eligible = self._snapshot_eligible(conn, cutoff)
                    logger.debug(f"{eligible} submissions eligible for purge")

                    for name in PASS_ORDER:
                        current_pass = name
                        if self._dry_run:
                            counts[name] = self._count_pass(conn, name)
                        else:
                            counts[name] = self._delete_pass(conn, name)

                    current_pass = "cleanup"
                    conn.execute(f"DROP TABLE {SNAPSHOT_TABLE}")
                    current_pass = "commit"
        except duckdb.Error as e:
            timed_out = watchdog is not None and watchdog.fired
            message = f"timed out after {self._timeout}s" if timed_out else str(e)
            logger.error(
                f"Purge failed during {current_pass} pass, rolled back "
                f"{sum(counts.values())} deletions: {message}"
            )
            return PurgeResult(
                status=PurgeStatus.FAILED,
                retention_days=retention_days,
                cutoff=cutoff,
                rolled_back=counts,
                failed_pass=current_pass,
                error=message,
                timed_out=timed_out,
                duration_seconds=time.time() - start_time,
            )

        result = PurgeResult(
            status=status,
            retention_days=retention_days,
            cutoff=cutoff,
            deleted=counts,
            duration_seconds=time.time() - start_time,
        )
        logger.info(
            f"Purge {result.status.value}: submissions={counts['submissions']}, "
            f"actions_log={counts['actions_log']}, values={counts['values']} "
            f"({result.duration_seconds:.2f}s)"
        )
        return result

    def _snapshot_eligible(self, conn: duckdb.DuckDBPyConnection, cutoff: datetime) -> int:
        """Freeze the ids of eligible submissions for every pass of this run."""
        conn.execute(f"CREATE OR REPLACE TEMP TABLE {SNAPSHOT_TABLE} (id BIGINT)")
        conn.execute(
            f"INSERT INTO {SNAPSHOT_TABLE} SELECT id FROM {self._tables.submissions} WHERE created_at < ?",
            (cutoff,),
        )
        row = conn.execute(f"SELECT COUNT(*) FROM {SNAPSHOT_TABLE}").fetchone()
        return row[0] if row else 0

    def _pass_predicate(self, name: str) -> tuple[str, str]:
        table = getattr(self._tables, name)
        column = "id" if name == "submissions" else "submission_id"
        return table, f"{column} IN (SELECT id FROM {SNAPSHOT_TABLE})"

    def _delete_pass(self, conn: duckdb.DuckDBPyConnection, name: str) -> int:
        table, predicate = self._pass_predicate(name)
        row = conn.execute(f"DELETE FROM {table} WHERE {predicate}").fetchone()
        return row[0] if row else 0

    def _count_pass(self, conn: duckdb.DuckDBPyConnection, name: str) -> int:
        table, predicate = self._pass_predicate(name)
        row = conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {predicate}").fetchone()
        return row[0] if row else 0
