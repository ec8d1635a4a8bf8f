#!/usr/bin/env python
"""
Run the formsweep retention scheduler.

Starts a background scheduler that fires the daily submissions cleanup when
its persisted trigger comes due. Only one scheduler process runs per lock
file.

Usage:
    python -m formsweep.agents.run_scheduler
    python -m formsweep.agents.run_scheduler --activate
    python -m formsweep.agents.run_scheduler --once
    python -m formsweep.agents.run_scheduler --db-path /srv/forms.duckdb --poll-interval 30
"""

import argparse
import signal
import sys
import time
from dataclasses import replace
from pathlib import Path

from loguru import logger

from formsweep.agents.lifecycle import HOOK_DAILY_CLEANUP, SubmissionsCleaner
from formsweep.data.db import get_db
from formsweep.data.retention.purge import PurgeResult
from formsweep.data.schema import SubmissionTables, create_tables
from formsweep.utils.config import Config, get_config
from formsweep.utils.locks import JobLock


def _setup_logging(config: Config) -> None:
    """Configure loguru to write to stderr and a rotating log file."""
    logger.remove()
    logger.add(sys.stderr, level=config.log_level)

    log_dir = config.data.logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.add(
        str(log_dir / "scheduler.log"),
        rotation="10 MB",
        retention="30 days",
        level=config.log_level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {message}",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run formsweep Retention Scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-path", type=str, default=None, help="DuckDB database path")
    parser.add_argument(
        "--poll-interval",
        type=int,
        default=None,
        help="Seconds between checks for due triggers (default: FORMSWEEP_POLL_INTERVAL or 60)",
    )
    parser.add_argument(
        "--activate",
        action="store_true",
        help="Arm the daily cleanup trigger before starting (no-op if already armed)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fire due triggers once and exit instead of running in the background",
    )
    parser.add_argument("--lock-file", type=str, default=None, help="Single-instance lock file")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = get_config()
    if args.poll_interval is not None:
        config = replace(config, retention=replace(config.retention, poll_interval_seconds=args.poll_interval))
    _setup_logging(config)

    db_path = Path(args.db_path) if args.db_path else config.data.db_path
    tables = SubmissionTables.from_prefix(config.retention.table_prefix)
    create_tables(str(db_path), tables)
    cleaner = SubmissionsCleaner(get_db(db_path), config, tables)

    if args.activate:
        next_fire_at = cleaner.activate()
        logger.info(f"Daily cleanup armed, next run at {next_fire_at}")

    lock_file = Path(args.lock_file) if args.lock_file else config.data.lock_file
    with JobLock(lock_file) as acquired:
        if not acquired:
            logger.error(f"Another scheduler holds {lock_file}, exiting")
            return 1

        if args.once:
            results = cleaner.scheduler.run_due()
            if not results:
                logger.info("No triggers due")
            failed = [
                hook for hook, result in results.items()
                if isinstance(result, PurgeResult) and not result.success
            ]
            return 1 if failed else 0

        scheduler = cleaner.scheduler
        scheduler.start()
        if cleaner.is_active():
            logger.info(f"Next cleanup at {cleaner.triggers.next_scheduled(HOOK_DAILY_CLEANUP)}")
        else:
            logger.warning("Daily cleanup is not armed; run with --activate to arm it")

        def signal_handler(sig, frame):
            logger.info("Received shutdown signal, stopping scheduler...")
            scheduler.shutdown(wait=True)
            logger.info("Scheduler stopped")
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info("Scheduler is running. Press Ctrl+C to stop.")
        try:
            signal.pause()
        except AttributeError:
            # signal.pause() not available on Windows
            while True:
                time.sleep(1)

    return 0


if __name__ == "__main__":
    sys.exit(main())
