"""Tests for the scheduler runner entry point."""

import os
import sys
from datetime import timedelta

import pytest
from loguru import logger

from formsweep.agents.lifecycle import HOOK_DAILY_CLEANUP


@pytest.fixture
def runner_env(temp_db, tmp_path, monkeypatch):
    """Point configuration at a temporary data directory."""
    from formsweep.utils.config import reset_config

    monkeypatch.setenv("FORMSWEEP_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("FORMSWEEP_DB_PATH", raising=False)
    reset_config()
    yield tmp_path
    reset_config()
    logger.remove()
    logger.add(sys.stderr)


class TestRunSchedulerOnce:
    """Tests for --once mode."""

    def test_activate_once_arms_trigger(self, runner_env, temp_db):
        from formsweep.agents.run_scheduler import main
        from formsweep.agents.scheduler import TriggerStore
        from formsweep.data.db import get_db

        exit_code = main(["--db-path", temp_db, "--activate", "--once"])

        assert exit_code == 0
        assert TriggerStore(get_db(temp_db)).is_scheduled(HOOK_DAILY_CLEANUP)
        # Lock released on exit
        assert not (runner_env / "formsweep-scheduler.lock").exists()

    def test_once_fires_due_cleanup(self, runner_env, temp_db):
        from formsweep.agents.run_scheduler import main
        from formsweep.agents.scheduler import DAILY, TriggerStore
        from formsweep.data.db import get_db
        from formsweep.data.options import OptionStore
        from formsweep.data.schema import create_tables
        from formsweep.utils.clock import local_now

        create_tables(temp_db)
        db = get_db(temp_db)
        OptionStore(db).set_retention_days(30)
        db.execute(
            "INSERT INTO submissions (form_name, created_at) VALUES ('contact', ?)",
            (local_now("UTC") - timedelta(days=45),),
        )
        TriggerStore(db).schedule_event(local_now("UTC") - timedelta(hours=1), DAILY, HOOK_DAILY_CLEANUP)

        exit_code = main(["--db-path", temp_db, "--once"])

        assert exit_code == 0
        assert db.fetchone("SELECT COUNT(*) FROM submissions")[0] == 0

    def test_lock_held_by_live_process(self, runner_env, temp_db):
        """A second runner exits while another holds the lock."""
        from formsweep.agents.run_scheduler import main

        lock_file = runner_env / "held.lock"
        lock_file.write_text(str(os.getpid()))

        exit_code = main(["--db-path", temp_db, "--once", "--lock-file", str(lock_file)])

        assert exit_code == 1
        assert lock_file.exists()

    def test_writes_log_file(self, runner_env, temp_db):
        from formsweep.agents.run_scheduler import main

        main(["--db-path", temp_db, "--once"])

        assert (runner_env / "logs" / "scheduler.log").exists()


class TestParser:
    def test_defaults(self):
        from formsweep.agents.run_scheduler import build_parser

        args = build_parser().parse_args([])

        assert args.once is False
        assert args.activate is False
        assert args.poll_interval is None
