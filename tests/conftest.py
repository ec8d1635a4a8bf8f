"""
Pytest configuration and fixtures for formsweep tests.
"""

import os
import tempfile
from datetime import datetime
from typing import Callable, Generator

import pytest


@pytest.fixture
def temp_db():
    """Create a temporary DuckDB database path for testing.

    The file is created then deleted so DuckDB can create a fresh database;
    DuckDB can't open the empty file NamedTemporaryFile leaves behind.
    """
    with tempfile.NamedTemporaryFile(suffix=".duckdb", delete=False) as f:
        db_path = f.name

    os.remove(db_path)

    from formsweep.data.db import DatabaseManager

    DatabaseManager.reset()

    yield db_path

    DatabaseManager.reset()
    if os.path.exists(db_path):
        os.remove(db_path)
    for ext in [".wal", "-journal", "-shm"]:
        wal_path = db_path + ext
        if os.path.exists(wal_path):
            os.remove(wal_path)


@pytest.fixture
def test_db(temp_db: str) -> Generator[str, None, None]:
    """Create a test database with the formsweep schema initialized."""
    os.environ["FORMSWEEP_DB_PATH"] = temp_db

    from formsweep.data.schema import create_tables

    create_tables(temp_db)

    yield temp_db

    if "FORMSWEEP_DB_PATH" in os.environ:
        del os.environ["FORMSWEEP_DB_PATH"]


@pytest.fixture
def db(test_db: str):
    """DatabaseManager for the test database."""
    from formsweep.data.db import get_db

    return get_db(test_db)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for purge runs."""
    return datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def test_config(tmp_path):
    """Configuration pointing at a temporary data directory."""
    from formsweep.utils.config import Config, DataConfig, RetentionConfig

    return Config(
        data=DataConfig(data_dir=tmp_path),
        retention=RetentionConfig(timezone="UTC", purge_timeout_seconds=30, poll_interval_seconds=3600),
    )


@pytest.fixture
def insert_submission(db) -> Callable[..., int]:
    """Factory inserting a submission with action-log and value rows.

    Returns the new submission id.
    """
    from formsweep.data.schema import SubmissionTables

    def _insert(
        created_at: datetime,
        actions: int = 1,
        values: int = 2,
        tables: SubmissionTables | None = None,
    ) -> int:
        tables = tables or SubmissionTables()
        with db.connection() as conn:
            submission_id = conn.execute(
                f"INSERT INTO {tables.submissions} (form_name, referer, created_at, created_at_gmt) "
                f"VALUES ('contact', 'https://example.com/contact', ?, ?) RETURNING id",
                (created_at, created_at),
            ).fetchone()[0]
            for i in range(actions):
                conn.execute(
                    f"INSERT INTO {tables.actions_log} (submission_id, action_name, status, created_at) "
                    f"VALUES (?, ?, 'success', ?)",
                    (submission_id, f"email_{i}", created_at),
                )
            for i in range(values):
                conn.execute(
                    f"INSERT INTO {tables.values} (submission_id, key, value) VALUES (?, ?, ?)",
                    (submission_id, f"field_{i}", f"value {i}"),
                )
        return submission_id

    return _insert


@pytest.fixture
def count_rows(db) -> Callable[[str], int]:
    """Count rows in a table, optionally filtered by submission id."""

    def _count(table: str, submission_id: int | None = None) -> int:
        if submission_id is None:
            return db.fetchone(f"SELECT COUNT(*) FROM {table}")[0]
        column = "id" if table.endswith("submissions") else "submission_id"
        return db.fetchone(f"SELECT COUNT(*) FROM {table} WHERE {column} = ?", (submission_id,))[0]

    return _count
