"""
DuckDB schema definitions for formsweep.

Run with: python -m formsweep.data.schema --init
"""

import argparse
from dataclasses import dataclass
from typing import Dict, Union

from loguru import logger

from formsweep.data.db import get_db


@dataclass(frozen=True)
class SubmissionTables:
    """Resolved names of the three submission tables."""

    submissions: str = "submissions"
    actions_log: str = "submissions_actions_log"
    values: str = "submissions_values"

    @classmethod
    def from_prefix(cls, prefix: str = "") -> "SubmissionTables":
        """Resolve table names sharing the host's table prefix (e.g. "wp_e_")."""
        return cls(
            submissions=f"{prefix}submissions",
            actions_log=f"{prefix}submissions_actions_log",
            values=f"{prefix}submissions_values",
        )

    def __iter__(self):
        # Child tables first: the order rows must be deleted in
        return iter((self.actions_log, self.values, self.submissions))


OPTIONS_TABLE = "options"
SCHEDULED_EVENTS_TABLE = "scheduled_events"


def _submission_table_ddl(tables: SubmissionTables) -> Dict[str, str]:
    return {
        tables.submissions: f"""
            CREATE TABLE IF NOT EXISTS {tables.submissions} (
                id BIGINT PRIMARY KEY DEFAULT nextval('seq_{tables.submissions}'),
                form_name VARCHAR,
                referer VARCHAR,
                status VARCHAR DEFAULT 'new',
                created_at TIMESTAMP NOT NULL,
                created_at_gmt TIMESTAMP
            )
        """,
        # No FOREIGN KEY: children reference submissions by id only
        tables.actions_log: f"""
            CREATE TABLE IF NOT EXISTS {tables.actions_log} (
                id BIGINT PRIMARY KEY DEFAULT nextval('seq_{tables.actions_log}'),
                submission_id BIGINT NOT NULL,
                action_name VARCHAR,
                action_label VARCHAR,
                status VARCHAR,
                log VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """,
        tables.values: f"""
            CREATE TABLE IF NOT EXISTS {tables.values} (
                id BIGINT PRIMARY KEY DEFAULT nextval('seq_{tables.values}'),
                submission_id BIGINT NOT NULL,
                key VARCHAR NOT NULL,
                value VARCHAR
            )
        """,
    }


SUPPORT_TABLES = {
    OPTIONS_TABLE: f"""
        CREATE TABLE IF NOT EXISTS {OPTIONS_TABLE} (
            name VARCHAR PRIMARY KEY,
            value VARCHAR,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """,
    # One row per hook: a hook can never have two pending triggers
    SCHEDULED_EVENTS_TABLE: f"""
        CREATE TABLE IF NOT EXISTS {SCHEDULED_EVENTS_TABLE} (
            hook VARCHAR PRIMARY KEY,
            next_fire_at TIMESTAMP NOT NULL,
            interval_seconds INTEGER NOT NULL
        )
    """,
}


def create_tables(db_path: Union[str, None] = None, tables: SubmissionTables | None = None) -> None:
    """
    Create all formsweep tables. Idempotent.

    Args:
        db_path: Optional database path
        tables: Submission table names (defaults to unprefixed names)
    """
    tables = tables or SubmissionTables()
    db = get_db(db_path)

    with db.connection() as conn:
        for name in tables:
            conn.execute(f"CREATE SEQUENCE IF NOT EXISTS seq_{name} START 1")
        for name, ddl in _submission_table_ddl(tables).items():
            conn.execute(ddl)
            logger.debug(f"Ensured table {name}")
        for name, ddl in SUPPORT_TABLES.items():
            conn.execute(ddl)
            logger.debug(f"Ensured table {name}")

    logger.info(f"Schema ready: {tables.submissions}, {tables.actions_log}, {tables.values}")


def drop_tables(db_path: Union[str, None] = None, tables: SubmissionTables | None = None) -> None:
    """Drop all formsweep tables and sequences."""
    tables = tables or SubmissionTables()
    db = get_db(db_path)

    with db.connection() as conn:
        for name in list(tables) + list(SUPPORT_TABLES):
            conn.execute(f"DROP TABLE IF EXISTS {name}")
        for name in tables:
            conn.execute(f"DROP SEQUENCE IF EXISTS seq_{name}")

    logger.info("Dropped formsweep tables")


def main() -> None:
    from formsweep.utils.config import get_config

    parser = argparse.ArgumentParser(description="formsweep schema management")
    parser.add_argument("--init", action="store_true", help="Create all tables")
    parser.add_argument("--drop", action="store_true", help="Drop all tables")
    parser.add_argument("--db-path", type=str, default=None, help="Database path")
    parser.add_argument("--prefix", type=str, default=None, help="Submission table prefix")
    args = parser.parse_args()

    prefix = args.prefix if args.prefix is not None else get_config().retention.table_prefix
    tables = SubmissionTables.from_prefix(prefix)

    if args.drop:
        drop_tables(args.db_path, tables)
    if args.init:
        create_tables(args.db_path, tables)
    if not (args.init or args.drop):
        parser.print_help()


if __name__ == "__main__":
    main()
