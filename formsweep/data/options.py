"""
Named option storage for formsweep.

Options are stored as text in the options table. The retention threshold is
the only option the retention job reads; it distinguishes "never configured"
(no row) from "explicitly disabled" (a stored 0).
"""

from __future__ import annotations

import math
import re
from typing import Any

import duckdb
from loguru import logger

from formsweep.data.db import DatabaseManager, get_db
from formsweep.data.schema import OPTIONS_TABLE
from formsweep.exceptions import ConfigError

RETENTION_OPTION = "formsweep_keep_submissions_days"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_retention_days(raw_input: Any) -> int:
    """
    Coerce a submitted value to a non-negative number of days.

    Follows integer coercion of form input: floats truncate toward zero,
    strings use their leading integer ("30 days" -> 30), anything else that
    is not a number becomes 0. Negative results clamp to 0.

    Args:
        raw_input: Value as received from the settings form

    Returns:
        Non-negative integer number of days
    """
    if isinstance(raw_input, bool):
        value = int(raw_input)
    elif isinstance(raw_input, int):
        value = raw_input
    elif isinstance(raw_input, float):
        value = int(raw_input) if math.isfinite(raw_input) else 0
    elif isinstance(raw_input, (str, bytes)):
        text = raw_input.decode("utf-8", "replace") if isinstance(raw_input, bytes) else raw_input
        match = _LEADING_INT.match(text)
        value = int(match.group(1)) if match else 0
    else:
        value = 0

    return max(0, value)


class OptionStore:
    """Get/set named options persisted in DuckDB."""

    def __init__(self, db: DatabaseManager | None = None):
        self._db = db or get_db()

    def get_option(self, name: str, default: str | None = None) -> str | None:
        try:
            row = self._db.fetchone(f"SELECT value FROM {OPTIONS_TABLE} WHERE name = ?", (name,))
        except duckdb.Error as e:
            logger.error(f"Failed to read option {name}: {e}")
            raise ConfigError(f"Failed to read option {name}: {e}") from e
        return default if row is None else row[0]

    def update_option(self, name: str, value: Any) -> None:
        try:
            self._db.execute(
                f"""
                INSERT INTO {OPTIONS_TABLE} (name, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT (name) DO UPDATE
                SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (name, str(value)),
            )
        except duckdb.Error as e:
            logger.error(f"Failed to write option {name}: {e}")
            raise ConfigError(f"Failed to write option {name}: {e}") from e

    def delete_option(self, name: str) -> None:
        try:
            self._db.execute(f"DELETE FROM {OPTIONS_TABLE} WHERE name = ?", (name,))
        except duckdb.Error as e:
            logger.error(f"Failed to delete option {name}: {e}")
            raise ConfigError(f"Failed to delete option {name}: {e}") from e

    def get_retention_days(self) -> int | None:
        """
        Read the retention threshold.

        Returns:
            Stored number of days, or None if it was never configured
        """
        value = self.get_option(RETENTION_OPTION)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError as e:
            raise ConfigError(f"Stored {RETENTION_OPTION} is not an integer: {value!r}") from e

    def set_retention_days(self, raw_input: Any) -> int:
        """
        Normalize and persist the retention threshold.

        Negative input is stored as 0 rather than rejected.

        Returns:
            The value that was stored
        """
        days = normalize_retention_days(raw_input)
        self.update_option(RETENTION_OPTION, days)
        logger.info(f"Retention set to {days} days")
        return days

    def clear_retention_days(self) -> None:
        """Return the retention threshold to the never-configured state."""
        self.delete_option(RETENTION_OPTION)
