"""Tests for the option store and retention threshold normalization."""

import pytest

from formsweep.data.options import RETENTION_OPTION, OptionStore, normalize_retention_days
from formsweep.exceptions import ConfigError


class TestNormalizeRetentionDays:
    """Tests for coercion of submitted threshold values."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (30, 30),
            (0, 0),
            (-5, 0),
            ("45", 45),
            ("  12 days", 12),
            ("+7", 7),
            ("-14", 0),
            ("abc", 0),
            ("", 0),
            (b"21", 21),
            (7.9, 7),
            (-2.5, 0),
            (float("nan"), 0),
            (True, 1),
            (None, 0),
            ([30], 0),
        ],
    )
    def test_normalization(self, raw, expected):
        assert normalize_retention_days(raw) == expected


class TestOptionStore:
    """Tests for OptionStore against DuckDB."""

    def test_unset_retention_is_none(self, db):
        """A never-configured threshold reads as None, not 0."""
        assert OptionStore(db).get_retention_days() is None

    def test_set_and_get_retention(self, db):
        store = OptionStore(db)

        stored = store.set_retention_days(30)

        assert stored == 30
        assert store.get_retention_days() == 30

    def test_negative_input_stored_as_zero(self, db):
        """Negative input is normalized, not rejected."""
        store = OptionStore(db)

        assert store.set_retention_days(-5) == 0
        assert store.get_retention_days() == 0
        assert store.get_option(RETENTION_OPTION) == "0"

    def test_update_overwrites(self, db):
        store = OptionStore(db)
        store.set_retention_days("90")
        store.set_retention_days("14")

        assert store.get_retention_days() == 14
        assert db.fetchone("SELECT COUNT(*) FROM options")[0] == 1

    def test_clear_returns_to_unset(self, db):
        store = OptionStore(db)
        store.set_retention_days(30)

        store.clear_retention_days()

        assert store.get_retention_days() is None

    def test_get_option_default(self, db):
        assert OptionStore(db).get_option("missing", default="fallback") == "fallback"

    def test_corrupt_value_raises(self, db):
        """A stored value that is not an integer is a read failure."""
        store = OptionStore(db)
        store.update_option(RETENTION_OPTION, "thirty")

        with pytest.raises(ConfigError):
            store.get_retention_days()

    def test_missing_table_raises_config_error(self, temp_db):
        """Store failures surface as ConfigError."""
        from formsweep.data.db import get_db

        store = OptionStore(get_db(temp_db))

        with pytest.raises(ConfigError):
            store.get_retention_days()
        with pytest.raises(ConfigError):
            store.set_retention_days(30)
