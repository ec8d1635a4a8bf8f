"""
Configuration management for formsweep.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


@dataclass
class DataConfig:
    """Data layer configuration."""

    data_dir: Path = field(default_factory=lambda: Path.home() / "formsweep-data")
    db_name: str = "formsweep.duckdb"
    db_path_override: Path | None = None

    @property
    def db_path(self) -> Path:
        if self.db_path_override is not None:
            return self.db_path_override
        return self.data_dir / self.db_name

    @property
    def logs_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def lock_file(self) -> Path:
        return self.data_dir / "formsweep-scheduler.lock"


@dataclass
class RetentionConfig:
    """Retention job configuration."""

    # Shared prefix of the three submission tables (e.g. "wp_e_")
    table_prefix: str = ""
    # Clock the submission timestamps are recorded in
    timezone: str = "UTC"
    purge_timeout_seconds: float = 300.0
    poll_interval_seconds: int = 60


@dataclass
class Config:
    """Main configuration class."""

    data: DataConfig = field(default_factory=DataConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        data_dir = os.getenv("FORMSWEEP_DATA_DIR")
        db_path = os.getenv("FORMSWEEP_DB_PATH")

        return cls(
            data=DataConfig(
                data_dir=Path(data_dir).expanduser() if data_dir else Path.home() / "formsweep-data",
                db_path_override=Path(db_path).expanduser() if db_path else None,
            ),
            retention=RetentionConfig(
                table_prefix=os.getenv("FORMSWEEP_TABLE_PREFIX", ""),
                timezone=os.getenv("FORMSWEEP_TIMEZONE", "UTC"),
                purge_timeout_seconds=float(os.getenv("FORMSWEEP_PURGE_TIMEOUT", "300")),
                poll_interval_seconds=int(os.getenv("FORMSWEEP_POLL_INTERVAL", "60")),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
