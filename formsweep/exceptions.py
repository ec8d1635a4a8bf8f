"""Base exception hierarchy for formsweep.

All formsweep exceptions inherit from FormsweepError, so a host can catch
every failure raised by the retention job with a single except clause.
"""


class FormsweepError(Exception):
    """Base exception for all formsweep errors."""

    pass


class ConfigError(FormsweepError):
    """Raised when the option store cannot be read or written."""

    pass


class SchedulerError(FormsweepError):
    """Raised when a trigger cannot be registered, queried or cancelled."""

    pass


# =============================================================================
# Purge Exceptions
# =============================================================================


class PurgeError(FormsweepError):
    """Raised when a purge run failed and its transaction was rolled back."""

    def __init__(
        self,
        message: str,
        failed_pass: str | None = None,
        rolled_back: dict[str, int] | None = None,
    ):
        super().__init__(message)
        self.failed_pass = failed_pass
        self.rolled_back = rolled_back or {}


class PurgeTimeoutError(PurgeError):
    """Raised when a purge run exceeded its time bound."""

    pass
