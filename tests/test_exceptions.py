"""Tests for formsweep exception hierarchy."""

from formsweep.exceptions import (
    ConfigError,
    FormsweepError,
    PurgeError,
    PurgeTimeoutError,
    SchedulerError,
)


class TestExceptionHierarchy:
    """Tests for exception base classes."""

    def test_formsweep_error_is_base_exception(self):
        assert issubclass(FormsweepError, Exception)

    def test_domain_errors_inherit_from_base(self):
        for error_cls in (ConfigError, SchedulerError, PurgeError):
            assert issubclass(error_cls, FormsweepError)

    def test_timeout_is_a_purge_error(self):
        exc = PurgeTimeoutError("slow", failed_pass="values")
        assert isinstance(exc, PurgeError)
        assert isinstance(exc, FormsweepError)


class TestPurgeError:
    def test_carries_failure_detail(self):
        exc = PurgeError("failed", failed_pass="values", rolled_back={"actions_log": 3})

        assert str(exc) == "failed"
        assert exc.failed_pass == "values"
        assert exc.rolled_back == {"actions_log": 3}

    def test_defaults(self):
        exc = PurgeError("failed")
        assert exc.failed_pass is None
        assert exc.rolled_back == {}
