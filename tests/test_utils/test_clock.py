"""Tests for wall-clock helpers."""

from datetime import datetime, timedelta

import pytz

from formsweep.utils.clock import local_now, resolve_timezone, to_local_naive


class TestToLocalNaive:
    def test_naive_passes_through(self):
        moment = datetime(2024, 1, 15, 10, 0)
        assert to_local_naive(moment, "US/Eastern") is moment

    def test_aware_converted_to_zone(self):
        moment = datetime(2024, 1, 15, 15, 0, tzinfo=pytz.utc)
        # EST is UTC-5 in January
        assert to_local_naive(moment, "US/Eastern") == datetime(2024, 1, 15, 10, 0)

    def test_accepts_zone_object(self):
        moment = datetime(2024, 7, 1, 0, 0, tzinfo=pytz.utc)
        assert to_local_naive(moment, pytz.timezone("Europe/Berlin")) == datetime(2024, 7, 1, 2, 0)


class TestLocalNow:
    def test_naive_and_current(self):
        now = local_now("UTC")
        utc_now = datetime.now(pytz.utc).replace(tzinfo=None)

        assert now.tzinfo is None
        assert abs(utc_now - now) < timedelta(seconds=5)

    def test_resolve_timezone(self):
        assert resolve_timezone("UTC") is pytz.utc
