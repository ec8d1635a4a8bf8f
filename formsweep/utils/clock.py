"""
Wall-clock helpers.

Submission timestamps are stored as naive TIMESTAMP values recorded in a
single configured zone, so every "now" used for comparisons is converted to
that zone and stripped of its tzinfo.
"""

from __future__ import annotations

from datetime import datetime

from pytz import timezone as pytz_timezone
from pytz.tzinfo import BaseTzInfo


def resolve_timezone(tz: str | BaseTzInfo) -> BaseTzInfo:
    """Return a pytz zone for a name, passing zone objects through."""
    if isinstance(tz, str):
        return pytz_timezone(tz)
    return tz


def to_local_naive(moment: datetime, tz: str | BaseTzInfo = "UTC") -> datetime:
    """
    Express a datetime as a naive wall-clock time in the given zone.

    Naive inputs are assumed to already be in that zone and are returned
    unchanged.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(resolve_timezone(tz)).replace(tzinfo=None)


def local_now(tz: str | BaseTzInfo = "UTC") -> datetime:
    """Current time as a naive wall-clock time in the given zone."""
    return datetime.now(resolve_timezone(tz)).replace(tzinfo=None)
