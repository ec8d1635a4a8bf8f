"""
Scheduling and lifecycle hooks for formsweep.

Provides the persistent daily trigger and the hook entry points a host
runtime dispatches to.
"""

from formsweep.agents.lifecycle import (
    HOOK_ACTIVATE,
    HOOK_DAILY_CLEANUP,
    HOOK_DEACTIVATE,
    HOOK_SAVE_SETTING,
    SubmissionsCleaner,
)
from formsweep.agents.scheduler import RetentionScheduler, ScheduledEvent, TriggerStore

__all__ = [
    "HOOK_ACTIVATE",
    "HOOK_DAILY_CLEANUP",
    "HOOK_DEACTIVATE",
    "HOOK_SAVE_SETTING",
    "RetentionScheduler",
    "ScheduledEvent",
    "SubmissionsCleaner",
    "TriggerStore",
]
