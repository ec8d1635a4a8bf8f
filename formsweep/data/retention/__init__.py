"""
Submission retention for formsweep.

Provides the age-based purge of form submissions and their child rows.
"""

from formsweep.data.retention.purge import (
    PurgeResult,
    PurgeStatus,
    SubmissionPurger,
    compute_cutoff,
)

__all__ = [
    "PurgeResult",
    "PurgeStatus",
    "SubmissionPurger",
    "compute_cutoff",
]
