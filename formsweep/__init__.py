"""
formsweep - Form Submissions Retention

Scheduled cleanup of form submissions older than a configured number of days.
"""

try:
    from importlib.metadata import version

    __version__ = version("formsweep")
except Exception:
    __version__ = "0.0.0"
