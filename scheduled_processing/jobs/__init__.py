"""
Scheduled jobs for GitHub Projects processing.

- scheduled_moves_cron: periodic application of pending status changes
"""

from .scheduled_moves_cron import JobRuntime, handler, run_scheduled_moves_job

__all__ = ["JobRuntime", "handler", "run_scheduled_moves_job"]
