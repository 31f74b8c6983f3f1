"""Scheduler service - APScheduler integration."""

from .service import SCHEDULE_ID, SchedulerService, execute_scheduled_run

__all__ = [
    "SCHEDULE_ID",
    "SchedulerService",
    "execute_scheduled_run",
]
