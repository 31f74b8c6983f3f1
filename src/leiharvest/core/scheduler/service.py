"""
APScheduler v4 integration for leiharvest.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path

from apscheduler import AsyncScheduler, ConflictPolicy
from apscheduler.triggers.cron import CronTrigger

from leiharvest.core.config import SchedulerConfig, load_app_config
from leiharvest.core.logging import get_logger
from leiharvest.core.orchestrator.pipeline import run_once
from leiharvest.core.orchestrator.runner import RunSummary

logger = get_logger("scheduler")

SCHEDULE_ID = "harvest"

# Runs in this process never overlap; a fire that finds the lock held is dropped.
_run_lock = asyncio.Lock()


async def execute_scheduled_run(config_path: str | None = None) -> RunSummary | None:
    """Execute one scheduled harvest.

    The configuration is reloaded on every fire so edits to app.yaml apply
    to the next run without restarting the scheduler.

    Returns:
        RunSummary, or None when a previous run was still in progress
    """
    if _run_lock.locked():
        logger.info("Lock held, skipping scheduled run")
        return None

    async with _run_lock:
        config = load_app_config(config_path)
        try:
            summary = await run_once(config, run_type="scheduled")
        except Exception:
            logger.exception("Scheduled run failed")
            raise

        if summary.aborted:
            logger.error("Scheduled run %s aborted: skip limit exceeded", summary.run_id)
        return summary


class SchedulerService:
    """APScheduler v4 integration for leiharvest."""

    def __init__(self, config: SchedulerConfig, config_path: Path | str | None = None) -> None:
        self.config = config
        self.config_path = str(config_path) if config_path is not None else None
        self._scheduler: AsyncScheduler | None = None

    async def start(self) -> None:
        """Start scheduler in foreground mode (blocking)."""
        if not self.config.enabled:
            logger.warning("Scheduler is disabled in configuration")
            return

        async with AsyncScheduler() as scheduler:
            self._scheduler = scheduler
            await self._add_harvest_schedule()
            logger.info(
                "Scheduler started: cron '%s' (%s)",
                self.config.cron,
                self.config.timezone,
            )
            await scheduler.run_until_stopped()

    async def stop(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()

    async def _add_harvest_schedule(self) -> None:
        if self._scheduler is None:
            raise RuntimeError("Scheduler is not initialized")

        max_jitter = None
        if self.config.jitter_minutes > 0:
            max_jitter = timedelta(minutes=self.config.jitter_minutes)

        await self._scheduler.add_schedule(
            execute_scheduled_run,
            self._build_trigger(),
            id=SCHEDULE_ID,
            args=[self.config_path],
            conflict_policy=ConflictPolicy.replace,
            max_jitter=max_jitter,
        )

    async def trigger_now(self) -> RunSummary | None:
        """Run the harvest once through the scheduler and wait for it.

        Returns:
            RunSummary of the run, or None when another run held the lock
        """
        async with AsyncScheduler() as scheduler:
            await scheduler.start_in_background()
            return await scheduler.run_job(execute_scheduled_run, args=[self.config_path])

    def _build_trigger(self) -> CronTrigger:
        """Convert the configured crontab expression to an APScheduler trigger."""
        return CronTrigger.from_crontab(self.config.cron, timezone=self.config.timezone)

    def next_fire_times(self, count: int = 5) -> list[datetime]:
        """Upcoming fire times of the configured schedule, without jitter."""
        trigger = self._build_trigger()
        times: list[datetime] = []
        for _ in range(count):
            fire_time = trigger.next()
            if fire_time is None:
                break
            times.append(fire_time)
        return times
