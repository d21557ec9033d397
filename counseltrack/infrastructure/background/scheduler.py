# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic maintenance jobs.

Uses APScheduler's AsyncIOScheduler to run coroutine jobs on the
application's event loop. Two jobs are registered on startup:

- Escalation sweep: promotes unanswered escalations (every 5 minutes)
- Notification retry: re-dispatches recent FAILED notifications (hourly)

Each job opens its own database session.

Example:
    from counseltrack.infrastructure.background.scheduler import get_scheduler

    scheduler = get_scheduler()
    await scheduler.start()

    scheduler.add_interval_job(
        name="Escalation Sweep",
        func=run_escalation_sweep,
        minutes=5,
    )
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from counseltrack.core.config.settings import Settings, get_settings
from counseltrack.domains.escalation.service import EscalationService
from counseltrack.infrastructure.database.connection import get_session
from counseltrack.infrastructure.notifications.delivery import get_delivery_confirmer
from counseltrack.infrastructure.notifications.service import NotificationDispatcher
from counseltrack.utils.datetime import utc_now

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]


# =============================================================================
# JOB EXECUTORS
# =============================================================================


async def run_escalation_sweep() -> dict[str, int]:
    """Promote escalations that stayed unanswered past their threshold."""
    async with get_session() as session:
        dispatcher = NotificationDispatcher(session, delivery_confirmer=get_delivery_confirmer())
        service = EscalationService(session, dispatcher=dispatcher)
        return await service.check_and_escalate_unresponded()


async def run_notification_retry() -> dict[str, int]:
    """Re-dispatch FAILED notifications inside the retry window."""
    async with get_session() as session:
        dispatcher = NotificationDispatcher(session, delivery_confirmer=get_delivery_confirmer())
        retried = await dispatcher.retry_failed_notifications()
        return {"retried": retried}


# =============================================================================
# SCHEDULER
# =============================================================================


@dataclass
class ScheduledJob:
    """Configuration and statistics of a scheduled job.

    Attributes:
        id: Unique job identifier.
        name: Human-readable job name.
        func: Coroutine function to run.
        interval_seconds: Seconds between runs.
        enabled: Whether the job runs.
        last_run: Last run timestamp.
        last_result: Return value of the last successful run.
        run_count: Total number of successful runs.
        error_count: Number of failed runs.
    """

    name: str
    func: JobFunc
    interval_seconds: int
    id: str = field(default_factory=lambda: str(uuid4()))
    enabled: bool = True
    last_run: datetime | None = None
    last_result: Any = None
    run_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "enabled": self.enabled,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class JobScheduler:
    """Runs coroutine jobs at fixed intervals.

    Attributes:
        _scheduler: APScheduler instance, present while running.
        _jobs: Registered jobs by ID.
        _running: Whether the scheduler is running.
    """

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._jobs: dict[str, ScheduledJob] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    def add_interval_job(
        self,
        name: str,
        func: JobFunc,
        seconds: int = 0,
        minutes: int = 0,
        hours: int = 0,
        enabled: bool = True,
    ) -> ScheduledJob:
        """Register a job that runs at a fixed interval.

        Args:
            name: Job name.
            func: Coroutine function taking no arguments.
            seconds: Interval seconds.
            minutes: Interval minutes.
            hours: Interval hours.
            enabled: Whether the job is scheduled.

        Returns:
            Created ScheduledJob.

        Raises:
            ValueError: If the interval is not positive.
        """
        interval = seconds + minutes * 60 + hours * 3600
        if interval <= 0:
            raise ValueError(f"Interval for job {name!r} must be positive")

        job = ScheduledJob(name=name, func=func, interval_seconds=interval, enabled=enabled)
        self._jobs[job.id] = job

        if self._scheduler and enabled:
            self._scheduler.add_job(
                self._execute_job,
                trigger=IntervalTrigger(seconds=interval),
                args=[job.id],
                id=job.id,
                name=name,
                max_instances=1,
                coalesce=True,
            )

        logger.info("Added interval job: %s (every %ds)", name, interval)
        return job

    async def _execute_job(self, job_id: str) -> None:
        """Run one job and record the outcome.

        A failing job is logged and counted; it stays scheduled.
        """
        job = self._jobs.get(job_id)
        if not job or not job.enabled:
            return

        logger.debug("Executing scheduled job: %s", job.name)

        try:
            job.last_result = await job.func()
        except Exception as e:
            job.error_count += 1
            logger.error("Scheduled job %s failed: %s", job.name, str(e))
            return

        job.last_run = utc_now()
        job.run_count += 1

    async def run_now(self, job_id: str) -> None:
        """Run a registered job immediately, outside its schedule."""
        await self._execute_job(job_id)

    def get_job(self, job_id: str) -> ScheduledJob | None:
        """Get a job by ID."""
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[ScheduledJob]:
        """List all registered jobs."""
        return list(self._jobs.values())

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.start()
        self._running = True

        logger.info("Job scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Job scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "is_running": self._running,
            "job_count": len(self._jobs),
            "enabled_count": sum(1 for j in self._jobs.values() if j.enabled),
            "total_runs": sum(j.run_count for j in self._jobs.values()),
            "total_errors": sum(j.error_count for j in self._jobs.values()),
            "jobs": [j.to_dict() for j in self._jobs.values()],
        }


# Singleton instance
_scheduler: JobScheduler | None = None


def get_scheduler() -> JobScheduler:
    """Get the singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = JobScheduler()
    return _scheduler


async def start_scheduler(settings: Settings | None = None) -> JobScheduler:
    """Start the scheduler and register the default jobs.

    Args:
        settings: Application settings. Uses get_settings() if None.

    Returns:
        Started scheduler instance.
    """
    settings = settings or get_settings()
    scheduler = get_scheduler()
    await scheduler.start()

    if settings.escalation.sweep_enabled:
        scheduler.add_interval_job(
            name="Escalation Sweep",
            func=run_escalation_sweep,
            minutes=settings.escalation.sweep_interval_minutes,
        )

    if settings.notification.retry_enabled:
        scheduler.add_interval_job(
            name="Failed Notification Retry",
            func=run_notification_retry,
            minutes=settings.notification.retry_interval_minutes,
        )

    logger.info("Registered %d scheduled jobs", len(scheduler.list_jobs()))
    return scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None
