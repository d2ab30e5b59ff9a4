"""Runtime utilities for sharing scheduler state across components."""
from __future__ import annotations

from typing import Optional

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings

_scheduler: Optional[AsyncIOScheduler] = None
_poll_job: Optional[Job] = None


def configure_scheduler(scheduler: AsyncIOScheduler, poll_job: Job) -> None:
    """Register scheduler and poll job for later access."""
    global _scheduler, _poll_job
    _scheduler = scheduler
    _poll_job = poll_job


def update_check_interval(seconds: int) -> None:
    """Change how often prices are polled, rescheduling the job if running."""
    if seconds <= 0:
        raise ValueError("Interval must be positive")

    settings.CHECK_INTERVAL_SECONDS = seconds
    if _poll_job is None:
        return

    _poll_job.reschedule(trigger=IntervalTrigger(seconds=seconds))


def get_scheduler() -> Optional[AsyncIOScheduler]:
    return _scheduler


def get_poll_job() -> Optional[Job]:
    return _poll_job
