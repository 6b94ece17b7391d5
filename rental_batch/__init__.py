"""
rental_batch -- scheduled jobs for the rent payment lifecycle.

Public API:
    RentalScheduler / build_scheduler -- in-process cron scheduler.
    build_default_jobs -- the overdue sweep, reminder and monthly creation jobs.
"""

from rental_batch.domain.types import JobDefinition, JobRunResult, JobRunStatus
from rental_batch.jobs import (
    MONTHLY_PAYMENT_CREATION,
    OVERDUE_SWEEP,
    PAYMENT_REMINDERS,
    build_default_jobs,
)
from rental_batch.scheduler import RentalScheduler, build_scheduler

__all__ = [
    "JobDefinition",
    "JobRunResult",
    "JobRunStatus",
    "MONTHLY_PAYMENT_CREATION",
    "OVERDUE_SWEEP",
    "PAYMENT_REMINDERS",
    "RentalScheduler",
    "build_default_jobs",
    "build_scheduler",
]
