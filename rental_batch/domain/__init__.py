"""Pure batch domain: cron evaluation and job result types."""

from rental_batch.domain.schedule import (
    CronSpec,
    matches_cron,
    next_cron_match,
    parse_cron,
)
from rental_batch.domain.types import (
    JobContext,
    JobDefinition,
    JobHandler,
    JobOutcome,
    JobRunResult,
    JobRunStatus,
)

__all__ = [
    "CronSpec",
    "JobContext",
    "JobDefinition",
    "JobHandler",
    "JobOutcome",
    "JobRunResult",
    "JobRunStatus",
    "matches_cron",
    "next_cron_match",
    "parse_cron",
]
