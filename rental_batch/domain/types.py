"""
rental_batch.domain.types -- Pure frozen dataclasses for the job system.

ZERO I/O apart from the session handle carried by ``JobContext``.

Invariants enforced:
    - Run results are frozen dataclasses (immutable once reported).
    - A ``JobRunResult`` always carries both timestamps from the injected
      clock, never from the wall clock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from sqlalchemy.orm import Session

from rental_kernel.domain.clock import Clock
from rental_kernel.services.notifications import Notifier


class JobRunStatus(str, Enum):
    """Outcome of one job execution."""

    COMPLETED = "completed"  # Every item processed
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed, run continued
    FAILED = "failed"  # Job-level failure
    SKIPPED = "skipped"  # Previous run of the same job still in progress


@dataclass(frozen=True)
class JobOutcome:
    """What a job handler reports back to the scheduler."""

    processed: int = 0
    failed: int = 0
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JobContext:
    """Everything a handler needs for one run.

    The scheduler opens ``session`` for this run only and closes it after
    the handler returns.
    """

    job_name: str
    session: Session
    clock: Clock
    notifier: Notifier
    now: datetime
    reminder_lead_days: int = 3


JobHandler = Callable[[JobContext], JobOutcome]


@dataclass(frozen=True)
class JobDefinition:
    name: str
    cron: str
    handler: JobHandler
    enabled: bool = True


@dataclass(frozen=True)
class JobRunResult:
    job_name: str
    status: JobRunStatus
    trigger: str  # "schedule" or "manual"
    started_at: datetime
    finished_at: datetime
    processed: int = 0
    failed: int = 0
    error: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == JobRunStatus.COMPLETED
