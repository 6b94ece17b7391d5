"""
RentalScheduler -- In-process cron scheduler for the lifecycle jobs.

Contract:
    Keeps a ``next_run_at`` per job computed from its cron spec.  ``tick()``
    runs every job whose ``next_run_at`` is at or before the clock's now,
    then advances ``next_run_at`` to the first match strictly after now.
    ``start()`` / ``stop()`` own a daemon thread that ticks on an interval.

Architecture: rental_batch.  Uses rental_batch.domain.schedule for pure cron
    evaluation and rental_batch.jobs for the handlers.

Invariants enforced:
    - All timestamps from the injected Clock.
    - One execution of a job finishes before the same job runs again.
      An overlapping trigger is skipped, logged, and reported as SKIPPED.
    - Each run gets its own session; a failing run never affects another.
    - Missed triggers (process paused past several matches) catch up with a
      single run, not one run per missed match.
    - Graceful shutdown: the loop checks the stop signal between jobs.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable
from uuid import uuid4

from sqlalchemy.orm import Session

from rental_batch.domain.schedule import CronSpec, next_cron_match, parse_cron
from rental_batch.domain.types import (
    JobContext,
    JobDefinition,
    JobRunResult,
    JobRunStatus,
)
from rental_batch.jobs import build_default_jobs
from rental_config.schema import RentalConfig
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.services.notifications import Notifier

logger = get_logger("batch.scheduler")

TRIGGER_SCHEDULE = "schedule"
TRIGGER_MANUAL = "manual"


@dataclass
class _JobState:
    definition: JobDefinition
    spec: CronSpec
    next_run_at: datetime | None
    lock: threading.Lock = field(default_factory=threading.Lock)
    last_run_at: datetime | None = None
    last_result: JobRunResult | None = None


class RentalScheduler:
    """In-process cron scheduler.

    Contract:
        - ``tick()`` fires due jobs and returns their results.
        - ``run_job(name)`` runs one job now, outside its schedule.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (no leader election, no persisted
          schedule state).  Run one scheduler per database.
        - Does NOT convert timezones; cron fields are evaluated against the
          clock's own datetimes.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        jobs: Iterable[JobDefinition] | None = None,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        tick_interval_seconds: int = 30,
        reminder_lead_days: int = 3,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._notifier = notifier or Notifier()
        self._tick_interval = tick_interval_seconds
        self._reminder_lead_days = reminder_lead_days
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        now = self._clock.now()
        self._states: dict[str, _JobState] = {}
        for definition in jobs if jobs is not None else build_default_jobs():
            if definition.name in self._states:
                raise ValueError(f"Duplicate job name: {definition.name}")
            spec = parse_cron(definition.cron)
            self._states[definition.name] = _JobState(
                definition=definition,
                spec=spec,
                next_run_at=(
                    next_cron_match(spec, now, inclusive=True) if definition.enabled else None
                ),
            )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def job_names(self) -> tuple[str, ...]:
        return tuple(self._states)

    def next_run_at(self, name: str) -> datetime | None:
        return self._state(name).next_run_at

    def last_result(self, name: str) -> JobRunResult | None:
        return self._state(name).last_result

    def tick(self) -> list[JobRunResult]:
        """Run every due job once (public for testing)."""
        now = self._clock.now()
        results: list[JobRunResult] = []

        for state in self._states.values():
            if self._stop_event.is_set():
                break
            if state.next_run_at is None or now < state.next_run_at:
                continue

            # Advance first so a long run is not re-fired by the next tick.
            state.next_run_at = next_cron_match(state.spec, now)
            results.append(self._execute(state, TRIGGER_SCHEDULE))

        return results

    def run_job(self, name: str) -> JobRunResult:
        """Run ``name`` immediately.  Its schedule is unaffected."""
        return self._execute(self._state(name), TRIGGER_MANUAL)

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="rental-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "tick_interval": self._tick_interval,
                "jobs": {
                    name: (s.next_run_at.isoformat() if s.next_run_at else None)
                    for name, s in self._states.items()
                },
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the running job (if any) to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _state(self, name: str) -> _JobState:
        try:
            return self._states[name]
        except KeyError:
            raise KeyError(f"Unknown job: {name}") from None

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set."""
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _execute(self, state: _JobState, trigger: str) -> JobRunResult:
        name = state.definition.name
        started_at = self._clock.now()

        if not state.lock.acquire(blocking=False):
            logger.warning(
                "job_run_skipped",
                extra={"job_name": name, "trigger": trigger, "reason": "already_running"},
            )
            return JobRunResult(
                job_name=name,
                status=JobRunStatus.SKIPPED,
                trigger=trigger,
                started_at=started_at,
                finished_at=started_at,
            )

        try:
            with LogContext.bind(job_name=name, correlation_id=str(uuid4())):
                result = self._run_handler(state, trigger, started_at)
            state.last_run_at = started_at
            state.last_result = result
            return result
        finally:
            state.lock.release()

    def _run_handler(
        self, state: _JobState, trigger: str, started_at: datetime
    ) -> JobRunResult:
        name = state.definition.name
        logger.info("job_run_started", extra={"trigger": trigger})

        session = self._session_factory()
        try:
            ctx = JobContext(
                job_name=name,
                session=session,
                clock=self._clock,
                notifier=self._notifier,
                now=started_at,
                reminder_lead_days=self._reminder_lead_days,
            )
            outcome = state.definition.handler(ctx)
            session.commit()
        except Exception as exc:
            session.rollback()
            logger.exception("job_run_failed", extra={"trigger": trigger})
            return JobRunResult(
                job_name=name,
                status=JobRunStatus.FAILED,
                trigger=trigger,
                started_at=started_at,
                finished_at=self._clock.now(),
                error=f"{type(exc).__name__}: {exc}",
            )
        finally:
            session.close()

        if outcome.failed == 0:
            status = JobRunStatus.COMPLETED
        elif outcome.processed == 0:
            status = JobRunStatus.FAILED
        else:
            status = JobRunStatus.PARTIALLY_COMPLETED

        result = JobRunResult(
            job_name=name,
            status=status,
            trigger=trigger,
            started_at=started_at,
            finished_at=self._clock.now(),
            processed=outcome.processed,
            failed=outcome.failed,
            detail=dict(outcome.detail),
        )
        logger.info(
            "job_run_completed",
            extra={
                "trigger": trigger,
                "status": status.value,
                "processed": outcome.processed,
                "failed": outcome.failed,
                "next_run_at": (
                    state.next_run_at.isoformat() if state.next_run_at else None
                ),
            },
        )
        return result


def build_scheduler(
    config: RentalConfig,
    session_factory: Callable[[], Session],
    clock: Clock | None = None,
    notifier: Notifier | None = None,
) -> RentalScheduler:
    """Wire a scheduler from configuration."""
    return RentalScheduler(
        session_factory=session_factory,
        jobs=build_default_jobs(config.scheduler),
        clock=clock,
        notifier=notifier,
        tick_interval_seconds=config.scheduler.tick_interval_seconds,
        reminder_lead_days=config.payments.reminder_lead_days,
    )
