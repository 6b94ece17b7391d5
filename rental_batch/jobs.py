"""
Scheduled job handlers (``rental_batch.jobs``).

Responsibility
--------------
The three recurring jobs that drive the payment lifecycle.  Each handler is
a thin adapter from a ``JobContext`` to ``PaymentService``; the business
rules live in the service.

Invariants enforced
-------------------
* Monthly creation isolates leases: one lease failing is logged and counted
  and the run moves on to the next lease.
* Handlers read time only from ``JobContext.now``.
"""

from __future__ import annotations

from rental_batch.domain.types import JobContext, JobDefinition, JobHandler, JobOutcome
from rental_config.schema import SchedulerConfig
from rental_kernel.domain.dates import first_of_next_month
from rental_kernel.logging_config import LogContext, get_logger
from rental_modules.leasing.store import SqlLeaseStore
from rental_modules.payments.service import PaymentService

logger = get_logger("batch.jobs")

OVERDUE_SWEEP = "overdue_sweep"
PAYMENT_REMINDERS = "payment_reminders"
MONTHLY_PAYMENT_CREATION = "monthly_payment_creation"

DEFAULT_CRONS: dict[str, str] = {
    OVERDUE_SWEEP: "0 9 * * *",
    PAYMENT_REMINDERS: "0 10 * * *",
    MONTHLY_PAYMENT_CREATION: "0 8 25 * *",
}


def _payment_service(ctx: JobContext) -> PaymentService:
    return PaymentService(
        ctx.session,
        clock=ctx.clock,
        notifier=ctx.notifier,
        reminder_lead_days=ctx.reminder_lead_days,
    )


def run_overdue_sweep(ctx: JobContext) -> JobOutcome:
    transitioned = _payment_service(ctx).sweep_overdue(now=ctx.now)
    return JobOutcome(
        processed=len(transitioned),
        detail={"payment_ids": [str(p.id) for p in transitioned]},
    )


def run_payment_reminders(ctx: JobContext) -> JobOutcome:
    reminded = _payment_service(ctx).send_due_reminders(now=ctx.now)
    return JobOutcome(processed=len(reminded))


def run_monthly_payment_creation(ctx: JobContext) -> JobOutcome:
    """Create next month's rent for every Active lease still running today."""
    today = ctx.now.date()
    month_start = first_of_next_month(today)
    service = _payment_service(ctx)
    leases = SqlLeaseStore(ctx.session).list_billable_leases(today)

    created = existing = skipped = failed = 0
    for lease in leases:
        with LogContext.bind(lease_id=str(lease.id)):
            try:
                result = service.create_monthly_payment(lease.id, month_start)
            except Exception:
                failed += 1
                logger.exception(
                    "monthly_payment_creation_failed",
                    extra={"billing_month": month_start.isoformat()},
                )
                continue
        if result.created:
            created += 1
        elif result.payment is None:
            skipped += 1
        else:
            existing += 1

    logger.info(
        "monthly_payment_creation_summary",
        extra={
            "billing_month": month_start.isoformat(),
            "lease_count": len(leases),
            "created_count": created,
            "existing_count": existing,
            "skipped_count": skipped,
            "failed_count": failed,
        },
    )
    return JobOutcome(
        processed=created + existing + skipped,
        failed=failed,
        detail={
            "billing_month": month_start.isoformat(),
            "created": created,
            "existing": existing,
            "skipped": skipped,
        },
    )


HANDLERS: dict[str, JobHandler] = {
    OVERDUE_SWEEP: run_overdue_sweep,
    PAYMENT_REMINDERS: run_payment_reminders,
    MONTHLY_PAYMENT_CREATION: run_monthly_payment_creation,
}


def build_default_jobs(config: SchedulerConfig | None = None) -> tuple[JobDefinition, ...]:
    """The three lifecycle jobs, with cron and enablement taken from ``config``.

    Jobs missing from ``config`` use ``DEFAULT_CRONS``.  Job names in
    ``config`` without a handler raise ``ValueError``.
    """
    configured = {j.name: j for j in config.jobs} if config is not None else {}
    unknown = sorted(set(configured) - set(HANDLERS))
    if unknown:
        raise ValueError(f"No handler for configured job(s): {unknown}")

    jobs = []
    for name, handler in HANDLERS.items():
        job_cfg = configured.get(name)
        jobs.append(
            JobDefinition(
                name=name,
                cron=job_cfg.cron if job_cfg else DEFAULT_CRONS[name],
                handler=handler,
                enabled=job_cfg.enabled if job_cfg else True,
            )
        )
    return tuple(jobs)
