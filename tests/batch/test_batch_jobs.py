"""
Tests for the lifecycle job handlers driven through RentalScheduler.

Each run uses its own session from ``session_factory``; assertions read
back through a fresh session so nothing comes from a stale identity map.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from rental_batch.domain.types import JobRunStatus
from rental_batch.jobs import (
    MONTHLY_PAYMENT_CREATION,
    OVERDUE_SWEEP,
    PAYMENT_REMINDERS,
    build_default_jobs,
)
from rental_batch.scheduler import RentalScheduler
from rental_kernel.domain.values import LeaseStatus, PaymentStatus
from rental_kernel.services.notifications import NotificationEvent
from rental_modules.payments.ledger import SqlPaymentLedger
from rental_modules.payments.service import PaymentService


@pytest.fixture
def scheduler(session_factory, clock, notifier):
    return RentalScheduler(session_factory, clock=clock, notifier=notifier)


@pytest.fixture
def payments_of(session_factory):
    def _read(lease_id):
        with session_factory() as fresh:
            return SqlPaymentLedger(fresh).list_by_lease(lease_id)

    return _read


class TestBuildDefaultJobs:
    def test_three_jobs_with_default_crons(self):
        jobs = {j.name: j for j in build_default_jobs()}
        assert jobs[OVERDUE_SWEEP].cron == "0 9 * * *"
        assert jobs[PAYMENT_REMINDERS].cron == "0 10 * * *"
        assert jobs[MONTHLY_PAYMENT_CREATION].cron == "0 8 25 * *"
        assert all(j.enabled for j in jobs.values())


class TestMonthlyPaymentCreation:
    def test_creates_next_month_for_billable_leases(
        self, scheduler, clock, make_property, make_lease, make_payment, payments_of, sink
    ):
        prop = make_property()
        running = make_lease(prop.id)
        ending = make_lease(prop.id, end_date=date(2024, 6, 30))
        already = make_lease(prop.id)
        make_payment(already.id, due_date=date(2024, 7, 1), billing_month=date(2024, 7, 1))
        expired = make_lease(prop.id, status=LeaseStatus.EXPIRED)

        clock.set_time(datetime(2024, 6, 25, 8, 0))
        result = scheduler.run_job(MONTHLY_PAYMENT_CREATION)

        assert result.status == JobRunStatus.COMPLETED
        assert result.processed == 3
        assert result.detail == {"billing_month": "2024-07-01", "created": 1, "existing": 1, "skipped": 1}

        created = payments_of(running.id)
        assert len(created) == 1
        assert created[0].billing_month == date(2024, 7, 1)
        assert created[0].due_date == date(2024, 7, 1)
        assert created[0].amount_due == Decimal("1500.00")
        assert payments_of(ending.id) == []
        assert len(payments_of(already.id)) == 1
        assert payments_of(expired.id) == []
        assert len(sink.of_event(NotificationEvent.PAYMENT_DUE)) == 1

    def test_rerun_is_idempotent(self, scheduler, clock, lease, payments_of):
        clock.set_time(datetime(2024, 6, 25, 8, 0))
        scheduler.run_job(MONTHLY_PAYMENT_CREATION)
        second = scheduler.run_job(MONTHLY_PAYMENT_CREATION)

        assert second.detail["existing"] == 1
        assert second.detail["created"] == 0
        assert len(payments_of(lease.id)) == 1

    def test_one_failing_lease_does_not_stop_the_run(
        self, scheduler, clock, make_property, make_lease, payments_of, monkeypatch, captured_logs
    ):
        prop = make_property()
        good = make_lease(prop.id)
        bad = make_lease(prop.id)
        original = PaymentService.create_monthly_payment

        def flaky(self, lease_id, month_start):
            if lease_id == bad.id:
                raise RuntimeError("lease record corrupt")
            return original(self, lease_id, month_start)

        monkeypatch.setattr(PaymentService, "create_monthly_payment", flaky)
        clock.set_time(datetime(2024, 6, 25, 8, 0))

        result = scheduler.run_job(MONTHLY_PAYMENT_CREATION)

        assert result.status == JobRunStatus.PARTIALLY_COMPLETED
        assert (result.processed, result.failed) == (1, 1)
        assert len(payments_of(good.id)) == 1
        failures = [r for r in captured_logs() if r["message"] == "monthly_payment_creation_failed"]
        assert failures[0]["lease_id"] == str(bad.id)
        summary = [r for r in captured_logs() if r["message"] == "monthly_payment_creation_summary"]
        assert summary[0]["failed_count"] == 1


class TestOverdueSweepJob:
    def test_marks_past_due_open_payments(self, scheduler, clock, lease, make_payment, payments_of, sink):
        make_payment(lease.id, due_date=date(2024, 6, 1))
        make_payment(lease.id, due_date=date(2024, 5, 1), amount_paid="1500.00", status=PaymentStatus.PAID)
        make_payment(lease.id, due_date=date(2024, 7, 1))

        clock.set_time(datetime(2024, 6, 11, 9, 0))
        results = scheduler.tick()

        assert [r.job_name for r in results] == [OVERDUE_SWEEP]
        assert results[0].processed == 1
        statuses = {p.due_date: p.status for p in payments_of(lease.id)}
        assert statuses == {
            date(2024, 5, 1): PaymentStatus.PAID,
            date(2024, 6, 1): PaymentStatus.OVERDUE,
            date(2024, 7, 1): PaymentStatus.PENDING,
        }
        assert len(sink.of_event(NotificationEvent.PAYMENT_OVERDUE)) == 2

        # a second run finds nothing left to move
        assert scheduler.run_job(OVERDUE_SWEEP).processed == 0


class TestPaymentRemindersJob:
    def test_reminds_payments_due_in_lead_days(self, scheduler, clock, lease, make_payment, sink, tenant_id):
        due = make_payment(lease.id, due_date=date(2024, 6, 14))
        make_payment(lease.id, due_date=date(2024, 6, 15))

        clock.set_time(datetime(2024, 6, 11, 10, 0))
        result = scheduler.run_job(PAYMENT_REMINDERS)

        assert result.processed == 1
        reminders = sink.of_event(NotificationEvent.PAYMENT_REMINDER)
        assert len(reminders) == 1
        assert reminders[0].recipient_id == tenant_id
        assert reminders[0].payload["data"]["payment_id"] == str(due.id)
        assert reminders[0].payload["data"]["days_until_due"] == 3
