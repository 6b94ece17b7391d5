"""
Tests for rental_modules.termination.workflow.

Submit (ownership, date checks, notice estimate), the single decision with
its approval cascade, withdrawal while pending, listings and read-time
details.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_kernel.domain.values import (
    LeaseStatus,
    PaymentKind,
    PaymentStatus,
    TerminationRequestStatus,
)
from rental_kernel.exceptions import (
    AccessDeniedError,
    InvalidDecisionError,
    InvalidInputError,
    InvalidTerminationDateError,
    LeaseNotActiveError,
    LeaseNotFoundError,
    RequestAlreadyDecidedError,
    TerminationRequestNotFoundError,
)
from rental_kernel.services.notifications import NotificationEvent
from rental_modules.leasing.store import SqlLeaseStore
from rental_modules.payments.ledger import SqlPaymentLedger


@pytest.fixture
def submitted(workflow, lease, tenant_id):
    """A pending request ending 2024-07-31 (51 days notice -> half a month)."""
    return workflow.submit(lease.id, tenant_id, "Relocating for work", date(2024, 7, 31))


class TestSubmit:
    @pytest.mark.parametrize(
        "end_date,expected",
        [
            (date(2024, 9, 30), "0.00"),
            (date(2024, 7, 31), "750.00"),
            (date(2024, 6, 30), "1500.00"),
        ],
    )
    def test_estimate_by_notice(self, workflow, lease, tenant_id, end_date, expected):
        request = workflow.submit(lease.id, tenant_id, "Moving", end_date)
        assert request.estimated_penalty_fee == Decimal(expected)
        assert request.status == TerminationRequestStatus.PENDING
        assert request.is_early_termination is True

    def test_records_parties_and_notifies_manager(self, workflow, lease, tenant_id, manager_id, sink):
        request = workflow.submit(lease.id, tenant_id, "  Moving  ", date(2024, 9, 30))

        assert request.manager_id == manager_id
        assert request.tenant_id == tenant_id
        assert request.reason == "Moving"
        sent = sink.of_event(NotificationEvent.TERMINATION_REQUESTED)
        assert len(sent) == 1
        assert sent[0].recipient_id == manager_id
        assert sent[0].payload["data"]["termination_request_id"] == str(request.id)

    def test_end_on_lease_end_is_not_early(self, workflow, lease, tenant_id):
        request = workflow.submit(lease.id, tenant_id, "Done", date(2024, 12, 31))
        assert request.is_early_termination is False

    def test_today_allowed(self, workflow, lease, tenant_id):
        request = workflow.submit(lease.id, tenant_id, "Urgent", date(2024, 6, 10))
        assert request.estimated_penalty_fee == Decimal("1500.00")

    def test_past_date_rejected(self, workflow, lease, tenant_id):
        with pytest.raises(InvalidTerminationDateError):
            workflow.submit(lease.id, tenant_id, "Moving", date(2024, 6, 9))

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reason_required(self, workflow, lease, tenant_id, reason):
        with pytest.raises(InvalidInputError):
            workflow.submit(lease.id, tenant_id, reason, date(2024, 9, 30))

    def test_other_tenant(self, workflow, lease):
        with pytest.raises(LeaseNotFoundError):
            workflow.submit(lease.id, uuid4(), "Moving", date(2024, 9, 30))

    def test_inactive_lease(self, workflow, make_property, make_lease, tenant_id):
        expired = make_lease(make_property().id, status=LeaseStatus.EXPIRED)
        with pytest.raises(LeaseNotFoundError):
            workflow.submit(expired.id, tenant_id, "Moving", date(2024, 9, 30))

    def test_custom_thresholds(self, session, clock, notifier, lease, tenant_id):
        from rental_modules.termination.workflow import TerminationRequestWorkflow

        lenient = TerminationRequestWorkflow(
            session, clock=clock, notifier=notifier, no_penalty_days=45, half_penalty_days=20
        )
        request = lenient.submit(lease.id, tenant_id, "Moving", date(2024, 7, 31))
        assert request.estimated_penalty_fee == Decimal("0.00")


class TestDecide:
    def test_approve_terminates_lease_and_books_penalty(
        self, workflow, session, submitted, manager_id, tenant_id, sink
    ):
        decided = workflow.decide(submitted.id, manager_id, "Approved", manager_response="OK")

        assert decided.status == TerminationRequestStatus.APPROVED
        assert decided.approved_end_date == date(2024, 7, 31)
        assert decided.final_penalty_fee == Decimal("750.00")
        assert decided.response_date is not None

        lease = SqlLeaseStore(session).get_lease(submitted.lease_id)
        assert lease.status == LeaseStatus.TERMINATED
        assert lease.termination_date == date(2024, 7, 31)

        payments = SqlPaymentLedger(session).list_by_lease(submitted.lease_id)
        penalties = [p for p in payments if p.kind == PaymentKind.TERMINATION_PENALTY]
        assert len(penalties) == 1
        assert penalties[0].amount_due == Decimal("750.00")
        assert penalties[0].due_date == date(2024, 7, 31)
        assert penalties[0].status == PaymentStatus.PENDING
        assert penalties[0].billing_month is None
        assert penalties[0].description == "Early termination penalty"

        approved = sink.of_event(NotificationEvent.TERMINATION_APPROVED)
        assert [n.recipient_id for n in approved] == [tenant_id]

    def test_manager_overrides(self, workflow, session, submitted, manager_id):
        decided = workflow.decide(
            submitted.id,
            manager_id,
            TerminationRequestStatus.APPROVED,
            final_penalty_fee="200",
            approved_end_date=date(2024, 8, 15),
        )
        assert decided.final_penalty_fee == Decimal("200.00")
        lease = SqlLeaseStore(session).get_lease(submitted.lease_id)
        assert lease.termination_date == date(2024, 8, 15)

    def test_zero_fee_books_no_payment(self, workflow, session, submitted, manager_id):
        workflow.decide(submitted.id, manager_id, "Approved", final_penalty_fee=0)
        payments = SqlPaymentLedger(session).list_by_lease(submitted.lease_id)
        assert not [p for p in payments if p.kind == PaymentKind.TERMINATION_PENALTY]

    def test_reject_leaves_lease_active(self, workflow, session, submitted, manager_id, tenant_id, sink):
        decided = workflow.decide(submitted.id, manager_id, "Rejected", manager_response="No")

        assert decided.status == TerminationRequestStatus.REJECTED
        assert decided.approved_end_date is None
        assert SqlLeaseStore(session).get_lease(submitted.lease_id).status == LeaseStatus.ACTIVE
        assert SqlPaymentLedger(session).list_by_lease(submitted.lease_id) == []
        rejected = sink.of_event(NotificationEvent.TERMINATION_REJECTED)
        assert rejected[0].recipient_id == tenant_id
        assert rejected[0].payload["message"] == "No"

    def test_decided_only_once(self, workflow, session, submitted, manager_id):
        workflow.decide(submitted.id, manager_id, "Approved")
        with pytest.raises(RequestAlreadyDecidedError):
            workflow.decide(submitted.id, manager_id, "Rejected")

        payments = SqlPaymentLedger(session).list_by_lease(submitted.lease_id)
        assert len(payments) == 1
        assert workflow.list_for_tenant(submitted.tenant_id)[0].status == TerminationRequestStatus.APPROVED

    def test_second_approval_on_terminated_lease_writes_nothing(
        self, workflow, session_factory, lease, tenant_id, manager_id
    ):
        first = workflow.submit(lease.id, tenant_id, "Relocating", date(2024, 7, 31))
        second = workflow.submit(lease.id, tenant_id, "Changed plans", date(2024, 6, 30))
        workflow.decide(first.id, manager_id, "Approved")

        with pytest.raises(LeaseNotActiveError) as excinfo:
            workflow.decide(second.id, manager_id, "Approved")
        assert excinfo.value.current_status == LeaseStatus.TERMINATED.value

        with session_factory() as fresh:
            stored = SqlLeaseStore(fresh).get_lease(lease.id)
            payments = SqlPaymentLedger(fresh).list_by_lease(lease.id)
        assert stored.termination_date == date(2024, 7, 31)
        penalties = [p for p in payments if p.kind == PaymentKind.TERMINATION_PENALTY]
        assert [p.amount_due for p in penalties] == [Decimal("750.00")]
        statuses = {r.id: r.status for r in workflow.list_for_tenant(tenant_id)}
        assert statuses[second.id] == TerminationRequestStatus.PENDING

    def test_other_manager(self, workflow, submitted):
        with pytest.raises(AccessDeniedError):
            workflow.decide(submitted.id, uuid4(), "Approved")

    def test_unknown_request(self, workflow, manager_id):
        with pytest.raises(TerminationRequestNotFoundError):
            workflow.decide(uuid4(), manager_id, "Approved")

    @pytest.mark.parametrize("status", ["Pending", "Maybe", ""])
    def test_invalid_status(self, workflow, submitted, manager_id, status):
        with pytest.raises(InvalidDecisionError):
            workflow.decide(submitted.id, manager_id, status)

    @pytest.mark.parametrize("fee", ["-5", "abc"])
    def test_invalid_fee(self, workflow, submitted, manager_id, fee):
        with pytest.raises(InvalidDecisionError):
            workflow.decide(submitted.id, manager_id, "Approved", final_penalty_fee=fee)

    def test_terminated_lease_stops_monthly_billing(self, workflow, payment_service, submitted, manager_id):
        workflow.decide(submitted.id, manager_id, "Approved")

        july = payment_service.create_monthly_payment(submitted.lease_id, date(2024, 7, 1))
        august = payment_service.create_monthly_payment(submitted.lease_id, date(2024, 8, 1))

        assert july.created
        assert august.payment is None
        assert august.skipped_reason == "lease_ended"


class TestWithdraw:
    def test_pending_request_removed(self, workflow, submitted, tenant_id):
        workflow.withdraw(submitted.id, tenant_id)
        assert workflow.list_for_tenant(tenant_id) == []

    def test_other_tenant_sees_not_found(self, workflow, submitted):
        with pytest.raises(TerminationRequestNotFoundError):
            workflow.withdraw(submitted.id, uuid4())

    def test_decided_request_kept(self, workflow, submitted, tenant_id, manager_id):
        workflow.decide(submitted.id, manager_id, "Rejected")
        with pytest.raises(RequestAlreadyDecidedError):
            workflow.withdraw(submitted.id, tenant_id)
        assert len(workflow.list_for_tenant(tenant_id)) == 1


class TestListings:
    def test_manager_filters(self, workflow, make_property, make_lease, tenant_id, manager_id):
        first = make_property(name="A")
        second = make_property(name="B")
        on_first = workflow.submit(make_lease(first.id).id, tenant_id, "x", date(2024, 9, 30))
        on_second = workflow.submit(make_lease(second.id).id, tenant_id, "y", date(2024, 9, 30))
        workflow.decide(on_second.id, manager_id, "Rejected")

        assert {r.id for r in workflow.list_for_manager(manager_id)} == {on_first.id, on_second.id}
        assert [r.id for r in workflow.list_for_manager(manager_id, property_id=first.id)] == [on_first.id]
        assert [r.id for r in workflow.list_for_manager(manager_id, status="Pending")] == [on_first.id]
        assert workflow.list_for_manager(uuid4()) == []

    def test_manager_unknown_status(self, workflow, manager_id):
        with pytest.raises(InvalidInputError):
            workflow.list_for_manager(manager_id, status="Open")

    def test_tenant_sees_own(self, workflow, submitted, tenant_id):
        assert [r.id for r in workflow.list_for_tenant(tenant_id)] == [submitted.id]
        assert workflow.list_for_tenant(uuid4()) == []


class TestDetails:
    def test_figures_recomputed(self, workflow, submitted, tenant_id, manager_id, clock):
        clock.advance_days(10)

        details = workflow.get_details(submitted.id, tenant_id)

        assert details.request.id == submitted.id
        assert details.lease_end_date == date(2024, 12, 31)
        assert details.monthly_rent == Decimal("1500.00")
        assert details.is_early_termination
        assert details.days_until_requested_end == 41
        assert details.estimated_penalty == Decimal("750.00")
        # 5 months remaining under the default policy -> half a month
        assert details.calculation.penalty_amount == Decimal("750.00")
        assert workflow.get_details(submitted.id, manager_id).request.id == submitted.id

    def test_stranger(self, workflow, submitted):
        with pytest.raises(TerminationRequestNotFoundError):
            workflow.get_details(submitted.id, uuid4())
