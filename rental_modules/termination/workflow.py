"""
Termination Request Workflow (``rental_modules.termination.workflow``).

Responsibility
--------------
The tenant/manager conversation around ending a lease early: a tenant
submits a request with a quick penalty estimate, the property's manager
approves or rejects it exactly once, and the tenant may withdraw it while
it is still pending.  Approval terminates the lease and books the penalty
as a payment.

Architecture position
---------------------
**Modules layer**.  Composes ``TerminationRequestStore``, ``LeaseStore``,
``PaymentLedger`` and, for read-time figures,
``TerminationPolicyService``.

Invariants enforced
-------------------
* Pending -> Approved | Rejected happens once: the transition is a
  conditional UPDATE on ``status = 'Pending'``; a second decision fails
  with RequestAlreadyDecidedError and re-applies no side effect.
* Approval cascades in the same transaction as the status change: lease
  Terminated with its termination date, plus a termination-penalty payment
  due on the approved end date when the fee is positive.
* Withdrawal deletes the request only while it is Pending.
* Notifications are sent after commit.

Failure modes
-------------
* LeaseNotFoundError when the tenant has no active lease with that id.
* InvalidInputError / InvalidTerminationDateError / InvalidDecisionError
  for bad input.
* TerminationRequestNotFoundError, AccessDeniedError,
  RequestAlreadyDecidedError on decide / withdraw.
* LeaseNotActiveError when approving a request whose lease was already
  terminated (for example by another approved request); nothing is
  written and the request stays Pending.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from rental_engines.termination_policy import estimate_notice_penalty
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dates import days_until
from rental_kernel.domain.values import (
    ZERO,
    PaymentKind,
    TerminationRequestStatus,
    round_money,
    to_decimal,
)
from rental_kernel.exceptions import (
    AccessDeniedError,
    InvalidDecisionError,
    InvalidInputError,
    InvalidTerminationDateError,
    LeaseNotFoundError,
    RequestAlreadyDecidedError,
    TerminationRequestNotFoundError,
)
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.services.notifications import NotificationEvent, Notifier
from rental_modules.leasing.store import LeaseStore, SqlLeaseStore
from rental_modules.payments.ledger import PaymentLedger, SqlPaymentLedger
from rental_modules.payments.models import Payment
from rental_modules.termination.models import (
    Decision,
    TerminationRequest,
    TerminationRequestDetails,
)
from rental_modules.termination.policy_service import TerminationPolicyService
from rental_modules.termination.request_store import (
    SqlTerminationRequestStore,
    TerminationRequestStore,
)

logger = get_logger("modules.termination.workflow")

NO_PENALTY_DAYS = 60
HALF_PENALTY_DAYS = 30


class TerminationRequestWorkflow:
    """
    Early termination requests.

    Contract
    --------
    * ``submit`` requires an Active lease owned by the tenant and a
      requested end date that is not in the past.
    * ``decide`` requires the caller to be the request's manager.

    Guarantees
    ----------
    * ``decide`` defaults ``approved_end_date`` to the requested end date
      and ``final_penalty_fee`` to the submit-time estimate.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        request_store: TerminationRequestStore | None = None,
        lease_store: LeaseStore | None = None,
        ledger: PaymentLedger | None = None,
        policy_service: TerminationPolicyService | None = None,
        no_penalty_days: int = NO_PENALTY_DAYS,
        half_penalty_days: int = HALF_PENALTY_DAYS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or Notifier()
        self._requests = request_store or SqlTerminationRequestStore(session)
        self._leases = lease_store or SqlLeaseStore(session)
        self._ledger = ledger or SqlPaymentLedger(session)
        self._policy_service = policy_service
        self._no_penalty_days = no_penalty_days
        self._half_penalty_days = half_penalty_days

    # =========================================================================
    # Tenant side
    # =========================================================================

    def submit(
        self,
        lease_id: UUID,
        tenant_id: UUID,
        reason: str,
        requested_end_date: date,
    ) -> TerminationRequest:
        if not reason or not reason.strip():
            raise InvalidInputError("reason is required", field="reason")
        if requested_end_date is None:
            raise InvalidInputError("requestedEndDate is required", field="requestedEndDate")

        now = self._clock.now()
        with LogContext.bind(lease_id=str(lease_id), actor_id=str(tenant_id)):
            try:
                parties = self._leases.get_lease_parties(lease_id)
                if (
                    parties is None
                    or parties.lease.tenant_id != tenant_id
                    or not parties.lease.is_active
                ):
                    raise LeaseNotFoundError(
                        str(lease_id), reason="no active lease for this tenant"
                    )
                lease = parties.lease

                if requested_end_date < now.date():
                    raise InvalidTerminationDateError(
                        requested_end_date.isoformat(), "date is in the past"
                    )

                days_notice = days_until(requested_end_date, now)
                estimate = estimate_notice_penalty(
                    lease.rent,
                    days_notice,
                    no_penalty_days=self._no_penalty_days,
                    half_penalty_days=self._half_penalty_days,
                )
                request = self._requests.add(
                    TerminationRequest(
                        id=uuid4(),
                        lease_id=lease_id,
                        tenant_id=tenant_id,
                        manager_id=parties.manager_id,
                        reason=reason.strip(),
                        requested_end_date=requested_end_date,
                        estimated_penalty_fee=estimate,
                        is_early_termination=requested_end_date < lease.end_date,
                        requested_date=now,
                    )
                )
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "termination_request_submitted",
                extra={
                    "request_id": str(request.id),
                    "days_notice": days_notice,
                    "estimated_penalty_fee": str(estimate),
                },
            )

        self._notifier.notify(
            parties.manager_id,
            NotificationEvent.TERMINATION_REQUESTED,
            "New Lease Termination Request",
            f"The tenant of lease {lease_id} has requested to end the lease on "
            f"{requested_end_date.isoformat()}.",
            termination_request_id=str(request.id),
            property_id=str(lease.property_id),
        )
        return request

    def withdraw(self, request_id: UUID, tenant_id: UUID) -> None:
        """Delete a still-pending request owned by ``tenant_id``."""
        try:
            request = self._requests.get(request_id)
            if request is None or request.tenant_id != tenant_id:
                raise TerminationRequestNotFoundError(str(request_id))
            if not request.is_pending:
                raise RequestAlreadyDecidedError(str(request_id), request.status.value)
            if not self._requests.delete_if_pending(request_id):
                current = self._requests.get(request_id)
                raise RequestAlreadyDecidedError(
                    str(request_id), current.status.value if current else "Deleted"
                )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("termination_request_withdrawn", extra={"request_id": str(request_id)})

    def list_for_tenant(self, tenant_id: UUID) -> list[TerminationRequest]:
        return self._requests.list_for_tenant(tenant_id)

    # =========================================================================
    # Manager side
    # =========================================================================

    def decide(
        self,
        request_id: UUID,
        manager_id: UUID,
        status: TerminationRequestStatus | str,
        manager_response: str | None = None,
        final_penalty_fee: Decimal | int | str | None = None,
        approved_end_date: date | None = None,
    ) -> TerminationRequest:
        decided_status = _parse_decision_status(status)
        fee = _parse_fee(final_penalty_fee)

        with LogContext.bind(actor_id=str(manager_id)):
            try:
                request = self._requests.get(request_id)
                if request is None:
                    raise TerminationRequestNotFoundError(str(request_id))
                if request.manager_id != manager_id:
                    raise AccessDeniedError(str(manager_id), f"termination request {request_id}")
                if not request.is_pending:
                    raise RequestAlreadyDecidedError(str(request_id), request.status.value)

                approved = decided_status == TerminationRequestStatus.APPROVED
                decision = Decision(
                    status=decided_status,
                    manager_response=manager_response,
                    final_penalty_fee=(
                        (fee if fee is not None else request.estimated_penalty_fee)
                        if approved
                        else fee
                    ),
                    approved_end_date=(
                        (approved_end_date or request.requested_end_date) if approved else None
                    ),
                    response_date=self._clock.now(),
                )

                if not self._requests.apply_decision(request_id, decision):
                    current = self._requests.get(request_id)
                    raise RequestAlreadyDecidedError(
                        str(request_id), current.status.value if current else "Deleted"
                    )

                penalty_payment = None
                if approved:
                    self._leases.terminate(
                        request.lease_id,
                        decision.approved_end_date,
                        reason=request.reason,
                    )
                    if decision.final_penalty_fee > ZERO:
                        penalty_payment = self._ledger.create(
                            Payment(
                                id=uuid4(),
                                lease_id=request.lease_id,
                                amount_due=decision.final_penalty_fee,
                                due_date=decision.approved_end_date,
                                kind=PaymentKind.TERMINATION_PENALTY,
                                billing_month=None,
                                description="Early termination penalty",
                            )
                        )

                decided = self._requests.get(request_id)
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "termination_request_decided",
                extra={
                    "request_id": str(request_id),
                    "lease_id": str(request.lease_id),
                    "status": decided_status.value,
                    "final_penalty_fee": str(decision.final_penalty_fee),
                    "penalty_payment_id": str(penalty_payment.id) if penalty_payment else None,
                },
            )

        if approved:
            self._notifier.notify(
                request.tenant_id,
                NotificationEvent.TERMINATION_APPROVED,
                "Termination Request Approved",
                f"Your lease will end on {decision.approved_end_date.isoformat()}. "
                f"Penalty: ${decision.final_penalty_fee}.",
                termination_request_id=str(request_id),
                manager_response=manager_response,
            )
        else:
            self._notifier.notify(
                request.tenant_id,
                NotificationEvent.TERMINATION_REJECTED,
                "Termination Request Rejected",
                manager_response or "Your termination request was rejected.",
                termination_request_id=str(request_id),
            )
        return decided

    def list_for_manager(
        self,
        manager_id: UUID,
        property_id: UUID | None = None,
        status: TerminationRequestStatus | str | None = None,
    ) -> list[TerminationRequest]:
        parsed = None
        if status is not None:
            try:
                parsed = TerminationRequestStatus(status)
            except ValueError as exc:
                raise InvalidInputError(f"Unknown status: {status}", field="status") from exc
        return self._requests.list_for_manager(manager_id, property_id=property_id, status=parsed)

    # =========================================================================
    # Either side
    # =========================================================================

    def get_details(self, request_id: UUID, user_id: UUID) -> TerminationRequestDetails:
        """A request visible to its tenant or its manager, with live figures."""
        request = self._requests.get(request_id)
        if request is None or user_id not in (request.tenant_id, request.manager_id):
            raise TerminationRequestNotFoundError(str(request_id))

        lease = self._leases.get_lease(request.lease_id)
        if lease is None:
            raise LeaseNotFoundError(str(request.lease_id))

        now = self._clock.now()
        days_left = days_until(request.requested_end_date, now)
        calculation = None
        if self._policy_service is not None:
            calculation = self._policy_service.calculate_penalty(
                lease.property_id, lease.id, request.requested_end_date
            )

        return TerminationRequestDetails(
            request=request,
            property_id=lease.property_id,
            lease_end_date=lease.end_date,
            monthly_rent=lease.rent,
            is_early_termination=request.requested_end_date < lease.end_date,
            estimated_penalty=estimate_notice_penalty(
                lease.rent,
                days_left,
                no_penalty_days=self._no_penalty_days,
                half_penalty_days=self._half_penalty_days,
            ),
            days_until_requested_end=days_left,
            calculation=calculation,
        )


def _parse_decision_status(status: TerminationRequestStatus | str) -> TerminationRequestStatus:
    try:
        parsed = TerminationRequestStatus(status)
    except ValueError as exc:
        raise InvalidDecisionError(f"status must be Approved or Rejected, got {status!r}") from exc
    if parsed == TerminationRequestStatus.PENDING:
        raise InvalidDecisionError("status must be Approved or Rejected, got 'Pending'")
    return parsed


def _parse_fee(raw: Decimal | int | str | None) -> Decimal | None:
    if raw is None:
        return None
    try:
        fee = to_decimal(raw)
    except ValueError as exc:
        raise InvalidDecisionError(
            "finalPenaltyFee must be a number", field="finalPenaltyFee"
        ) from exc
    if fee < ZERO:
        raise InvalidDecisionError("finalPenaltyFee must be >= 0", field="finalPenaltyFee")
    return round_money(fee)
