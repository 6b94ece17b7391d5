"""
Payment Module Service (``rental_modules.payments.service``).

Responsibility
--------------
Orchestrates the rent payment lifecycle: monthly obligation creation,
recording money received, the overdue sweep, due-date reminders and the
read views shown to tenants and managers.  Status arithmetic is delegated
to ``rental_engines.payment_state``; persistence to ``PaymentLedger`` and
``LeaseStore``.

Architecture position
---------------------
**Modules layer**.  ``PaymentService`` is the sole public entry point for
payment operations.  The scheduler jobs and the HTTP routers both call it.

Invariants enforced
-------------------
* Each mutating method owns the transaction boundary (``commit`` on
  success, ``rollback`` and re-raise on any exception).
* At most one rent payment per (lease, month): checked before insert and
  re-validated by the store's unique constraint at insert time.
* Record-payment reads the payment under a row lock.
* The overdue transition is a conditional UPDATE, so concurrent or repeated
  sweeps transition each payment at most once.
* Notifications are sent after commit and can never fail the mutation.

Failure modes
-------------
* PaymentNotFoundError / LeaseNotFoundError for unknown ids.
* InvalidPaymentAmountError for negative or non-numeric amounts.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from rental_engines.payment_state import apply_payment, mark_overdue
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.dates import add_days, first_of_month, first_of_next_month
from rental_kernel.domain.values import (
    OPEN_PAYMENT_STATUSES,
    ZERO,
    PaymentKind,
    PaymentStatus,
    round_money,
    to_decimal,
)
from rental_kernel.exceptions import (
    DuplicatePaymentPeriodError,
    InvalidPaymentAmountError,
    LeaseNotFoundError,
    PaymentNotFoundError,
)
from rental_kernel.logging_config import LogContext, get_logger
from rental_kernel.services.notifications import NotificationEvent, Notifier
from rental_modules.leasing.models import LeaseParties
from rental_modules.leasing.store import LeaseStore, SqlLeaseStore
from rental_modules.payments.ledger import PaymentLedger, SqlPaymentLedger, with_status
from rental_modules.payments.models import CurrentMonthStatus, Payment, PaymentCreation

logger = get_logger("modules.payments.service")

DEFAULT_REMINDER_LEAD_DAYS = 3


class PaymentService:
    """
    Rent payment lifecycle.

    Contract
    --------
    * ``create_monthly_payment`` is idempotent per (lease, month).
    * ``record_payment`` only ever increases ``amount_paid``.
    * ``sweep_overdue`` returns exactly the payments it transitioned.

    Guarantees
    ----------
    * Clock is injectable; no method reads the wall clock directly.
    * All amounts are ``Decimal``.

    Non-goals
    ---------
    * Does NOT prorate partial months.
    * Does NOT refund or credit overpayments; they are stored as given.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        ledger: PaymentLedger | None = None,
        lease_store: LeaseStore | None = None,
        reminder_lead_days: int = DEFAULT_REMINDER_LEAD_DAYS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or Notifier()
        self._ledger = ledger or SqlPaymentLedger(session)
        self._leases = lease_store or SqlLeaseStore(session)
        self._reminder_lead_days = reminder_lead_days

    # =========================================================================
    # Recording
    # =========================================================================

    def record_payment(
        self,
        payment_id: UUID,
        amount: Decimal | int | str,
        paid_on: date | None = None,
    ) -> Payment:
        """Add ``amount`` to a payment's amount paid and advance its status."""
        try:
            increment = to_decimal(amount)
        except ValueError as exc:
            raise InvalidPaymentAmountError(str(amount)) from exc
        if increment < ZERO:
            raise InvalidPaymentAmountError(str(amount))
        # amount_paid is stored to the cent
        increment = round_money(increment)
        paid_on = paid_on or self._clock.today()

        try:
            current = self._ledger.get_for_update(payment_id)
            if current is None:
                raise PaymentNotFoundError(str(payment_id))

            transition = apply_payment(
                amount_due=current.amount_due,
                amount_paid=current.amount_paid,
                status=current.status,
                payment_date=current.payment_date,
                increment=increment,
                paid_on=paid_on,
            )
            updated = self._ledger.update_settlement(
                payment_id,
                amount_paid=transition.new_amount_paid,
                status=transition.new_status,
                payment_date=transition.payment_date,
            )
            parties = self._leases.get_lease_parties(updated.lease_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment_id),
                "lease_id": str(updated.lease_id),
                "increment": str(increment),
                "amount_paid": str(updated.amount_paid),
                "status": updated.status.value,
                "overpaid_by": str(transition.overpaid_by),
            },
        )

        if updated.status == PaymentStatus.PAID and parties is not None:
            self._notifier.notify(
                parties.manager_id,
                NotificationEvent.PAYMENT_RECEIVED,
                "Payment Received",
                f"Payment of ${increment} received for lease {updated.lease_id}",
                payment_id=str(updated.id),
                lease_id=str(updated.lease_id),
                amount=str(increment),
            )
        return updated

    # =========================================================================
    # Creation
    # =========================================================================

    def create_monthly_payment(self, lease_id: UUID, month_start: date) -> PaymentCreation:
        """Ensure the rent payment for ``month_start``'s month exists.

        Returns the existing payment untouched (``created=False``) when one is
        already there, including when a concurrent caller inserted it first.
        """
        billing_month = first_of_month(month_start)

        with LogContext.bind(lease_id=str(lease_id)):
            try:
                parties = self._leases.get_lease_parties(lease_id)
                if parties is None:
                    raise LeaseNotFoundError(str(lease_id))
                lease = parties.lease

                existing = self._ledger.find_rent_for_month(lease_id, billing_month)
                if existing is not None:
                    self._session.commit()
                    logger.debug(
                        "monthly_payment_exists",
                        extra={"billing_month": billing_month.isoformat()},
                    )
                    return PaymentCreation(payment=existing, created=False)

                if billing_month > lease.effective_end_date:
                    self._session.commit()
                    logger.info(
                        "monthly_payment_skipped",
                        extra={
                            "billing_month": billing_month.isoformat(),
                            "reason": "lease_ended",
                        },
                    )
                    return PaymentCreation(
                        payment=None, created=False, skipped_reason="lease_ended"
                    )

                candidate = Payment(
                    id=uuid4(),
                    lease_id=lease_id,
                    amount_due=lease.rent,
                    due_date=billing_month,
                    kind=PaymentKind.RENT,
                    billing_month=billing_month,
                    description=f"Rent for {billing_month:%B %Y}",
                )
                try:
                    created = self._ledger.create(candidate)
                except DuplicatePaymentPeriodError:
                    winner = self._ledger.find_rent_for_month(lease_id, billing_month)
                    self._session.commit()
                    return PaymentCreation(payment=winner, created=False)

                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "monthly_payment_created",
                extra={
                    "payment_id": str(created.id),
                    "billing_month": billing_month.isoformat(),
                    "amount_due": str(created.amount_due),
                },
            )

        self._notify_due(parties, created)
        return PaymentCreation(payment=created, created=True)

    def create_current_month_payment(self, lease_id: UUID) -> PaymentCreation:
        """Rent for the clock's current month, used when a lease starts."""
        return self.create_monthly_payment(lease_id, first_of_month(self._clock.today()))

    def create_next_month_payment(self, lease_id: UUID) -> PaymentCreation:
        return self.create_monthly_payment(lease_id, first_of_next_month(self._clock.today()))

    # =========================================================================
    # Sweeps
    # =========================================================================

    def sweep_overdue(self, now: datetime | None = None) -> tuple[Payment, ...]:
        """Move every open payment whose due date has passed to Overdue."""
        as_of = now or self._clock.now()
        transitioned: list[Payment] = []
        parties_by_lease: dict[UUID, LeaseParties | None] = {}

        try:
            for payment in self._ledger.list_open_due_before(as_of.date()):
                target = mark_overdue(payment.status, payment.due_date, as_of)
                if target is None:
                    continue
                if not self._ledger.transition_status(
                    payment.id, OPEN_PAYMENT_STATUSES, target
                ):
                    logger.debug(
                        "overdue_transition_skipped",
                        extra={"payment_id": str(payment.id)},
                    )
                    continue
                transitioned.append(with_status(payment, target))
                if payment.lease_id not in parties_by_lease:
                    parties_by_lease[payment.lease_id] = self._leases.get_lease_parties(
                        payment.lease_id
                    )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "overdue_sweep_completed",
            extra={"as_of": as_of.date().isoformat(), "transitioned": len(transitioned)},
        )

        for payment in transitioned:
            parties = parties_by_lease.get(payment.lease_id)
            if parties is None:
                continue
            outstanding = payment.balance
            self._notifier.notify(
                parties.lease.tenant_id,
                NotificationEvent.PAYMENT_OVERDUE,
                "Payment Overdue",
                f"Payment of ${outstanding} was due on {payment.due_date.isoformat()}",
                payment_id=str(payment.id),
                lease_id=str(payment.lease_id),
                audience="tenant",
            )
            self._notifier.notify(
                parties.manager_id,
                NotificationEvent.PAYMENT_OVERDUE,
                "Overdue Payment Alert",
                f"Lease {payment.lease_id} has ${outstanding} overdue since "
                f"{payment.due_date.isoformat()}",
                payment_id=str(payment.id),
                lease_id=str(payment.lease_id),
                audience="manager",
            )
        return tuple(transitioned)

    def send_due_reminders(
        self,
        now: datetime | None = None,
        lead_days: int | None = None,
    ) -> tuple[Payment, ...]:
        """One reminder per Pending payment due exactly ``lead_days`` ahead.

        Not deduplicated: running twice on the same day reminds twice.
        """
        as_of = now or self._clock.now()
        lead = self._reminder_lead_days if lead_days is None else lead_days
        target_day = add_days(as_of.date(), lead)

        due = self._ledger.list_pending_due_on(target_day)
        for payment in due:
            parties = self._leases.get_lease_parties(payment.lease_id)
            if parties is None:
                continue
            self._notifier.notify(
                parties.lease.tenant_id,
                NotificationEvent.PAYMENT_REMINDER,
                "Payment Due",
                f"Payment of ${payment.balance} is due on {payment.due_date.isoformat()}",
                payment_id=str(payment.id),
                lease_id=str(payment.lease_id),
                days_until_due=lead,
            )

        logger.info(
            "payment_reminders_sent",
            extra={"due_date": target_day.isoformat(), "count": len(due)},
        )
        return tuple(due)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_payment(self, payment_id: UUID) -> Payment:
        payment = self._ledger.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(str(payment_id))
        return payment

    def get_payments_by_lease(self, lease_id: UUID) -> list[Payment]:
        return self._ledger.list_by_lease(lease_id)

    def get_payments_by_property(self, property_id: UUID) -> list[Payment]:
        return self._ledger.list_by_property(property_id)

    def get_current_month_status(self, lease_id: UUID) -> CurrentMonthStatus:
        month = first_of_month(self._clock.today())
        payment = self._ledger.find_rent_for_month(lease_id, month)
        if payment is None:
            return CurrentMonthStatus.none_yet()
        return CurrentMonthStatus(
            status=payment.status,
            amount_due=payment.amount_due,
            amount_paid=payment.amount_paid,
            due_date=payment.due_date,
            payment_date=payment.payment_date,
            payment_id=payment.id,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _notify_due(self, parties: LeaseParties, payment: Payment) -> None:
        self._notifier.notify(
            parties.lease.tenant_id,
            NotificationEvent.PAYMENT_DUE,
            "Payment Due",
            f"Payment of ${payment.amount_due} is due on {payment.due_date.isoformat()}",
            payment_id=str(payment.id),
            lease_id=str(payment.lease_id),
        )
