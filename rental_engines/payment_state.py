"""
Payment state machine -- pure status transitions for rent obligations.

Responsibility:
    Computes the next (amount_paid, status, payment_date) of a payment when
    money arrives, decides whether an open payment has gone overdue, and
    re-derives the status of any payment from its amounts and due date.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Called by
    ``rental_modules.payments.service.PaymentService``, which owns locking
    and persistence.

Invariants enforced:
    - amount_paid never decreases: negative increments are rejected.
    - payment_date is stamped only on the transition into Paid and is never
      overwritten afterwards.
    - Only Pending and PartiallyPaid payments can go Overdue, and only once
      the due date is strictly before the as-of day.
    - Overpayment is accepted and stored verbatim; the status is Paid.

Failure modes:
    - InvalidPaymentAmountError for a negative increment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from rental_engines.tracer import traced_engine
from rental_kernel.domain.values import (
    OPEN_PAYMENT_STATUSES,
    ZERO,
    PaymentStatus,
)
from rental_kernel.exceptions import InvalidPaymentAmountError


@dataclass(frozen=True)
class PaymentTransition:
    """Outcome of applying one payment increment."""

    new_amount_paid: Decimal
    new_status: PaymentStatus
    payment_date: date | None
    became_paid: bool
    overpaid_by: Decimal = ZERO


def settlement_status(
    amount_due: Decimal,
    total_paid: Decimal,
    current: PaymentStatus,
) -> PaymentStatus:
    """Paid if the total covers the amount due, PartiallyPaid if anything was
    paid at all, otherwise the current status unchanged."""
    if total_paid >= amount_due:
        return PaymentStatus.PAID
    if total_paid > ZERO:
        return PaymentStatus.PARTIALLY_PAID
    return current


@traced_engine(
    "payment_state",
    "1.0",
    fingerprint_fields=(
        "amount_due",
        "amount_paid",
        "status",
        "payment_date",
        "increment",
        "paid_on",
    ),
)
def apply_payment(
    amount_due: Decimal,
    amount_paid: Decimal,
    status: PaymentStatus,
    payment_date: date | None,
    increment: Decimal,
    paid_on: date,
) -> PaymentTransition:
    """Add ``increment`` to the amount paid and move the status accordingly.

    A payment that is already Paid stays Paid (further money is recorded as
    overpayment).  An Overdue payment that is now fully covered becomes
    Paid; one that is still short becomes PartiallyPaid.
    """
    if increment < ZERO:
        raise InvalidPaymentAmountError(str(increment))

    total = amount_paid + increment
    new_status = settlement_status(amount_due, total, status)
    became_paid = new_status == PaymentStatus.PAID and status != PaymentStatus.PAID

    new_payment_date = payment_date
    if became_paid and payment_date is None:
        new_payment_date = paid_on

    return PaymentTransition(
        new_amount_paid=total,
        new_status=new_status,
        payment_date=new_payment_date,
        became_paid=became_paid,
        overpaid_by=max(total - amount_due, ZERO),
    )


def mark_overdue(
    status: PaymentStatus,
    due_date: date,
    as_of: datetime,
) -> PaymentStatus | None:
    """Return ``Overdue`` if the payment should transition now, else None."""
    if status in OPEN_PAYMENT_STATUSES and due_date < as_of.date():
        return PaymentStatus.OVERDUE
    return None


def derive_status(
    amount_due: Decimal,
    amount_paid: Decimal,
    due_date: date,
    as_of: datetime,
) -> PaymentStatus:
    """Status a payment must have once the overdue sweep has run at ``as_of``.

    Used to audit stored rows.  Between a late partial payment and the next
    sweep a stored row may read PartiallyPaid where this returns Overdue.
    """
    status = settlement_status(amount_due, amount_paid, PaymentStatus.PENDING)
    overdue = mark_overdue(status, due_date, as_of)
    return overdue or status
