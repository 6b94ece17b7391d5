"""
Payment Domain Models (``rental_modules.payments.models``).

Responsibility
--------------
Frozen dataclass value objects for rent obligations: the payment itself,
the outcome of a monthly-creation attempt, and the current-month summary
shown to tenants.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``billing_month`` is the first day of the obligation month for rent and
  None for termination penalties.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from rental_kernel.domain.values import ZERO, PaymentKind, PaymentStatus


@dataclass(frozen=True)
class Payment:
    """One obligation of one lease and its settlement record."""

    id: UUID
    lease_id: UUID
    amount_due: Decimal
    due_date: date
    amount_paid: Decimal = ZERO
    status: PaymentStatus = PaymentStatus.PENDING
    payment_date: date | None = None
    kind: PaymentKind = PaymentKind.RENT
    billing_month: date | None = None
    description: str | None = None

    @property
    def balance(self) -> Decimal:
        """Amount still owed; negative when overpaid."""
        return self.amount_due - self.amount_paid


@dataclass(frozen=True)
class PaymentCreation:
    """
    Outcome of ``create_monthly_payment``.

    ``created`` is True only for the call that inserted the row.  When the
    month lies beyond the lease's effective end, ``payment`` is None and
    ``skipped_reason`` says why.
    """

    payment: Payment | None
    created: bool
    skipped_reason: str | None = None


@dataclass(frozen=True)
class CurrentMonthStatus:
    status: PaymentStatus
    amount_due: Decimal
    amount_paid: Decimal
    due_date: date | None
    payment_date: date | None
    payment_id: UUID | None = None

    @classmethod
    def none_yet(cls) -> "CurrentMonthStatus":
        return cls(
            status=PaymentStatus.PENDING,
            amount_due=ZERO,
            amount_paid=ZERO,
            due_date=None,
            payment_date=None,
        )
