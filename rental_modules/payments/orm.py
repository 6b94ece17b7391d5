"""
Module: rental_modules.payments.orm
Responsibility:
    SQLAlchemy persistence for rent obligations.  Maps the frozen
    ``Payment`` DTO to the ``payments`` table.

Architecture position:
    **Modules layer** -- ORM model inheriting from ``TrackedBase``.

Invariants enforced:
    - (lease_id, billing_month) is unique: at most one rent payment per
      lease per calendar month.  Penalty payments carry a NULL
      billing_month and are not constrained.
    - amount_due and amount_paid are non-negative (CHECK constraints).
    - Money columns are Numeric(14, 2).

Failure modes:
    - IntegrityError on a duplicate (lease_id, billing_month); the ledger
      translates it to DuplicatePaymentPeriodError.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from rental_kernel.db.base import TrackedBase, UUIDString


class PaymentModel(TrackedBase):
    """
    A rent or termination-penalty obligation.

    Guarantees:
        - ``status`` is one of Pending, PartiallyPaid, Paid, Overdue.
        - ``kind`` is one of rent, termination_penalty.
        - ``payment_date`` is written once, on the transition into Paid.
    """

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint("lease_id", "billing_month", name="uq_payment_lease_month"),
        CheckConstraint("amount_due >= 0", name="ck_payment_amount_due"),
        CheckConstraint("amount_paid >= 0", name="ck_payment_amount_paid"),
        Index("idx_payment_status_due", "status", "due_date"),
        Index("idx_payment_lease_due", "lease_id", "due_date"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("leases.id"),
        nullable=False,
    )
    amount_due: Mapped[Decimal] = mapped_column(nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    kind: Mapped[str] = mapped_column(String(30), nullable=False, default="rent")
    billing_month: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from rental_kernel.domain.values import PaymentKind, PaymentStatus
        from rental_modules.payments.models import Payment

        return Payment(
            id=self.id,
            lease_id=self.lease_id,
            amount_due=self.amount_due,
            amount_paid=self.amount_paid,
            due_date=self.due_date,
            status=PaymentStatus(self.status),
            payment_date=self.payment_date,
            kind=PaymentKind(self.kind),
            billing_month=self.billing_month,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto) -> "PaymentModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            amount_due=dto.amount_due,
            amount_paid=dto.amount_paid,
            due_date=dto.due_date,
            status=dto.status.value,
            payment_date=dto.payment_date,
            kind=dto.kind.value,
            billing_month=dto.billing_month,
            description=dto.description,
        )

    def __repr__(self) -> str:
        return f"<PaymentModel {self.lease_id} {self.due_date} ({self.status})>"
