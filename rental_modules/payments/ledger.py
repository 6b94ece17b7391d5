"""
Payment ledger -- persistence for rent and penalty obligations.

Responsibility:
    Create payments, look them up by id or by (lease, month), write the
    settlement fields produced by the state machine, and apply conditional
    status transitions.

Architecture position:
    Modules > payments.  ``PaymentLedger`` is the interface the payment
    service and the termination workflow depend on; ``SqlPaymentLedger``
    is the SQLAlchemy implementation.  The ledger flushes but never
    commits: the calling service owns the transaction.

Invariants enforced:
    - Rent uniqueness per (lease, month) is re-validated at insert time by
      the ``uq_payment_lease_month`` constraint.  The insert runs inside a
      SAVEPOINT so a losing concurrent creator does not poison the outer
      transaction.
    - Status transitions are conditional UPDATEs guarded by the expected
      prior statuses; a row that already moved is reported, not rewritten.
    - ``get_for_update`` takes a row lock (SELECT ... FOR UPDATE) so
      concurrent record-payment calls serialize.

Failure modes:
    - DuplicatePaymentPeriodError from ``create`` when another transaction
      inserted the same (lease, month) first.
"""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rental_kernel.domain.values import PaymentKind, PaymentStatus
from rental_kernel.exceptions import DuplicatePaymentPeriodError, PaymentNotFoundError
from rental_kernel.logging_config import get_logger
from rental_modules.leasing.orm import LeaseModel
from rental_modules.payments.models import Payment
from rental_modules.payments.orm import PaymentModel

logger = get_logger("modules.payments.ledger")


class PaymentLedger(ABC):
    @abstractmethod
    def get(self, payment_id: UUID) -> Payment | None: ...

    @abstractmethod
    def get_for_update(self, payment_id: UUID) -> Payment | None:
        """Read a payment and lock its row until the transaction ends."""

    @abstractmethod
    def find_rent_for_month(self, lease_id: UUID, billing_month: date) -> Payment | None: ...

    @abstractmethod
    def create(self, payment: Payment) -> Payment: ...

    @abstractmethod
    def update_settlement(
        self,
        payment_id: UUID,
        amount_paid: Decimal,
        status: PaymentStatus,
        payment_date: date | None,
    ) -> Payment: ...

    @abstractmethod
    def transition_status(
        self,
        payment_id: UUID,
        from_statuses: Iterable[PaymentStatus],
        to_status: PaymentStatus,
    ) -> bool:
        """Move to ``to_status`` only if the stored status is in ``from_statuses``."""

    @abstractmethod
    def list_open_due_before(self, day: date) -> list[Payment]: ...

    @abstractmethod
    def list_pending_due_on(self, day: date) -> list[Payment]: ...

    @abstractmethod
    def list_by_lease(self, lease_id: UUID) -> list[Payment]: ...

    @abstractmethod
    def list_by_property(self, property_id: UUID) -> list[Payment]: ...


class SqlPaymentLedger(PaymentLedger):
    def __init__(self, session: Session):
        self._session = session

    def get(self, payment_id: UUID) -> Payment | None:
        model = self._session.get(PaymentModel, payment_id)
        return model.to_dto() if model else None

    def get_for_update(self, payment_id: UUID) -> Payment | None:
        model = self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def find_rent_for_month(self, lease_id: UUID, billing_month: date) -> Payment | None:
        model = self._session.execute(
            select(PaymentModel).where(
                PaymentModel.lease_id == lease_id,
                PaymentModel.billing_month == billing_month,
                PaymentModel.kind == PaymentKind.RENT.value,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def create(self, payment: Payment) -> Payment:
        model = PaymentModel.from_dto(payment)
        savepoint = self._session.begin_nested()
        try:
            self._session.add(model)
            self._session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            logger.info(
                "payment_period_race_lost",
                extra={
                    "lease_id": str(payment.lease_id),
                    "billing_month": str(payment.billing_month),
                },
            )
            raise DuplicatePaymentPeriodError(
                str(payment.lease_id), str(payment.billing_month)
            ) from exc
        return model.to_dto()

    def update_settlement(
        self,
        payment_id: UUID,
        amount_paid: Decimal,
        status: PaymentStatus,
        payment_date: date | None,
    ) -> Payment:
        model = self._session.get(PaymentModel, payment_id)
        if model is None:
            raise PaymentNotFoundError(str(payment_id))
        model.amount_paid = amount_paid
        model.status = status.value
        model.payment_date = payment_date
        self._session.flush()
        return model.to_dto()

    def transition_status(
        self,
        payment_id: UUID,
        from_statuses: Iterable[PaymentStatus],
        to_status: PaymentStatus,
    ) -> bool:
        result = self._session.execute(
            update(PaymentModel)
            .where(
                PaymentModel.id == payment_id,
                PaymentModel.status.in_([s.value for s in from_statuses]),
            )
            .values(status=to_status.value)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount == 1
        if changed:
            model = self._session.get(PaymentModel, payment_id)
            if model is not None:
                self._session.expire(model, ["status", "updated_at"])
        return changed

    def list_open_due_before(self, day: date) -> list[Payment]:
        models = self._session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.due_date < day,
                PaymentModel.status.in_(
                    [PaymentStatus.PENDING.value, PaymentStatus.PARTIALLY_PAID.value]
                ),
            )
            .order_by(PaymentModel.due_date, PaymentModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def list_pending_due_on(self, day: date) -> list[Payment]:
        models = self._session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.due_date == day,
                PaymentModel.status == PaymentStatus.PENDING.value,
            )
            .order_by(PaymentModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def list_by_lease(self, lease_id: UUID) -> list[Payment]:
        models = self._session.execute(
            select(PaymentModel)
            .where(PaymentModel.lease_id == lease_id)
            .order_by(PaymentModel.due_date.asc(), PaymentModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def list_by_property(self, property_id: UUID) -> list[Payment]:
        models = self._session.execute(
            select(PaymentModel)
            .join(LeaseModel, LeaseModel.id == PaymentModel.lease_id)
            .where(LeaseModel.property_id == property_id)
            .order_by(PaymentModel.due_date.desc(), PaymentModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]


def with_status(payment: Payment, status: PaymentStatus) -> Payment:
    return dataclasses.replace(payment, status=status)
