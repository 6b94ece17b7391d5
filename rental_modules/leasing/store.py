"""
Lease store -- read/write access to the external lease records.

The rental core only needs a handful of lease operations: look a lease up,
find the leases that still bill rent, and mark a lease terminated when an
early exit is approved.  ``LeaseStore`` is that narrow surface;
``SqlLeaseStore`` implements it on the ``properties`` / ``leases`` tables.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from rental_kernel.domain.values import LeaseStatus
from rental_kernel.exceptions import LeaseNotActiveError, LeaseNotFoundError
from rental_kernel.logging_config import get_logger
from rental_modules.leasing.models import Lease, LeaseParties, Property
from rental_modules.leasing.orm import LeaseModel, PropertyModel

logger = get_logger("modules.leasing.store")


class LeaseStore(ABC):
    @abstractmethod
    def get_property(self, property_id: UUID) -> Property | None: ...

    @abstractmethod
    def get_lease(self, lease_id: UUID) -> Lease | None: ...

    @abstractmethod
    def get_lease_parties(self, lease_id: UUID) -> LeaseParties | None:
        """The lease and its property's manager, or None."""

    @abstractmethod
    def list_billable_leases(self, as_of: date) -> list[Lease]:
        """Active leases whose end date is after ``as_of``."""

    @abstractmethod
    def terminate(self, lease_id: UUID, termination_date: date, reason: str) -> Lease:
        """Mark an Active lease Terminated.

        Raises:
            LeaseNotFoundError: no such lease.
            LeaseNotActiveError: the lease is already Terminated or Expired.
        """

    @abstractmethod
    def add_property(self, prop: Property) -> Property: ...

    @abstractmethod
    def add_lease(self, lease: Lease) -> Lease: ...


class SqlLeaseStore(LeaseStore):
    """LeaseStore over SQLAlchemy.  Flushes; never commits."""

    def __init__(self, session: Session):
        self._session = session

    def get_property(self, property_id: UUID) -> Property | None:
        model = self._session.get(PropertyModel, property_id)
        return model.to_dto() if model else None

    def get_lease(self, lease_id: UUID) -> Lease | None:
        model = self._session.get(LeaseModel, lease_id)
        return model.to_dto() if model else None

    def get_lease_parties(self, lease_id: UUID) -> LeaseParties | None:
        row = self._session.execute(
            select(LeaseModel, PropertyModel.manager_id)
            .join(PropertyModel, PropertyModel.id == LeaseModel.property_id)
            .where(LeaseModel.id == lease_id)
        ).first()
        if row is None:
            return None
        lease_model, manager_id = row
        return LeaseParties(lease=lease_model.to_dto(), manager_id=manager_id)

    def list_billable_leases(self, as_of: date) -> list[Lease]:
        models = self._session.execute(
            select(LeaseModel)
            .where(
                LeaseModel.status == LeaseStatus.ACTIVE.value,
                LeaseModel.end_date > as_of,
            )
            .order_by(LeaseModel.start_date, LeaseModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def terminate(self, lease_id: UUID, termination_date: date, reason: str) -> Lease:
        model = self._session.execute(
            select(LeaseModel)
            .where(LeaseModel.id == lease_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise LeaseNotFoundError(str(lease_id))
        if model.status != LeaseStatus.ACTIVE.value:
            raise LeaseNotActiveError(str(lease_id), model.status)

        model.status = LeaseStatus.TERMINATED.value
        model.termination_date = termination_date
        model.termination_reason = reason
        self._session.flush()

        logger.info(
            "lease_terminated",
            extra={
                "lease_id": str(lease_id),
                "termination_date": termination_date.isoformat(),
            },
        )
        return model.to_dto()

    def add_property(self, prop: Property) -> Property:
        model = PropertyModel.from_dto(prop)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def add_lease(self, lease: Lease) -> Lease:
        model = LeaseModel.from_dto(lease)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()
