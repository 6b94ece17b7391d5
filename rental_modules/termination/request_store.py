"""
Termination request store.

Requests are decided exactly once: ``apply_decision`` and
``delete_if_pending`` are conditional statements on ``status = 'Pending'``
and report whether they touched the row, so the workflow can tell a lost
race from a success without holding an application-level lock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from rental_kernel.domain.values import TerminationRequestStatus
from rental_modules.leasing.orm import LeaseModel
from rental_modules.termination.models import Decision, TerminationRequest
from rental_modules.termination.orm import TerminationRequestModel

_PENDING = TerminationRequestStatus.PENDING.value


class TerminationRequestStore(ABC):
    @abstractmethod
    def add(self, request: TerminationRequest) -> TerminationRequest: ...

    @abstractmethod
    def get(self, request_id: UUID) -> TerminationRequest | None: ...

    @abstractmethod
    def apply_decision(self, request_id: UUID, decision: Decision) -> bool: ...

    @abstractmethod
    def delete_if_pending(self, request_id: UUID) -> bool: ...

    @abstractmethod
    def list_for_manager(
        self,
        manager_id: UUID,
        property_id: UUID | None = None,
        status: TerminationRequestStatus | None = None,
    ) -> list[TerminationRequest]: ...

    @abstractmethod
    def list_for_tenant(self, tenant_id: UUID) -> list[TerminationRequest]: ...


class SqlTerminationRequestStore(TerminationRequestStore):
    def __init__(self, session: Session):
        self._session = session

    def add(self, request: TerminationRequest) -> TerminationRequest:
        model = TerminationRequestModel.from_dto(request)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def get(self, request_id: UUID) -> TerminationRequest | None:
        model = self._session.execute(
            select(TerminationRequestModel)
            .where(TerminationRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def apply_decision(self, request_id: UUID, decision: Decision) -> bool:
        result = self._session.execute(
            update(TerminationRequestModel)
            .where(
                TerminationRequestModel.id == request_id,
                TerminationRequestModel.status == _PENDING,
            )
            .values(
                status=decision.status.value,
                manager_response=decision.manager_response,
                final_penalty_fee=decision.final_penalty_fee,
                approved_end_date=decision.approved_end_date,
                response_date=decision.response_date,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def delete_if_pending(self, request_id: UUID) -> bool:
        result = self._session.execute(
            delete(TerminationRequestModel)
            .where(
                TerminationRequestModel.id == request_id,
                TerminationRequestModel.status == _PENDING,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_for_manager(
        self,
        manager_id: UUID,
        property_id: UUID | None = None,
        status: TerminationRequestStatus | None = None,
    ) -> list[TerminationRequest]:
        stmt = select(TerminationRequestModel).where(
            TerminationRequestModel.manager_id == manager_id
        )
        if property_id is not None:
            stmt = stmt.join(
                LeaseModel, LeaseModel.id == TerminationRequestModel.lease_id
            ).where(LeaseModel.property_id == property_id)
        if status is not None:
            stmt = stmt.where(TerminationRequestModel.status == status.value)
        stmt = stmt.order_by(TerminationRequestModel.requested_date.desc())
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def list_for_tenant(self, tenant_id: UUID) -> list[TerminationRequest]:
        models = self._session.execute(
            select(TerminationRequestModel)
            .where(TerminationRequestModel.tenant_id == tenant_id)
            .order_by(TerminationRequestModel.requested_date.desc())
        ).scalars().all()
        return [m.to_dto() for m in models]
