"""
Policy store -- versioned termination policies per property.

Responsibility:
    Persist termination policies, keep exactly one of them active per
    property, and keep every replaced version as history.

Architecture position:
    Modules > termination.  ``PolicyStore`` is the interface the policy
    service depends on; ``SqlPolicyStore`` implements it with SQLAlchemy.
    Flushes, never commits.

Invariants enforced:
    - Creating or replacing a policy deactivates the prior active version
      before inserting the new one, inside the caller's transaction.  The
      partial unique index rejects a concurrent second activation.
    - ``ensure_default`` inserts at most one default per property: the
      insert runs in a SAVEPOINT and a losing racer re-reads the winner.
    - ``get_active`` always re-reads the row (populate_existing) so the
      calculator never sees a stale cached policy.

Failure modes:
    - PolicyNotFoundError from ``replace`` / ``delete`` for unknown ids.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rental_kernel.exceptions import PolicyNotFoundError
from rental_kernel.logging_config import get_logger
from rental_modules.termination.models import PolicyDraft, TerminationPolicy
from rental_modules.termination.orm import TerminationPolicyModel

logger = get_logger("modules.termination.policy_store")


class PolicyStore(ABC):
    @abstractmethod
    def get_active(self, property_id: UUID) -> TerminationPolicy | None: ...

    @abstractmethod
    def get(self, policy_id: UUID) -> TerminationPolicy | None: ...

    @abstractmethod
    def list_for_property(self, property_id: UUID, active_only: bool = False) -> list[TerminationPolicy]: ...

    @abstractmethod
    def create(
        self,
        property_id: UUID,
        draft: PolicyDraft,
        created_by_id: UUID | None = None,
    ) -> TerminationPolicy:
        """Insert a new active version, deactivating the current one."""

    @abstractmethod
    def replace(
        self,
        policy_id: UUID,
        draft: PolicyDraft,
        created_by_id: UUID | None = None,
    ) -> TerminationPolicy:
        """New version superseding ``policy_id``; the old row is kept."""

    @abstractmethod
    def delete(self, policy_id: UUID) -> TerminationPolicy: ...

    @abstractmethod
    def ensure_default(
        self,
        property_id: UUID,
        defaults: PolicyDraft,
        created_by_id: UUID | None = None,
    ) -> tuple[TerminationPolicy, bool]:
        """Active policy for the property, creating ``defaults`` if none.

        Returns (policy, created).
        """


class SqlPolicyStore(PolicyStore):
    def __init__(self, session: Session):
        self._session = session

    def get_active(self, property_id: UUID) -> TerminationPolicy | None:
        model = self._active_model(property_id)
        return model.to_dto() if model else None

    def get(self, policy_id: UUID) -> TerminationPolicy | None:
        model = self._session.get(TerminationPolicyModel, policy_id)
        return model.to_dto() if model else None

    def list_for_property(self, property_id: UUID, active_only: bool = False) -> list[TerminationPolicy]:
        stmt = select(TerminationPolicyModel).where(
            TerminationPolicyModel.property_id == property_id
        )
        if active_only:
            stmt = stmt.where(TerminationPolicyModel.is_active.is_(True))
        stmt = stmt.order_by(TerminationPolicyModel.version.desc())
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def create(
        self,
        property_id: UUID,
        draft: PolicyDraft,
        created_by_id: UUID | None = None,
    ) -> TerminationPolicy:
        previous = self._active_model(property_id)
        return self._insert_version(
            property_id,
            draft,
            supersedes_id=previous.id if previous else None,
            created_by_id=created_by_id,
        )

    def replace(
        self,
        policy_id: UUID,
        draft: PolicyDraft,
        created_by_id: UUID | None = None,
    ) -> TerminationPolicy:
        old = self._session.get(TerminationPolicyModel, policy_id)
        if old is None:
            raise PolicyNotFoundError(str(policy_id))
        return self._insert_version(
            old.property_id,
            draft,
            supersedes_id=old.id,
            created_by_id=created_by_id,
        )

    def delete(self, policy_id: UUID) -> TerminationPolicy:
        model = self._session.get(TerminationPolicyModel, policy_id)
        if model is None:
            raise PolicyNotFoundError(str(policy_id))
        dto = model.to_dto()
        self._session.delete(model)
        self._session.flush()
        logger.info(
            "termination_policy_deleted",
            extra={"policy_id": str(policy_id), "was_active": dto.is_active},
        )
        return dto

    def ensure_default(
        self,
        property_id: UUID,
        defaults: PolicyDraft,
        created_by_id: UUID | None = None,
    ) -> tuple[TerminationPolicy, bool]:
        existing = self._active_model(property_id)
        if existing is not None:
            return existing.to_dto(), False

        savepoint = self._session.begin_nested()
        try:
            model = TerminationPolicyModel.from_draft(
                property_id,
                defaults,
                version=self._next_version(property_id),
                supersedes_id=None,
                created_by_id=created_by_id,
            )
            self._session.add(model)
            self._session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info(
                "default_policy_race_lost",
                extra={"property_id": str(property_id)},
            )
            winner = self._active_model(property_id)
            if winner is None:
                raise
            return winner.to_dto(), False

        logger.info(
            "default_policy_provisioned",
            extra={"property_id": str(property_id), "policy_id": str(model.id)},
        )
        return model.to_dto(), True

    # ------------------------------------------------------------------

    def _active_model(self, property_id: UUID) -> TerminationPolicyModel | None:
        return self._session.execute(
            select(TerminationPolicyModel)
            .where(
                TerminationPolicyModel.property_id == property_id,
                TerminationPolicyModel.is_active.is_(True),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _next_version(self, property_id: UUID) -> int:
        current = self._session.execute(
            select(func.max(TerminationPolicyModel.version)).where(
                TerminationPolicyModel.property_id == property_id
            )
        ).scalar()
        return (current or 0) + 1

    def _insert_version(
        self,
        property_id: UUID,
        draft: PolicyDraft,
        supersedes_id: UUID | None,
        created_by_id: UUID | None,
    ) -> TerminationPolicy:
        self._session.execute(
            update(TerminationPolicyModel)
            .where(
                TerminationPolicyModel.property_id == property_id,
                TerminationPolicyModel.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        model = TerminationPolicyModel.from_draft(
            property_id,
            draft,
            version=self._next_version(property_id),
            supersedes_id=supersedes_id,
            created_by_id=created_by_id,
        )
        self._session.add(model)
        self._session.flush()
        logger.info(
            "termination_policy_versioned",
            extra={
                "property_id": str(property_id),
                "policy_id": str(model.id),
                "version": model.version,
                "supersedes_id": str(supersedes_id) if supersedes_id else None,
            },
        )
        return model.to_dto()
