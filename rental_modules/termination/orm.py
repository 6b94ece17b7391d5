"""
Module: rental_modules.termination.orm
Responsibility:
    SQLAlchemy persistence for termination policies and termination
    requests.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - At most one active policy per property: partial unique index on
      ``property_id`` where ``is_active`` (PostgreSQL and SQLite).
    - Penalty rules and waiver categories are JSON blobs; ``to_dto``
      deserializes them through the engine's rule parser and drops (with a
      warning) any entry that does not validate.
    - Request status is one of Pending, Approved, Rejected.

Failure modes:
    - IntegrityError when a second active policy is inserted for a
      property; the policy store deactivates the prior one first.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from rental_engines.termination_policy import parse_rules_lenient, rules_to_json
from rental_kernel.db.base import TrackedBase, UUIDString
from rental_kernel.logging_config import get_logger

logger = get_logger("modules.termination.orm")


class TerminationPolicyModel(TrackedBase):
    """
    One version of a property's termination policy.

    Guarantees:
        - ``version`` increases by one per replacement on a property.
        - ``supersedes_id`` points at the version this one replaced.
    """

    __tablename__ = "termination_policies"

    __table_args__ = (
        Index(
            "uq_policy_active_property",
            "property_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_policy_property_version", "property_id", "version"),
        CheckConstraint("minimum_notice_days >= 0", name="ck_policy_notice_days"),
    )

    property_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    minimum_notice_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    penalty_rules: Mapped[Any] = mapped_column(JSON, nullable=False, default=list)
    allow_emergency_waiver: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_waiver_conditions: Mapped[Any] = mapped_column(JSON, nullable=True)
    grace_period_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    supersedes_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self):
        from rental_modules.termination.models import TerminationPolicy

        rules, problems = parse_rules_lenient(self.penalty_rules)
        if problems:
            logger.warning(
                "policy_rules_sanitized",
                extra={"policy_id": str(self.id), "problems": problems},
            )
        categories = self.allow_waiver_conditions or []
        return TerminationPolicy(
            id=self.id,
            property_id=self.property_id,
            is_active=self.is_active,
            minimum_notice_days=self.minimum_notice_days,
            rules=rules,
            allow_emergency_waiver=self.allow_emergency_waiver,
            emergency_categories=tuple(str(c) for c in categories),
            grace_period_days=self.grace_period_days,
            version=self.version,
            supersedes_id=self.supersedes_id,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_draft(
        cls,
        property_id: UUID,
        draft,
        version: int,
        supersedes_id: UUID | None,
        created_by_id: UUID | None,
    ) -> "TerminationPolicyModel":
        return cls(
            property_id=property_id,
            is_active=True,
            minimum_notice_days=draft.minimum_notice_days,
            penalty_rules=rules_to_json(draft.rules),
            allow_emergency_waiver=draft.allow_emergency_waiver,
            allow_waiver_conditions=list(draft.emergency_categories),
            grace_period_days=draft.grace_period_days,
            version=version,
            supersedes_id=supersedes_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<TerminationPolicyModel {self.property_id} v{self.version}"
            f"{' active' if self.is_active else ''}>"
        )


class TerminationRequestModel(TrackedBase):
    """
    A tenant's request to end a lease early.

    Guarantees:
        - Decision fields (final_penalty_fee, manager_response,
          response_date, approved_end_date) are written once, together with
          the status change away from Pending.
    """

    __tablename__ = "termination_requests"

    __table_args__ = (
        Index("idx_termination_request_manager", "manager_id", "status"),
        Index("idx_termination_request_tenant", "tenant_id"),
        Index("idx_termination_request_lease", "lease_id"),
    )

    lease_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("leases.id"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    manager_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    requested_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    estimated_penalty_fee: Mapped[Decimal] = mapped_column(nullable=False)
    final_penalty_fee: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_early_termination: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    manager_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    response_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def to_dto(self):
        from rental_kernel.domain.values import TerminationRequestStatus
        from rental_modules.termination.models import TerminationRequest

        return TerminationRequest(
            id=self.id,
            lease_id=self.lease_id,
            tenant_id=self.tenant_id,
            manager_id=self.manager_id,
            reason=self.reason,
            requested_end_date=self.requested_end_date,
            estimated_penalty_fee=self.estimated_penalty_fee,
            is_early_termination=self.is_early_termination,
            requested_date=self.requested_date,
            status=TerminationRequestStatus(self.status),
            final_penalty_fee=self.final_penalty_fee,
            manager_response=self.manager_response,
            response_date=self.response_date,
            approved_end_date=self.approved_end_date,
        )

    @classmethod
    def from_dto(cls, dto) -> "TerminationRequestModel":
        return cls(
            id=dto.id,
            lease_id=dto.lease_id,
            tenant_id=dto.tenant_id,
            manager_id=dto.manager_id,
            reason=dto.reason,
            requested_end_date=dto.requested_end_date,
            estimated_penalty_fee=dto.estimated_penalty_fee,
            is_early_termination=dto.is_early_termination,
            requested_date=dto.requested_date,
            status=dto.status.value,
            final_penalty_fee=dto.final_penalty_fee,
            manager_response=dto.manager_response,
            response_date=dto.response_date,
            approved_end_date=dto.approved_end_date,
        )

    def __repr__(self) -> str:
        return f"<TerminationRequestModel {self.lease_id} ({self.status})>"
