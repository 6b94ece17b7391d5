"""
Module: rental_modules.leasing.orm
Responsibility:
    Minimal persistence for properties and leases so the rental core runs
    end to end.  Only the columns the core reads or writes are mapped.

Architecture position:
    **Modules layer** -- ORM models inheriting from ``TrackedBase``.

Invariants enforced:
    - ``leases.property_id`` references ``properties.id``.
    - Enum fields stored as String(20).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rental_kernel.db.base import TrackedBase, UUIDString


class PropertyModel(TrackedBase):
    __tablename__ = "properties"

    __table_args__ = (Index("idx_property_manager", "manager_id"),)

    manager_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="")

    leases: Mapped[list["LeaseModel"]] = relationship(
        "LeaseModel",
        back_populates="property",
        cascade="all, delete-orphan",
    )

    def to_dto(self):
        from rental_modules.leasing.models import Property

        return Property(id=self.id, manager_id=self.manager_id, name=self.name)

    @classmethod
    def from_dto(cls, dto) -> "PropertyModel":
        return cls(id=dto.id, manager_id=dto.manager_id, name=dto.name)


class LeaseModel(TrackedBase):
    """
    A lease on one property.

    Guarantees:
        - ``status`` is one of Active, Expired, Terminated.
        - ``termination_date`` is set only when an early termination was
          approved.
    """

    __tablename__ = "leases"

    __table_args__ = (
        Index("idx_lease_property", "property_id"),
        Index("idx_lease_tenant", "tenant_id"),
        Index("idx_lease_status_end", "status", "end_date"),
    )

    property_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("properties.id"),
        nullable=False,
    )
    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    rent: Mapped[Decimal] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="Active")
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    property: Mapped["PropertyModel"] = relationship(
        "PropertyModel",
        back_populates="leases",
    )

    def to_dto(self):
        from rental_kernel.domain.values import LeaseStatus
        from rental_modules.leasing.models import Lease

        return Lease(
            id=self.id,
            property_id=self.property_id,
            tenant_id=self.tenant_id,
            rent=self.rent,
            start_date=self.start_date,
            end_date=self.end_date,
            status=LeaseStatus(self.status),
            termination_date=self.termination_date,
            termination_reason=self.termination_reason,
        )

    @classmethod
    def from_dto(cls, dto) -> "LeaseModel":
        return cls(
            id=dto.id,
            property_id=dto.property_id,
            tenant_id=dto.tenant_id,
            rent=dto.rent,
            start_date=dto.start_date,
            end_date=dto.end_date,
            status=dto.status.value if hasattr(dto.status, "value") else dto.status,
            termination_date=dto.termination_date,
            termination_reason=dto.termination_reason,
        )

    def __repr__(self) -> str:
        return f"<LeaseModel {self.id} ({self.status})>"
