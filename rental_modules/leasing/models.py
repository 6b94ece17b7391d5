"""
Leasing Domain Models (``rental_modules.leasing.models``).

Responsibility
--------------
Frozen dataclass views of the external property and lease records the
rental core reads: who manages a property, who rents it, for how much and
until when.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Property and
lease CRUD belong to another system; these DTOs are the read-side contract.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* ``rent`` is ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from rental_kernel.domain.values import LeaseStatus


@dataclass(frozen=True)
class Property:
    id: UUID
    manager_id: UUID
    name: str = ""


@dataclass(frozen=True)
class Lease:
    """A fixed-term agreement between one tenant and one property."""

    id: UUID
    property_id: UUID
    tenant_id: UUID
    rent: Decimal
    start_date: date
    end_date: date
    status: LeaseStatus = LeaseStatus.ACTIVE
    termination_date: date | None = None
    termination_reason: str | None = None

    @property
    def effective_end_date(self) -> date:
        """Approved termination date if one was set, else the contractual end."""
        return self.termination_date or self.end_date

    @property
    def is_active(self) -> bool:
        return self.status == LeaseStatus.ACTIVE


@dataclass(frozen=True)
class LeaseParties:
    """A lease together with the manager of its property."""

    lease: Lease
    manager_id: UUID
