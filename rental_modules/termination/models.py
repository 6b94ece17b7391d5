"""
Termination Domain Models (``rental_modules.termination.models``).

Responsibility
--------------
Frozen dataclass value objects for termination policies and tenant
termination requests, plus the built-in default policy.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Policies carry
typed ``PenaltyRule`` tuples (from ``rental_engines.termination_policy``);
raw JSON never leaves the store.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal``.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from rental_engines.termination_policy import (
    UNBOUNDED_MONTHS,
    PenaltyCalculation,
    PenaltyRule,
    PolicySnapshot,
    parse_rules,
)
from rental_kernel.domain.values import TerminationRequestStatus

DEFAULT_EMERGENCY_CATEGORIES: tuple[str, ...] = (
    "Medical emergency",
    "Job relocation (with proof)",
    "Military deployment",
    "Domestic violence",
    "Property uninhabitable",
)

DEFAULT_PENALTY_RULES: tuple[PenaltyRule, ...] = (
    PenaltyRule(6, UNBOUNDED_MONTHS, Decimal("100"), "6 or more months remaining: one full month's rent"),
    PenaltyRule(2, 5, Decimal("50"), "2 to 5 months remaining: half a month's rent"),
    PenaltyRule(0, 1, Decimal("0"), "Less than 2 months remaining: no penalty"),
)


@dataclass(frozen=True)
class PolicyDraft:
    """The editable part of a policy, as submitted by a manager."""

    minimum_notice_days: int
    rules: tuple[PenaltyRule, ...]
    allow_emergency_waiver: bool = True
    emergency_categories: tuple[str, ...] = ()
    grace_period_days: int = 0


DEFAULT_POLICY = PolicyDraft(
    minimum_notice_days=30,
    rules=DEFAULT_PENALTY_RULES,
    allow_emergency_waiver=True,
    emergency_categories=DEFAULT_EMERGENCY_CATEGORIES,
    grace_period_days=60,
)


def default_policy_from_config(cfg: Any) -> PolicyDraft:
    """Build the default draft from a ``DefaultPolicyConfig``-shaped object."""
    return PolicyDraft(
        minimum_notice_days=cfg.minimum_notice_days,
        rules=parse_rules(cfg.penalty_rules),
        allow_emergency_waiver=cfg.allow_emergency_waiver,
        emergency_categories=tuple(cfg.emergency_categories),
        grace_period_days=cfg.grace_period_days,
    )


@dataclass(frozen=True)
class TerminationPolicy:
    """A versioned penalty configuration for one property."""

    id: UUID
    property_id: UUID
    is_active: bool
    minimum_notice_days: int
    rules: tuple[PenaltyRule, ...]
    allow_emergency_waiver: bool
    emergency_categories: tuple[str, ...] = ()
    grace_period_days: int = 0
    version: int = 1
    supersedes_id: UUID | None = None
    created_by_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_snapshot(self) -> PolicySnapshot:
        return PolicySnapshot(
            policy_id=self.id,
            minimum_notice_days=self.minimum_notice_days,
            rules=self.rules,
            allow_emergency_waiver=self.allow_emergency_waiver,
            emergency_categories=self.emergency_categories,
            grace_period_days=self.grace_period_days,
            version=self.version,
        )


@dataclass(frozen=True)
class TerminationRequest:
    id: UUID
    lease_id: UUID
    tenant_id: UUID
    manager_id: UUID
    reason: str
    requested_end_date: date
    estimated_penalty_fee: Decimal
    is_early_termination: bool
    requested_date: datetime
    status: TerminationRequestStatus = TerminationRequestStatus.PENDING
    final_penalty_fee: Decimal | None = None
    manager_response: str | None = None
    response_date: datetime | None = None
    approved_end_date: date | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == TerminationRequestStatus.PENDING


@dataclass(frozen=True)
class Decision:
    """A manager's decision, with defaults already applied."""

    status: TerminationRequestStatus
    manager_response: str | None
    final_penalty_fee: Decimal | None
    approved_end_date: date | None
    response_date: datetime


@dataclass(frozen=True)
class TerminationRequestDetails:
    """A request with figures recomputed at read time."""

    request: TerminationRequest
    property_id: UUID
    lease_end_date: date
    monthly_rent: Decimal
    is_early_termination: bool
    estimated_penalty: Decimal
    days_until_requested_end: int
    calculation: PenaltyCalculation | None = None
