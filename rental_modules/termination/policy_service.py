"""
Termination Policy Service (``rental_modules.termination.policy_service``).

Responsibility
--------------
Manager-facing policy management (list, read, create, replace, delete) and
the penalty calculation entry point.  Validates raw rule input into typed
``PenaltyRule`` tuples before anything is stored, and provisions the
default policy for a property on demand.

Architecture position
---------------------
**Modules layer**.  Composes ``PolicyStore``, ``LeaseStore`` and the pure
``rental_engines.termination_policy.calculate``.

Invariants enforced
-------------------
* Each mutating method owns the transaction boundary.
* Only the property's manager may create, replace or delete its policies.
* ``calculate_penalty`` always runs on a freshly loaded active policy; when
  none exists the default is provisioned first (idempotent per property).
* After any delete the property still has an active policy.

Failure modes
-------------
* PropertyNotFoundError / LeaseNotFoundError / PolicyNotFoundError.
* AccessDeniedError when the caller does not manage the property.
* InvalidPolicyRulesError / InvalidInputError for malformed drafts.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from rental_engines.termination_policy import (
    HIGH_PENALTY_THRESHOLD,
    LeaseTerms,
    PenaltyCalculation,
    calculate,
    parse_rules,
)
from rental_kernel.domain.clock import Clock, SystemClock
from rental_kernel.domain.values import to_decimal
from rental_kernel.exceptions import (
    AccessDeniedError,
    InvalidInputError,
    LeaseNotFoundError,
    PolicyNotFoundError,
    PropertyNotFoundError,
)
from rental_kernel.logging_config import get_logger
from rental_modules.leasing.models import Property
from rental_modules.leasing.store import LeaseStore, SqlLeaseStore
from rental_modules.termination.models import (
    DEFAULT_POLICY,
    PolicyDraft,
    TerminationPolicy,
)
from rental_modules.termination.policy_store import PolicyStore, SqlPolicyStore

logger = get_logger("modules.termination.policy_service")


def _non_negative_int(raw: Any, field: str, default: int) -> int:
    if raw is None:
        return default
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidInputError(f"{field} must be a whole number", field=field)
    if raw < 0:
        raise InvalidInputError(f"{field} must be >= 0", field=field)
    return raw


def build_draft(payload: Mapping[str, Any], defaults: PolicyDraft = DEFAULT_POLICY) -> PolicyDraft:
    """Validate manager input into a ``PolicyDraft``.

    Missing fields take the default policy's value; an empty rule list is
    replaced by the default rules.
    """
    raw_rules = payload.get("rules")
    rules = parse_rules(raw_rules) if raw_rules else defaults.rules

    categories = payload.get("emergency_categories")
    if categories is None:
        categories = defaults.emergency_categories
    elif isinstance(categories, str) or not all(isinstance(c, str) for c in categories):
        raise InvalidInputError(
            "emergency_categories must be a list of strings", field="emergencyCategories"
        )

    allow_waiver = payload.get("allow_emergency_waiver")
    if allow_waiver is None:
        allow_waiver = defaults.allow_emergency_waiver

    return PolicyDraft(
        minimum_notice_days=_non_negative_int(
            payload.get("minimum_notice_days"), "minimum_notice_days", defaults.minimum_notice_days
        ),
        rules=rules,
        allow_emergency_waiver=bool(allow_waiver),
        emergency_categories=tuple(categories),
        grace_period_days=_non_negative_int(
            payload.get("grace_period_days"), "grace_period_days", defaults.grace_period_days
        ),
    )


class TerminationPolicyService:
    """
    Policy management and penalty quotes.

    Contract
    --------
    * Policy writes never leave a property with two active policies.
    * ``calculate_penalty`` never raises for "no matching rule".

    Non-goals
    ---------
    * Does NOT apply emergency waivers; eligibility is advisory and the
      manager records the outcome on the termination request.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy_store: PolicyStore | None = None,
        lease_store: LeaseStore | None = None,
        default_policy: PolicyDraft = DEFAULT_POLICY,
        high_penalty_threshold: Decimal = HIGH_PENALTY_THRESHOLD,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policies = policy_store or SqlPolicyStore(session)
        self._leases = lease_store or SqlLeaseStore(session)
        self._default_policy = default_policy
        self._high_penalty_threshold = high_penalty_threshold

    @property
    def default_policy(self) -> PolicyDraft:
        return self._default_policy

    # =========================================================================
    # Reads
    # =========================================================================

    def list_policies(self, property_id: UUID, active_only: bool = False) -> list[TerminationPolicy]:
        """Policies of a property, newest version first.

        With ``active_only`` the default policy is provisioned when the
        property has none.
        """
        if not active_only:
            return self._policies.list_for_property(property_id)
        return [self.get_active_policy(property_id)]

    def get_policy(self, policy_id: UUID) -> TerminationPolicy:
        policy = self._policies.get(policy_id)
        if policy is None:
            raise PolicyNotFoundError(str(policy_id))
        return policy

    def get_active_policy(self, property_id: UUID) -> TerminationPolicy:
        existing = self._policies.get_active(property_id)
        if existing is not None:
            return existing
        return self.provision_default(property_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def provision_default(self, property_id: UUID) -> TerminationPolicy:
        """Give the property the default policy unless it has an active one.

        Called on property creation and lazily before the first calculation.
        """
        try:
            prop = self._require_property(property_id)
            policy, created = self._policies.ensure_default(
                property_id, self._default_policy, created_by_id=prop.manager_id
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        if created:
            logger.info(
                "default_policy_created",
                extra={"property_id": str(property_id), "policy_id": str(policy.id)},
            )
        return policy

    def create_policy(
        self,
        property_id: UUID,
        manager_id: UUID,
        payload: Mapping[str, Any],
    ) -> TerminationPolicy:
        try:
            self._require_manager(property_id, manager_id)
            draft = build_draft(payload, self._default_policy)
            policy = self._policies.create(property_id, draft, created_by_id=manager_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "termination_policy_created",
            extra={
                "property_id": str(property_id),
                "policy_id": str(policy.id),
                "version": policy.version,
                "rule_count": len(policy.rules),
            },
        )
        return policy

    def update_policy(
        self,
        policy_id: UUID,
        manager_id: UUID,
        payload: Mapping[str, Any],
    ) -> TerminationPolicy:
        """Replace a policy wholesale.  The old version stays as history."""
        try:
            current = self.get_policy(policy_id)
            self._require_manager(current.property_id, manager_id)
            base = PolicyDraft(
                minimum_notice_days=current.minimum_notice_days,
                rules=current.rules or self._default_policy.rules,
                allow_emergency_waiver=current.allow_emergency_waiver,
                emergency_categories=current.emergency_categories,
                grace_period_days=current.grace_period_days,
            )
            draft = build_draft(payload, base)
            policy = self._policies.replace(policy_id, draft, created_by_id=manager_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "termination_policy_updated",
            extra={
                "policy_id": str(policy.id),
                "supersedes_id": str(policy_id),
                "version": policy.version,
            },
        )
        return policy

    def delete_policy(self, policy_id: UUID, manager_id: UUID) -> TerminationPolicy:
        """Delete one policy version.

        Deleting the active version re-provisions the default in the same
        transaction, so the property is never left without an active policy.
        """
        try:
            current = self.get_policy(policy_id)
            prop = self._require_manager(current.property_id, manager_id)
            deleted = self._policies.delete(policy_id)
            if deleted.is_active:
                self._policies.ensure_default(
                    prop.id, self._default_policy, created_by_id=manager_id
                )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        return deleted

    # =========================================================================
    # Calculation
    # =========================================================================

    def calculate_penalty(
        self,
        property_id: UUID,
        lease_id: UUID,
        requested_end_date: date,
        monthly_rent: Decimal | int | str | None = None,
    ) -> PenaltyCalculation:
        lease = self._leases.get_lease(lease_id)
        if lease is None:
            raise LeaseNotFoundError(str(lease_id))
        if lease.property_id != property_id:
            raise LeaseNotFoundError(str(lease_id), reason="not a lease on this property")

        if monthly_rent is None:
            rent = lease.rent
        else:
            try:
                rent = to_decimal(monthly_rent)
            except ValueError as exc:
                raise InvalidInputError(
                    "monthlyRent must be a number", field="monthlyRent"
                ) from exc
            if rent < 0:
                raise InvalidInputError("monthlyRent must be >= 0", field="monthlyRent")

        policy = self.get_active_policy(property_id)
        result = calculate(
            policy=policy.to_snapshot(),
            lease=LeaseTerms(lease_id=lease.id, end_date=lease.end_date, monthly_rent=lease.rent),
            requested_end_date=requested_end_date,
            monthly_rent=rent,
            now=self._clock.now(),
            high_penalty_threshold=self._high_penalty_threshold,
        )
        logger.info(
            "termination_penalty_calculated",
            extra={
                "property_id": str(property_id),
                "lease_id": str(lease_id),
                "policy_id": str(policy.id),
                "is_valid": result.is_valid,
                "penalty_amount": str(result.penalty_amount),
                "months_remaining": result.months_remaining,
                "rule_matched": result.rule_matched,
            },
        )
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _require_property(self, property_id: UUID) -> Property:
        prop = self._leases.get_property(property_id)
        if prop is None:
            raise PropertyNotFoundError(str(property_id))
        return prop

    def _require_manager(self, property_id: UUID, manager_id: UUID) -> Property:
        prop = self._require_property(property_id)
        if prop.manager_id != manager_id:
            raise AccessDeniedError(str(manager_id), f"property {property_id}")
        return prop
