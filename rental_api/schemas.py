"""
HTTP request/response schemas (``rental_api.schemas``).

Pydantic models with camelCase aliases.  Money is ``Decimal`` on the way in
and a decimal string on the way out; it is never converted to ``float``.
Each response model has a ``from_dto`` that maps the frozen domain
dataclass onto the wire shape.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from rental_engines.termination_policy import PenaltyCalculation, PenaltyRule, PolicySnapshot
from rental_modules.payments.models import CurrentMonthStatus, Payment
from rental_modules.termination.models import (
    TerminationPolicy,
    TerminationRequest,
    TerminationRequestDetails,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================
# PAYMENTS
# ============================================================


class RecordPaymentRequest(CamelModel):
    amount_paid: Decimal
    payment_date: date | None = None


class PaymentResponse(CamelModel):
    id: UUID
    lease_id: UUID
    amount_due: Decimal
    amount_paid: Decimal
    balance: Decimal
    due_date: date
    payment_date: date | None = None
    payment_status: str
    kind: str
    billing_month: date | None = None
    description: str | None = None

    @classmethod
    def from_dto(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            lease_id=payment.lease_id,
            amount_due=payment.amount_due,
            amount_paid=payment.amount_paid,
            balance=payment.balance,
            due_date=payment.due_date,
            payment_date=payment.payment_date,
            payment_status=payment.status.value,
            kind=payment.kind.value,
            billing_month=payment.billing_month,
            description=payment.description,
        )


class CurrentStatusResponse(CamelModel):
    payment_status: str
    amount_due: Decimal
    amount_paid: Decimal
    due_date: date | None = None
    payment_date: date | None = None
    payment_id: UUID | None = None

    @classmethod
    def from_dto(cls, current: CurrentMonthStatus) -> "CurrentStatusResponse":
        return cls(
            payment_status=current.status.value,
            amount_due=current.amount_due,
            amount_paid=current.amount_paid,
            due_date=current.due_date,
            payment_date=current.payment_date,
            payment_id=current.payment_id,
        )


class OverdueCheckResponse(CamelModel):
    message: str
    overdue_payments: list[PaymentResponse]


# ============================================================
# TERMINATION POLICIES
# ============================================================


class PenaltyRuleResponse(CamelModel):
    min_months_remaining: int
    max_months_remaining: int
    penalty_percentage: Decimal
    description: str = ""

    @classmethod
    def from_rule(cls, rule: PenaltyRule) -> "PenaltyRuleResponse":
        return cls(
            min_months_remaining=rule.min_months_remaining,
            max_months_remaining=rule.max_months_remaining,
            penalty_percentage=rule.penalty_percentage,
            description=rule.description,
        )


class PolicyRequest(CamelModel):
    """Create/replace body.  Omitted fields take the default policy's values."""

    property_id: UUID | None = None
    minimum_notice_days: int | None = None
    rules: list[dict[str, Any]] | None = None
    allow_emergency_waiver: bool | None = None
    emergency_categories: list[str] | None = None
    grace_period_days: int | None = None

    def to_payload(self) -> dict[str, Any]:
        """Snake-case mapping for ``build_draft``; rules pass through raw."""
        return self.model_dump(exclude={"property_id"}, exclude_none=True)


class PolicyResponse(CamelModel):
    id: UUID
    property_id: UUID
    is_active: bool
    version: int
    supersedes_id: UUID | None = None
    minimum_notice_days: int
    rules: list[PenaltyRuleResponse]
    allow_emergency_waiver: bool
    emergency_categories: list[str]
    grace_period_days: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dto(cls, policy: TerminationPolicy) -> "PolicyResponse":
        return cls(
            id=policy.id,
            property_id=policy.property_id,
            is_active=policy.is_active,
            version=policy.version,
            supersedes_id=policy.supersedes_id,
            minimum_notice_days=policy.minimum_notice_days,
            rules=[PenaltyRuleResponse.from_rule(r) for r in policy.rules],
            allow_emergency_waiver=policy.allow_emergency_waiver,
            emergency_categories=list(policy.emergency_categories),
            grace_period_days=policy.grace_period_days,
            created_at=policy.created_at,
            updated_at=policy.updated_at,
        )


class AppliedPolicyResponse(CamelModel):
    """The policy a calculation ran against."""

    id: UUID | None = None
    version: int
    minimum_notice_required: int
    rules: list[PenaltyRuleResponse]
    allow_emergency_waiver: bool
    emergency_categories: list[str]

    @classmethod
    def from_snapshot(cls, policy: PolicySnapshot) -> "AppliedPolicyResponse":
        return cls(
            id=policy.policy_id,
            version=policy.version,
            minimum_notice_required=policy.minimum_notice_days,
            rules=[PenaltyRuleResponse.from_rule(r) for r in policy.rules],
            allow_emergency_waiver=policy.allow_emergency_waiver,
            emergency_categories=list(policy.emergency_categories),
        )


class CalculatePenaltyRequest(CamelModel):
    property_id: UUID
    lease_id: UUID
    requested_end_date: date
    monthly_rent: Decimal | None = None


class PenaltyCalculationResponse(CamelModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    applied_policy: AppliedPolicyResponse
    applied_rule: PenaltyRuleResponse | None = None
    rule_matched: bool
    penalty_amount: Decimal
    penalty_percentage: Decimal
    days_notice: int
    months_remaining: int
    can_waive_for_emergency: bool
    emergency_categories: list[str]

    @classmethod
    def from_result(cls, result: PenaltyCalculation) -> "PenaltyCalculationResponse":
        return cls(
            is_valid=result.is_valid,
            errors=list(result.errors),
            warnings=list(result.warnings),
            applied_policy=AppliedPolicyResponse.from_snapshot(result.applied_policy),
            applied_rule=(
                PenaltyRuleResponse.from_rule(result.applied_rule)
                if result.applied_rule is not None
                else None
            ),
            rule_matched=result.rule_matched,
            penalty_amount=result.penalty_amount,
            penalty_percentage=result.penalty_percentage,
            days_notice=result.days_notice,
            months_remaining=result.months_remaining,
            can_waive_for_emergency=result.can_waive_for_emergency,
            emergency_categories=list(result.emergency_categories),
        )


# ============================================================
# TERMINATION REQUESTS
# ============================================================


class SubmitTerminationRequest(CamelModel):
    lease_id: UUID
    reason: str
    requested_end_date: date


class DecideTerminationRequest(CamelModel):
    status: str
    manager_response: str | None = None
    final_penalty_fee: Decimal | None = None
    approved_end_date: date | None = None


class TerminationRequestResponse(CamelModel):
    id: UUID
    lease_id: UUID
    tenant_id: UUID
    manager_id: UUID
    reason: str
    requested_end_date: date
    estimated_penalty_fee: Decimal
    final_penalty_fee: Decimal | None = None
    is_early_termination: bool
    status: str
    manager_response: str | None = None
    requested_date: datetime
    response_date: datetime | None = None
    approved_end_date: date | None = None

    @classmethod
    def from_dto(cls, request: TerminationRequest) -> "TerminationRequestResponse":
        return cls(
            id=request.id,
            lease_id=request.lease_id,
            tenant_id=request.tenant_id,
            manager_id=request.manager_id,
            reason=request.reason,
            requested_end_date=request.requested_end_date,
            estimated_penalty_fee=request.estimated_penalty_fee,
            final_penalty_fee=request.final_penalty_fee,
            is_early_termination=request.is_early_termination,
            status=request.status.value,
            manager_response=request.manager_response,
            requested_date=request.requested_date,
            response_date=request.response_date,
            approved_end_date=request.approved_end_date,
        )


class TerminationRequestDetailsResponse(TerminationRequestResponse):
    property_id: UUID
    lease_end_date: date
    monthly_rent: Decimal
    estimated_penalty: Decimal
    days_until_requested_end: int
    calculation: PenaltyCalculationResponse | None = None

    @classmethod
    def from_details(
        cls, details: TerminationRequestDetails
    ) -> "TerminationRequestDetailsResponse":
        base = TerminationRequestResponse.from_dto(details.request)
        return cls(
            **base.model_dump(exclude={"is_early_termination"}),
            property_id=details.property_id,
            lease_end_date=details.lease_end_date,
            monthly_rent=details.monthly_rent,
            estimated_penalty=details.estimated_penalty,
            days_until_requested_end=details.days_until_requested_end,
            is_early_termination=details.is_early_termination,
            calculation=(
                PenaltyCalculationResponse.from_result(details.calculation)
                if details.calculation is not None
                else None
            ),
        )


class MessageResponse(CamelModel):
    message: str
