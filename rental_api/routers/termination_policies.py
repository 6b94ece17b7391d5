"""
Termination policies: per-property CRUD (with version history) and the
penalty calculator.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from rental_api.dependencies import get_current_user_id, get_policy_service
from rental_api.schemas import (
    CalculatePenaltyRequest,
    PenaltyCalculationResponse,
    PolicyRequest,
    PolicyResponse,
)
from rental_kernel.exceptions import InvalidInputError
from rental_modules.termination.policy_service import TerminationPolicyService

router = APIRouter(prefix="/termination-policies", tags=["Termination policies"])


@router.get("", response_model=list[PolicyResponse])
def list_policies(
    property_id: UUID = Query(alias="propertyId"),
    active: bool = Query(default=False),
    _user_id: UUID = Depends(get_current_user_id),
    service: TerminationPolicyService = Depends(get_policy_service),
):
    """With ``active=true`` a property without a policy is given the default."""
    return [
        PolicyResponse.from_dto(p)
        for p in service.list_policies(property_id, active_only=active)
    ]


@router.post("/calculate", response_model=PenaltyCalculationResponse)
def calculate_penalty(
    body: CalculatePenaltyRequest,
    _user_id: UUID = Depends(get_current_user_id),
    service: TerminationPolicyService = Depends(get_policy_service),
):
    result = service.calculate_penalty(
        body.property_id,
        body.lease_id,
        body.requested_end_date,
        monthly_rent=body.monthly_rent,
    )
    return PenaltyCalculationResponse.from_result(result)


@router.get("/{policy_id}", response_model=PolicyResponse)
def get_policy(
    policy_id: UUID,
    _user_id: UUID = Depends(get_current_user_id),
    service: TerminationPolicyService = Depends(get_policy_service),
):
    return PolicyResponse.from_dto(service.get_policy(policy_id))


@router.post("", response_model=PolicyResponse, status_code=201)
def create_policy(
    body: PolicyRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: TerminationPolicyService = Depends(get_policy_service),
):
    if body.property_id is None:
        raise InvalidInputError("propertyId is required", field="propertyId")
    policy = service.create_policy(body.property_id, user_id, body.to_payload())
    return PolicyResponse.from_dto(policy)


@router.put("/{policy_id}", response_model=PolicyResponse)
def update_policy(
    policy_id: UUID,
    body: PolicyRequest,
    user_id: UUID = Depends(get_current_user_id),
    service: TerminationPolicyService = Depends(get_policy_service),
):
    return PolicyResponse.from_dto(service.update_policy(policy_id, user_id, body.to_payload()))


@router.delete("/{policy_id}", response_model=PolicyResponse)
def delete_policy(
    policy_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: TerminationPolicyService = Depends(get_policy_service),
):
    """Returns the deleted version."""
    return PolicyResponse.from_dto(service.delete_policy(policy_id, user_id))
