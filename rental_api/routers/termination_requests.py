"""
Termination requests: tenant submission and withdrawal, manager decision,
and listings for either side.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from rental_api.dependencies import get_current_user_id, get_termination_workflow
from rental_api.schemas import (
    DecideTerminationRequest,
    MessageResponse,
    SubmitTerminationRequest,
    TerminationRequestDetailsResponse,
    TerminationRequestResponse,
)
from rental_modules.termination.workflow import TerminationRequestWorkflow

router = APIRouter(prefix="/termination-requests", tags=["Termination requests"])


@router.post("", response_model=TerminationRequestResponse, status_code=201)
def submit_request(
    body: SubmitTerminationRequest,
    tenant_id: UUID = Depends(get_current_user_id),
    workflow: TerminationRequestWorkflow = Depends(get_termination_workflow),
):
    request = workflow.submit(body.lease_id, tenant_id, body.reason, body.requested_end_date)
    return TerminationRequestResponse.from_dto(request)


@router.get("/manager", response_model=list[TerminationRequestResponse])
def list_for_manager(
    property_id: UUID | None = Query(default=None, alias="propertyId"),
    status: str | None = Query(default=None),
    manager_id: UUID = Depends(get_current_user_id),
    workflow: TerminationRequestWorkflow = Depends(get_termination_workflow),
):
    requests = workflow.list_for_manager(manager_id, property_id=property_id, status=status)
    return [TerminationRequestResponse.from_dto(r) for r in requests]


@router.get("/tenant", response_model=list[TerminationRequestResponse])
def list_for_tenant(
    tenant_id: UUID = Depends(get_current_user_id),
    workflow: TerminationRequestWorkflow = Depends(get_termination_workflow),
):
    return [TerminationRequestResponse.from_dto(r) for r in workflow.list_for_tenant(tenant_id)]


@router.get("/{request_id}", response_model=TerminationRequestDetailsResponse)
def get_request(
    request_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    workflow: TerminationRequestWorkflow = Depends(get_termination_workflow),
):
    return TerminationRequestDetailsResponse.from_details(
        workflow.get_details(request_id, user_id)
    )


@router.put("/{request_id}", response_model=TerminationRequestResponse)
def decide_request(
    request_id: UUID,
    body: DecideTerminationRequest,
    manager_id: UUID = Depends(get_current_user_id),
    workflow: TerminationRequestWorkflow = Depends(get_termination_workflow),
):
    request = workflow.decide(
        request_id,
        manager_id,
        body.status,
        manager_response=body.manager_response,
        final_penalty_fee=body.final_penalty_fee,
        approved_end_date=body.approved_end_date,
    )
    return TerminationRequestResponse.from_dto(request)


@router.delete("/{request_id}", response_model=MessageResponse)
def withdraw_request(
    request_id: UUID,
    tenant_id: UUID = Depends(get_current_user_id),
    workflow: TerminationRequestWorkflow = Depends(get_termination_workflow),
):
    workflow.withdraw(request_id, tenant_id)
    return MessageResponse(message="Termination request withdrawn")
