"""
Payments: recording, listings, current-month status and the manual
overdue check.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from rental_api.dependencies import get_current_user_id, get_payment_service
from rental_api.schemas import (
    CurrentStatusResponse,
    OverdueCheckResponse,
    PaymentResponse,
    RecordPaymentRequest,
)
from rental_modules.payments.service import PaymentService

router = APIRouter(
    prefix="/payments",
    tags=["Payments"],
    dependencies=[Depends(get_current_user_id)],
)


@router.post("/check-overdue", response_model=OverdueCheckResponse)
def check_overdue(service: PaymentService = Depends(get_payment_service)):
    overdue = service.sweep_overdue()
    return OverdueCheckResponse(
        message=f"{len(overdue)} payments marked as overdue",
        overdue_payments=[PaymentResponse.from_dto(p) for p in overdue],
    )


@router.get("/lease/{lease_id}", response_model=list[PaymentResponse])
def payments_by_lease(lease_id: UUID, service: PaymentService = Depends(get_payment_service)):
    return [PaymentResponse.from_dto(p) for p in service.get_payments_by_lease(lease_id)]


@router.get("/lease/{lease_id}/current-status", response_model=CurrentStatusResponse)
def current_month_status(
    lease_id: UUID, service: PaymentService = Depends(get_payment_service)
):
    return CurrentStatusResponse.from_dto(service.get_current_month_status(lease_id))


@router.get("/property/{property_id}", response_model=list[PaymentResponse])
def payments_by_property(
    property_id: UUID, service: PaymentService = Depends(get_payment_service)
):
    return [PaymentResponse.from_dto(p) for p in service.get_payments_by_property(property_id)]


@router.get("/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: UUID, service: PaymentService = Depends(get_payment_service)):
    return PaymentResponse.from_dto(service.get_payment(payment_id))


@router.post("/{payment_id}/record", response_model=PaymentResponse)
def record_payment(
    payment_id: UUID,
    body: RecordPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    payment = service.record_payment(payment_id, body.amount_paid, paid_on=body.payment_date)
    return PaymentResponse.from_dto(payment)
