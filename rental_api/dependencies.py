"""
FastAPI dependencies: database session, caller identity and services.

Everything is read from ``request.app.state`` as wired by ``create_app``,
so tests can swap the clock, notifier or database without monkeypatching.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Generator
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from rental_config.schema import RentalConfig
from rental_kernel.domain.clock import Clock
from rental_kernel.logging_config import LogContext
from rental_kernel.services.notifications import Notifier
from rental_modules.payments.service import PaymentService
from rental_modules.termination.policy_service import TerminationPolicyService
from rental_modules.termination.workflow import TerminationRequestWorkflow


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> UUID:
    """Caller identity from the ``X-User-Id`` header (authentication is upstream)."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="X-User-Id must be a UUID") from None
    LogContext.set(actor_id=str(user_id))
    return user_id


def get_config(request: Request) -> RentalConfig:
    return request.app.state.config


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_payment_service(
    db: Session = Depends(get_db),
    config: RentalConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> PaymentService:
    return PaymentService(
        db,
        clock=clock,
        notifier=notifier,
        reminder_lead_days=config.payments.reminder_lead_days,
    )


def get_policy_service(
    request: Request,
    db: Session = Depends(get_db),
    config: RentalConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
) -> TerminationPolicyService:
    return TerminationPolicyService(
        db,
        clock=clock,
        default_policy=request.app.state.default_policy,
        high_penalty_threshold=Decimal(config.termination.high_penalty_threshold),
    )


def get_termination_workflow(
    db: Session = Depends(get_db),
    config: RentalConfig = Depends(get_config),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
    policy_service: TerminationPolicyService = Depends(get_policy_service),
) -> TerminationRequestWorkflow:
    return TerminationRequestWorkflow(
        db,
        clock=clock,
        notifier=notifier,
        policy_service=policy_service,
        no_penalty_days=config.termination.no_penalty_days,
        half_penalty_days=config.termination.half_penalty_days,
    )
