"""
Pytest fixtures for the rental lifecycle test suite.

Provides:
- In-memory SQLite engine/session with the real ORM models
- DeterministicClock and RecordingNotificationSink
- Seed helpers for properties, leases and payments
- Structured log capture
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from rental_kernel.db.engine import build_engine, create_tables
from rental_kernel.domain.clock import DeterministicClock
from rental_kernel.domain.values import LeaseStatus, PaymentKind, PaymentStatus
from rental_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from rental_kernel.services.notifications import Notifier, RecordingNotificationSink
from rental_modules.leasing.models import Lease, Property
from rental_modules.leasing.store import SqlLeaseStore
from rental_modules.payments.ledger import SqlPaymentLedger
from rental_modules.payments.models import Payment
from rental_modules.payments.service import PaymentService
from rental_modules.termination.policy_service import TerminationPolicyService
from rental_modules.termination.workflow import TerminationRequestWorkflow

# Mid-morning on a weekday, away from any month boundary.
DEFAULT_NOW = datetime(2024, 6, 10, 10, 30, 0)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture rental_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, payment_service):
            payment_service.sweep_overdue()
            logs = captured_logs()
            assert any(r["message"] == "overdue_sweep_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("rental_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    eng = build_engine("sqlite:///:memory:")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    s = session_factory()
    yield s
    s.close()


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(DEFAULT_NOW)


@pytest.fixture
def sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def notifier(sink) -> Notifier:
    return Notifier(sink)


@pytest.fixture
def payment_service(session, clock, notifier) -> PaymentService:
    return PaymentService(session, clock=clock, notifier=notifier)


@pytest.fixture
def policy_service(session, clock) -> TerminationPolicyService:
    return TerminationPolicyService(session, clock=clock)


@pytest.fixture
def workflow(session, clock, notifier, policy_service) -> TerminationRequestWorkflow:
    return TerminationRequestWorkflow(
        session, clock=clock, notifier=notifier, policy_service=policy_service
    )


# =============================================================================
# Seed helpers
# =============================================================================


@pytest.fixture
def manager_id() -> UUID:
    return uuid4()


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_property(session, manager_id):
    def _make(manager: UUID | None = None, name: str = "Maple Court") -> Property:
        prop = SqlLeaseStore(session).add_property(
            Property(id=uuid4(), manager_id=manager or manager_id, name=name)
        )
        session.commit()
        return prop

    return _make


@pytest.fixture
def make_lease(session, tenant_id):
    def _make(
        property_id: UUID,
        tenant: UUID | None = None,
        rent: Decimal | str = "1500.00",
        start_date: date = date(2024, 1, 1),
        end_date: date = date(2024, 12, 31),
        status: LeaseStatus = LeaseStatus.ACTIVE,
    ) -> Lease:
        lease = SqlLeaseStore(session).add_lease(
            Lease(
                id=uuid4(),
                property_id=property_id,
                tenant_id=tenant or tenant_id,
                rent=Decimal(rent),
                start_date=start_date,
                end_date=end_date,
                status=status,
            )
        )
        session.commit()
        return lease

    return _make


@pytest.fixture
def make_payment(session):
    def _make(
        lease_id: UUID,
        amount_due: Decimal | str = "1500.00",
        due_date: date = date(2024, 6, 1),
        amount_paid: Decimal | str = "0",
        status: PaymentStatus = PaymentStatus.PENDING,
        billing_month: date | None = None,
        kind: PaymentKind = PaymentKind.RENT,
    ) -> Payment:
        payment = SqlPaymentLedger(session).create(
            Payment(
                id=uuid4(),
                lease_id=lease_id,
                amount_due=Decimal(amount_due),
                due_date=due_date,
                amount_paid=Decimal(amount_paid),
                status=status,
                kind=kind,
                billing_month=billing_month,
            )
        )
        session.commit()
        return payment

    return _make


@pytest.fixture
def lease(make_property, make_lease) -> Lease:
    """One active 2024 lease at 1500/month on a fresh property."""
    prop = make_property()
    return make_lease(prop.id)
