"""Exception taxonomy: every error has a code and maps to one HTTP status."""

import pytest

from rental_api.app import status_for
from rental_kernel.exceptions import (
    AccessDeniedError,
    InternalError,
    InvalidDecisionError,
    InvalidPaymentAmountError,
    LeaseNotActiveError,
    LeaseNotFoundError,
    NotificationDeliveryError,
    PaymentNotFoundError,
    RentalKernelError,
    RequestAlreadyDecidedError,
)


@pytest.mark.parametrize(
    "exc,status,code",
    [
        (PaymentNotFoundError("p1"), 404, "PAYMENT_NOT_FOUND"),
        (LeaseNotFoundError("l1", reason="not owned by tenant"), 404, "LEASE_NOT_FOUND"),
        (InvalidPaymentAmountError("-5"), 400, "INVALID_PAYMENT_AMOUNT"),
        (InvalidDecisionError("bad status"), 400, "INVALID_DECISION"),
        (AccessDeniedError("m2", "termination request r1"), 403, "ACCESS_DENIED"),
        (RequestAlreadyDecidedError("r1", "Approved"), 409, "REQUEST_ALREADY_DECIDED"),
        (LeaseNotActiveError("l1", "Terminated"), 409, "LEASE_NOT_ACTIVE"),
        (InternalError("database unavailable"), 500, "INTERNAL_ERROR"),
        (NotificationDeliveryError("u1", "PaymentDue", "timeout"), 500, "NOTIFICATION_DELIVERY_FAILED"),
        (RentalKernelError("unclassified"), 500, "RENTAL_KERNEL_ERROR"),
    ],
)
def test_status_and_code(exc, status, code):
    assert status_for(exc) == status
    assert exc.code == code


def test_structured_attributes():
    exc = LeaseNotFoundError("l1", reason="not owned by tenant")
    assert exc.lease_id == "l1"
    assert str(exc) == "Lease not found: l1 (not owned by tenant)"

    decided = RequestAlreadyDecidedError("r1", "Rejected")
    assert decided.current_status == "Rejected"
    assert InvalidPaymentAmountError("-5").field == "amountPaid"
