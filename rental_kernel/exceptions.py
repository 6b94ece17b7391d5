"""
Typed Exception Hierarchy for the rental lifecycle core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, the scheduler, tests) must react to errors by TYPE,
not by parsing messages.  Every exception:
  1. Belongs to exactly one CATEGORY class (catch by category)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (ids, amounts, statuses)

Example:
    try:
        workflow.decide(request_id, manager_id, "Approved", ...)
    except RequestAlreadyDecidedError as e:
        return {"error": str(e), "code": e.code, "status": e.current_status}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    RentalKernelError (base)
    |
    +-- NotFoundError                       -> 404
    |   +-- PaymentNotFoundError
    |   +-- LeaseNotFoundError
    |   +-- PropertyNotFoundError
    |   +-- PolicyNotFoundError
    |   +-- TerminationRequestNotFoundError
    |
    +-- InvalidInputError                   -> 400
    |   +-- InvalidPaymentAmountError
    |   +-- InvalidPolicyRulesError
    |   +-- InvalidTerminationDateError
    |   +-- InvalidDecisionError
    |
    +-- AccessDeniedError                   -> 403
    |
    +-- ConflictError                       -> 409
    |   +-- RequestAlreadyDecidedError
    |   +-- LeaseNotActiveError
    |   +-- DuplicatePaymentPeriodError
    |
    +-- InternalError                       -> 500
        +-- NotificationDeliveryError

===============================================================================
HANDLING PATTERNS
===============================================================================

1. IDEMPOTENT CREATION (DuplicatePaymentPeriodError is not a failure):

    try:
        ledger.add(payment)
    except DuplicatePaymentPeriodError:
        payment = ledger.find_rent_for_month(lease_id, month_start)

2. NOTIFICATIONS NEVER FAIL A MUTATION:

    NotificationDeliveryError is raised by sinks and swallowed (logged) by
    ``rental_kernel.services.notifications.Notifier``.  It never reaches
    service callers.
"""

from __future__ import annotations


class RentalKernelError(Exception):
    """
    Base exception for all rental core errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "RENTAL_KERNEL_ERROR"


# =============================================================================
# Categories
# =============================================================================


class NotFoundError(RentalKernelError):
    """Referenced entity is missing or not owned by the caller."""

    code: str = "NOT_FOUND"


class InvalidInputError(RentalKernelError):
    """Missing or malformed input."""

    code: str = "INVALID_INPUT"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class AccessDeniedError(RentalKernelError):
    """Caller is identified but does not own the target entity."""

    code: str = "ACCESS_DENIED"

    def __init__(self, actor_id: str, resource: str):
        self.actor_id = actor_id
        self.resource = resource
        super().__init__(f"Actor {actor_id} may not act on {resource}")


class ConflictError(RentalKernelError):
    """State changed underneath the caller or the change was already applied."""

    code: str = "CONFLICT"


class InternalError(RentalKernelError):
    """Persistence or collaborator failure."""

    code: str = "INTERNAL_ERROR"


# =============================================================================
# Not found
# =============================================================================


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class LeaseNotFoundError(NotFoundError):
    code: str = "LEASE_NOT_FOUND"

    def __init__(self, lease_id: str, reason: str | None = None):
        self.lease_id = lease_id
        self.reason = reason
        message = f"Lease not found: {lease_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class PropertyNotFoundError(NotFoundError):
    code: str = "PROPERTY_NOT_FOUND"

    def __init__(self, property_id: str):
        self.property_id = property_id
        super().__init__(f"Property not found: {property_id}")


class PolicyNotFoundError(NotFoundError):
    code: str = "POLICY_NOT_FOUND"

    def __init__(self, policy_id: str):
        self.policy_id = policy_id
        super().__init__(f"Termination policy not found: {policy_id}")


class TerminationRequestNotFoundError(NotFoundError):
    code: str = "TERMINATION_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Termination request not found: {request_id}")


# =============================================================================
# Invalid input
# =============================================================================


class InvalidPaymentAmountError(InvalidInputError):
    """Payment increments must be non-negative; amounts paid never decrease."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(
            f"Payment amount must be a non-negative number, got {amount}",
            field="amountPaid",
        )


class InvalidPolicyRulesError(InvalidInputError):
    """A penalty rule list failed validation at the store boundary."""

    code: str = "INVALID_POLICY_RULES"

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__(
            f"Invalid penalty rules: {'; '.join(problems)}", field="rules"
        )


class InvalidTerminationDateError(InvalidInputError):
    code: str = "INVALID_TERMINATION_DATE"

    def __init__(self, requested_end_date: str, reason: str):
        self.requested_end_date = requested_end_date
        self.reason = reason
        super().__init__(
            f"Invalid requested end date {requested_end_date}: {reason}",
            field="requestedEndDate",
        )


class InvalidDecisionError(InvalidInputError):
    code: str = "INVALID_DECISION"

    def __init__(self, message: str, field: str | None = "status"):
        super().__init__(message, field=field)


# =============================================================================
# Conflict
# =============================================================================


class RequestAlreadyDecidedError(ConflictError):
    """A termination request can be decided exactly once."""

    code: str = "REQUEST_ALREADY_DECIDED"

    def __init__(self, request_id: str, current_status: str):
        self.request_id = request_id
        self.current_status = current_status
        super().__init__(
            f"Termination request {request_id} has already been processed "
            f"(status: {current_status})"
        )


class LeaseNotActiveError(ConflictError):
    """The lease was already terminated or has expired."""

    code: str = "LEASE_NOT_ACTIVE"

    def __init__(self, lease_id: str, current_status: str):
        self.lease_id = lease_id
        self.current_status = current_status
        super().__init__(f"Lease {lease_id} is not active (status: {current_status})")


class DuplicatePaymentPeriodError(ConflictError):
    """A rent payment for this lease and month already exists."""

    code: str = "DUPLICATE_PAYMENT_PERIOD"

    def __init__(self, lease_id: str, billing_month: str):
        self.lease_id = lease_id
        self.billing_month = billing_month
        super().__init__(
            f"Payment for lease {lease_id} and month {billing_month} already exists"
        )


# =============================================================================
# Internal
# =============================================================================


class NotificationDeliveryError(InternalError):
    code: str = "NOTIFICATION_DELIVERY_FAILED"

    def __init__(self, recipient_id: str, event: str, reason: str):
        self.recipient_id = recipient_id
        self.event = event
        self.reason = reason
        super().__init__(
            f"Could not deliver {event} to {recipient_id}: {reason}"
        )
