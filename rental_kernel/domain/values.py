"""
Values -- Status enums and money helpers shared by every layer.

Responsibility:
    Defines the lifecycle states of payments, leases and termination
    requests, and the Decimal helpers used wherever money is computed.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Money is ``Decimal`` end to end; ``to_decimal`` rejects floats'
      binary noise by going through ``str``.
    - ``round_money`` rounds half-up to two places (the cent).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class PaymentStatus(str, Enum):
    """Settlement state of one rent obligation."""

    PENDING = "Pending"
    PARTIALLY_PAID = "PartiallyPaid"
    PAID = "Paid"
    OVERDUE = "Overdue"


# States the overdue sweep is allowed to move out of.
OPEN_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.PENDING, PaymentStatus.PARTIALLY_PAID}
)


class PaymentKind(str, Enum):
    """What the obligation is for."""

    RENT = "rent"
    TERMINATION_PENALTY = "termination_penalty"


class LeaseStatus(str, Enum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    TERMINATED = "Terminated"


class TerminationRequestStatus(str, Enum):
    """Pending -> Approved | Rejected.  Both decisions are terminal."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


DECIDED_REQUEST_STATUSES: frozenset[TerminationRequestStatus] = frozenset(
    {TerminationRequestStatus.APPROVED, TerminationRequestStatus.REJECTED}
)


def to_decimal(value: Any) -> Decimal:
    """Coerce an int/str/float/Decimal to Decimal.

    Raises:
        ValueError: If the value is not numeric or is NaN/infinite.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to the cent, half-up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """``round_money(amount * percentage / 100)``."""
    return round_money(amount * percentage / HUNDRED)
