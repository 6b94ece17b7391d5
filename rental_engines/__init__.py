"""
rental_engines -- Pure calculators for the rental lifecycle.

Every engine here is a plain function over frozen dataclasses: no sessions,
no clock reads, no logging other than the RENTAL_ENGINE_TRACE record.
"""

from rental_engines.payment_state import (
    PaymentTransition,
    apply_payment,
    derive_status,
    mark_overdue,
)
from rental_engines.termination_policy import (
    UNBOUNDED_MONTHS,
    LeaseTerms,
    PenaltyCalculation,
    PenaltyRule,
    PolicySnapshot,
    calculate,
    estimate_notice_penalty,
    parse_rules,
)

__all__ = [
    "UNBOUNDED_MONTHS",
    "LeaseTerms",
    "PaymentTransition",
    "PenaltyCalculation",
    "PenaltyRule",
    "PolicySnapshot",
    "apply_payment",
    "calculate",
    "derive_status",
    "estimate_notice_penalty",
    "mark_overdue",
    "parse_rules",
]
