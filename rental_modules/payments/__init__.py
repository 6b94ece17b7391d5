"""Payments -- monthly rent obligations, recording and overdue detection."""

from rental_modules.payments.ledger import PaymentLedger, SqlPaymentLedger
from rental_modules.payments.models import CurrentMonthStatus, Payment, PaymentCreation
from rental_modules.payments.service import PaymentService

__all__ = [
    "CurrentMonthStatus",
    "Payment",
    "PaymentCreation",
    "PaymentLedger",
    "PaymentService",
    "SqlPaymentLedger",
]
