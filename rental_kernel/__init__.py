"""
rental_kernel -- Shared foundation for the lease financial lifecycle core.

Provides the injectable clock, the typed exception hierarchy, structured
JSON logging, the SQLAlchemy declarative base and engine helpers, domain
value types (payment/request/lease statuses, money rounding, calendar
arithmetic), and the best-effort notification sink.

Architecture:
    rental_kernel/ is the lowest layer.  It MUST NOT import from
    rental_engines/, rental_modules/, rental_batch/, rental_config/ or
    rental_api/.
"""
