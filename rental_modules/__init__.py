"""
rental_modules -- Persistence and services for the rental lifecycle.

Subpackages:
    leasing      Property/lease shim over the external records.
    payments     Monthly rent obligations, recording, overdue sweep.
    termination  Termination policies and the early-termination workflow.
"""
