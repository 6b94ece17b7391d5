"""
rental_kernel.domain -- Pure value types, calendar helpers and the Clock.

ZERO I/O apart from ``SystemClock``.
"""
