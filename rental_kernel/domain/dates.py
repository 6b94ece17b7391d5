"""
Calendar arithmetic for billing months and notice periods.

Month counting is done on (year, month) pairs, never by dividing day
counts, so February and 31-day months never cause drift.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta

SECONDS_PER_DAY = 86400


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def add_months(month_start: date, months: int) -> date:
    """Shift a first-of-month date by whole months."""
    index = month_start.year * 12 + (month_start.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def first_of_next_month(day: date) -> date:
    return add_months(first_of_month(day), 1)


def months_between(earlier: date, later: date) -> int:
    """Whole calendar months from ``earlier`` to ``later``.

    Only year and month take part; the day of month is ignored.  Negative
    when ``later`` is in an earlier month than ``earlier``.
    """
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def days_until(target: date, now: datetime) -> int:
    """Ceiling of the (fractional) days from ``now`` to midnight of ``target``."""
    target_start = datetime.combine(target, time.min, tzinfo=now.tzinfo)
    seconds = (target_start - now).total_seconds()
    return math.ceil(seconds / SECONDS_PER_DAY)


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)
