"""
Cron evaluation for the lifecycle scheduler.

Contract:
    ``parse_cron``, ``matches_cron`` and ``next_cron_match`` are pure.  The
    scheduler passes in the time read from its injected clock.

Architecture: rental_batch/domain.  ZERO I/O.

Invariants enforced:
    - Five fields: minute, hour, day of month, month, day of week (0 = Sunday).
    - Day of month and day of week must BOTH match.  ``0 8 25 * 1`` fires
      only on a Monday the 25th.
    - ``next_cron_match`` scans at most 366 days ahead.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NamedTuple


class _FieldBounds(NamedTuple):
    name: str
    low: int
    high: int


_FIELDS: tuple[_FieldBounds, ...] = (
    _FieldBounds("minute", 0, 59),
    _FieldBounds("hour", 0, 23),
    _FieldBounds("day of month", 1, 31),
    _FieldBounds("month", 1, 12),
    _FieldBounds("day of week", 0, 6),
)

# "*", "7", "1-5", optionally followed by "/step".
_TERM = re.compile(r"^(?P<base>\*|\d+(?:-\d+)?)(?:/(?P<step>\d+))?$")


@dataclass(frozen=True)
class CronSpec:
    """Allowed values per field, plus the normalized expression text."""

    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]
    expression: str


def _expand_term(term: str, bounds: _FieldBounds) -> range:
    match = _TERM.match(term)
    if match is None:
        raise ValueError(f"Invalid {bounds.name} term '{term}'")

    base, step_text = match.group("base"), match.group("step")
    step = int(step_text) if step_text is not None else 1
    if step == 0:
        raise ValueError(f"Invalid {bounds.name} term '{term}': step must be positive")

    if base == "*":
        first, last = bounds.low, bounds.high
    elif "-" in base:
        first, last = (int(x) for x in base.split("-"))
        if first > last:
            raise ValueError(f"Invalid {bounds.name} term '{term}': range is reversed")
    else:
        first = int(base)
        # "5/15" means every 15th value starting at 5.
        last = bounds.high if step_text is not None else first

    for value in (first, last):
        if not bounds.low <= value <= bounds.high:
            raise ValueError(
                f"{bounds.name} value {value} outside {bounds.low}-{bounds.high}"
            )
    return range(first, last + 1, step)


def _parse_field(text: str, bounds: _FieldBounds) -> frozenset[int]:
    values: set[int] = set()
    for term in text.split(","):
        values.update(_expand_term(term, bounds))
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """
    Parse ``minute hour day_of_month month day_of_week``.

    Each field accepts ``*``, numbers, ``a-b`` ranges, ``/n`` steps and
    comma lists.  Names (``MON``, ``JAN``) and ``L``/``W``/``?`` are not
    supported.

    Raises:
        ValueError: wrong field count, unknown syntax or out-of-range value.
    """
    fields = expression.split()
    if len(fields) != len(_FIELDS):
        raise ValueError(f"Cron expression needs 5 fields, got {len(fields)}: '{expression}'")

    minutes, hours, days, months, weekdays = (
        _parse_field(text, bounds) for text, bounds in zip(fields, _FIELDS)
    )
    return CronSpec(
        minutes=minutes,
        hours=hours,
        days_of_month=days,
        months=months,
        days_of_week=weekdays,
        expression=" ".join(fields),
    )


def _day_allowed(spec: CronSpec, moment: datetime) -> bool:
    weekday = moment.isoweekday() % 7  # Sunday -> 0
    return (
        moment.month in spec.months
        and moment.day in spec.days_of_month
        and weekday in spec.days_of_week
    )


def matches_cron(spec: CronSpec, moment: datetime) -> bool:
    return (
        _day_allowed(spec, moment)
        and moment.hour in spec.hours
        and moment.minute in spec.minutes
    )


_SCAN_DAYS = 366


def next_cron_match(spec: CronSpec, after: datetime, inclusive: bool = False) -> datetime:
    """
    First minute matching ``spec`` after ``after``.

    With ``inclusive`` the minute containing ``after`` is itself a
    candidate.  Seconds are dropped and ``after.tzinfo`` is kept.

    Raises:
        ValueError: nothing matches within 366 days (``0 0 31 2 *``).
    """
    moment = after.replace(second=0, microsecond=0)
    if not inclusive:
        moment += timedelta(minutes=1)
    horizon = moment + timedelta(days=_SCAN_DAYS)

    while moment <= horizon:
        if not _day_allowed(spec, moment):
            moment = moment.replace(hour=0, minute=0) + timedelta(days=1)
        elif moment.hour not in spec.hours:
            moment = moment.replace(minute=0) + timedelta(hours=1)
        elif moment.minute not in spec.minutes:
            moment += timedelta(minutes=1)
        else:
            return moment

    raise ValueError(
        f"No match for cron '{spec.expression}' within {_SCAN_DAYS} days after {after.isoformat()}"
    )
