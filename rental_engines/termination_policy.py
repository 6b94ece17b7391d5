"""
Termination policy engine -- early-exit penalty calculation.

Responsibility:
    Given a property's termination policy, a lease and a requested end date,
    compute the notice given, the whole calendar months remaining, the
    penalty tier that applies and the resulting penalty amount.  Also owns
    the typed penalty-rule structure and its validation, used by the policy
    store when rules cross the JSON boundary.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Callers pass a freshly
    loaded ``PolicySnapshot``; loading and default provisioning live in
    ``rental_modules.termination.policy_service``.

Invariants enforced:
    - Rule selection is first-match-wins in list order with inclusive bounds.
    - "No matching rule" never raises: the highest-percentage rule is applied
      (first among equals) with a warning.  An empty rule list yields 0%.
    - Minimum-notice violations are reported as errors but never stop the
      calculation; the caller decides whether to block.
    - Months remaining is computed from (year, month) pairs only.
    - penalty_amount = round_half_up(monthly_rent * pct / 100, 0.01).

Failure modes:
    - InvalidPolicyRulesError from ``parse_rules`` for malformed rule data.
    - ``calculate`` itself raises nothing for well-typed inputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from rental_engines.tracer import traced_engine
from rental_kernel.domain.dates import days_until, months_between
from rental_kernel.domain.values import HUNDRED, ZERO, percentage_of, to_decimal
from rental_kernel.exceptions import InvalidPolicyRulesError

# Sentinel for "no upper bound" on months remaining.
UNBOUNDED_MONTHS = 999

HIGH_PENALTY_THRESHOLD = Decimal("50")


@dataclass(frozen=True)
class PenaltyRule:
    """One penalty tier: a months-remaining range and its percentage of rent."""

    min_months_remaining: int
    max_months_remaining: int
    penalty_percentage: Decimal
    description: str = ""

    def matches(self, months_remaining: int) -> bool:
        return self.min_months_remaining <= months_remaining <= self.max_months_remaining

    def to_dict(self) -> dict[str, Any]:
        """JSON form, as persisted in ``penalty_rules`` and returned by the API."""
        return {
            "minMonthsRemaining": self.min_months_remaining,
            "maxMonthsRemaining": self.max_months_remaining,
            "penaltyPercentage": float(self.penalty_percentage),
            "description": self.description,
        }


@dataclass(frozen=True)
class PolicySnapshot:
    """The parts of a termination policy the calculation reads."""

    policy_id: UUID | None
    minimum_notice_days: int
    rules: tuple[PenaltyRule, ...]
    allow_emergency_waiver: bool
    emergency_categories: tuple[str, ...] = ()
    grace_period_days: int = 0
    version: int = 1


@dataclass(frozen=True)
class LeaseTerms:
    lease_id: UUID
    end_date: date
    monthly_rent: Decimal


@dataclass(frozen=True)
class PenaltyCalculation:
    """
    Result of one penalty calculation.

    Guarantees:
        - is_valid is True iff errors is empty.
        - rule_matched is False when applied_rule is a fallback (or None).
        - emergency_categories is copied verbatim from the policy; waiver
          eligibility is advisory only.
    """

    is_valid: bool
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    applied_policy: PolicySnapshot
    applied_rule: PenaltyRule | None
    rule_matched: bool
    penalty_amount: Decimal
    penalty_percentage: Decimal
    days_notice: int
    months_remaining: int
    can_waive_for_emergency: bool
    emergency_categories: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Rule (de)serialization
# ---------------------------------------------------------------------------

_KEY_ALIASES = {
    "min": ("minMonthsRemaining", "min_months_remaining"),
    "max": ("maxMonthsRemaining", "max_months_remaining"),
    "pct": ("penaltyPercentage", "penalty_percentage"),
    "description": ("description",),
}


def _lookup(raw: Mapping[str, Any], key: str) -> Any:
    for alias in _KEY_ALIASES[key]:
        if alias in raw:
            return raw[alias]
    return None


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, Decimal):
        if value.is_finite() and value == value.to_integral_value():
            return int(value)
        return None
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _parse_one(index: int, raw: Any) -> tuple[PenaltyRule | None, list[str]]:
    problems: list[str] = []
    if isinstance(raw, PenaltyRule):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        return None, [f"rule {index}: expected an object, got {type(raw).__name__}"]

    min_months = _parse_int(_lookup(raw, "min"))
    max_raw = _lookup(raw, "max")
    max_months = UNBOUNDED_MONTHS if max_raw is None else _parse_int(max_raw)

    if min_months is None:
        problems.append(f"rule {index}: minMonthsRemaining must be an integer")
    elif min_months < 0:
        problems.append(f"rule {index}: minMonthsRemaining must be >= 0")
    if max_months is None:
        problems.append(f"rule {index}: maxMonthsRemaining must be an integer")
    elif min_months is not None and max_months < min_months:
        problems.append(
            f"rule {index}: maxMonthsRemaining ({max_months}) is below "
            f"minMonthsRemaining ({min_months})"
        )

    pct: Decimal | None
    try:
        pct = to_decimal(_lookup(raw, "pct"))
    except ValueError:
        pct = None
        problems.append(f"rule {index}: penaltyPercentage must be a number")
    if pct is not None and not (ZERO <= pct <= HUNDRED):
        problems.append(f"rule {index}: penaltyPercentage must be between 0 and 100")

    description = _lookup(raw, "description")
    if description is not None and not isinstance(description, str):
        problems.append(f"rule {index}: description must be a string")

    if problems:
        return None, problems
    return (
        PenaltyRule(
            min_months_remaining=min_months,
            max_months_remaining=max_months,
            penalty_percentage=pct,
            description=description or "",
        ),
        [],
    )


def parse_rules(raw_rules: Any) -> tuple[PenaltyRule, ...]:
    """Validate raw (JSON) rule data into typed rules.

    Raises:
        InvalidPolicyRulesError: listing every problem found.
    """
    rules, problems = parse_rules_lenient(raw_rules)
    if problems:
        raise InvalidPolicyRulesError(problems)
    return rules


def parse_rules_lenient(raw_rules: Any) -> tuple[tuple[PenaltyRule, ...], list[str]]:
    """Like ``parse_rules`` but keeps the valid rules and reports the rest."""
    if raw_rules is None:
        return (), []
    if isinstance(raw_rules, (str, bytes)) or not isinstance(raw_rules, Iterable):
        return (), ["rules must be a list"]

    rules: list[PenaltyRule] = []
    problems: list[str] = []
    for index, raw in enumerate(raw_rules):
        rule, rule_problems = _parse_one(index, raw)
        if rule is not None:
            rules.append(rule)
        problems.extend(rule_problems)
    return tuple(rules), problems


def rules_to_json(rules: Iterable[PenaltyRule]) -> list[dict[str, Any]]:
    return [rule.to_dict() for rule in rules]


# ---------------------------------------------------------------------------
# Calculation
# ---------------------------------------------------------------------------


def select_rule(
    rules: tuple[PenaltyRule, ...],
    months_remaining: int,
) -> tuple[PenaltyRule | None, bool]:
    """First rule whose inclusive range contains ``months_remaining``.

    Returns (rule, matched).  Without a match the highest-percentage rule is
    returned (the earliest one when several share the maximum) with
    matched=False.  An empty list returns (None, False).
    """
    for rule in rules:
        if rule.matches(months_remaining):
            return rule, True
    if not rules:
        return None, False
    highest = rules[0]
    for rule in rules[1:]:
        if rule.penalty_percentage > highest.penalty_percentage:
            highest = rule
    return highest, False


@traced_engine(
    "termination_policy",
    "1.0",
    fingerprint_fields=(
        "policy",
        "lease",
        "requested_end_date",
        "monthly_rent",
        "now",
        "high_penalty_threshold",
    ),
)
def calculate(
    policy: PolicySnapshot,
    lease: LeaseTerms,
    requested_end_date: date,
    monthly_rent: Decimal,
    now: datetime,
    high_penalty_threshold: Decimal = HIGH_PENALTY_THRESHOLD,
) -> PenaltyCalculation:
    errors: list[str] = []
    warnings: list[str] = []

    days_notice = days_until(requested_end_date, now)
    if days_notice < policy.minimum_notice_days:
        errors.append(
            f"Minimum notice required is {policy.minimum_notice_days} days. "
            f"You are only giving {days_notice} days notice."
        )

    months_remaining = months_between(requested_end_date, lease.end_date)
    months_for_matching = months_remaining
    if months_remaining < 0:
        warnings.append(
            "Requested end date is after the lease end date; "
            "treating it as 0 months remaining."
        )
        months_for_matching = 0

    rule, matched = select_rule(policy.rules, months_for_matching)
    if rule is None:
        percentage = ZERO
        warnings.append("Policy has no penalty rules. No penalty applied.")
    else:
        percentage = rule.penalty_percentage
        if not matched:
            warnings.append("No specific rule found. Applying highest penalty rate.")

    if percentage >= high_penalty_threshold:
        warnings.append(
            f"High penalty rate ({percentage.normalize():f}%). "
            "Consider negotiating or extending notice period."
        )

    return PenaltyCalculation(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        applied_policy=policy,
        applied_rule=rule,
        rule_matched=matched,
        penalty_amount=percentage_of(monthly_rent, percentage),
        penalty_percentage=percentage,
        days_notice=days_notice,
        months_remaining=months_remaining,
        can_waive_for_emergency=policy.allow_emergency_waiver,
        emergency_categories=tuple(policy.emergency_categories),
    )


def estimate_notice_penalty(
    monthly_rent: Decimal,
    days_notice: int,
    no_penalty_days: int = 60,
    half_penalty_days: int = 30,
) -> Decimal:
    """Quick display estimate used at request submission.

    At least ``no_penalty_days`` notice costs nothing, at least
    ``half_penalty_days`` costs half a month's rent, anything shorter a full
    month.
    """
    if days_notice >= no_penalty_days:
        return percentage_of(monthly_rent, ZERO)
    if days_notice >= half_penalty_days:
        return percentage_of(monthly_rent, Decimal("50"))
    return percentage_of(monthly_rent, HUNDRED)
