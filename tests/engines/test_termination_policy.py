"""
Tests for rental_engines.termination_policy.

Covers rule parsing at the JSON boundary, first-match-wins selection with
inclusive bounds, the fallback and empty-policy paths, the minimum-notice
error and the quick notice estimate.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from rental_engines.termination_policy import (
    UNBOUNDED_MONTHS,
    LeaseTerms,
    PenaltyRule,
    PolicySnapshot,
    calculate,
    estimate_notice_penalty,
    parse_rules,
    parse_rules_lenient,
    rules_to_json,
    select_rule,
)
from rental_kernel.exceptions import InvalidPolicyRulesError

NOW = datetime(2024, 6, 10, 10, 30)


def _rules(*tiers):
    return tuple(PenaltyRule(lo, hi, Decimal(pct)) for lo, hi, pct in tiers)


def _policy(rules, minimum_notice_days=30, allow_waiver=True, categories=("Medical emergency",)):
    return PolicySnapshot(
        policy_id=uuid4(),
        minimum_notice_days=minimum_notice_days,
        rules=rules,
        allow_emergency_waiver=allow_waiver,
        emergency_categories=categories,
    )


def _lease(end_date=date(2025, 6, 30), rent="1000"):
    return LeaseTerms(lease_id=uuid4(), end_date=end_date, monthly_rent=Decimal(rent))


FOUR_TIERS = _rules((6, 999, "100"), (3, 6, "50"), (1, 3, "25"), (0, 1, "0"))


# =============================================================================
# Parsing
# =============================================================================


class TestParseRules:
    def test_camel_case_keys(self):
        rules = parse_rules(
            [{"minMonthsRemaining": 2, "maxMonthsRemaining": 5, "penaltyPercentage": 50, "description": "mid"}]
        )
        assert rules == (PenaltyRule(2, 5, Decimal("50"), "mid"),)

    def test_snake_case_keys_and_missing_max_is_unbounded(self):
        rules = parse_rules([{"min_months_remaining": 6, "penalty_percentage": "100"}])
        assert rules[0].max_months_remaining == UNBOUNDED_MONTHS

    def test_integral_float_accepted(self):
        rules = parse_rules([{"minMonthsRemaining": 1.0, "maxMonthsRemaining": 3.0, "penaltyPercentage": 25.5}])
        assert rules[0].min_months_remaining == 1
        assert rules[0].penalty_percentage == Decimal("25.5")

    @pytest.mark.parametrize(
        "raw",
        [
            [{"minMonthsRemaining": -1, "maxMonthsRemaining": 2, "penaltyPercentage": 10}],
            [{"minMonthsRemaining": 5, "maxMonthsRemaining": 2, "penaltyPercentage": 10}],
            [{"minMonthsRemaining": 0, "maxMonthsRemaining": 2, "penaltyPercentage": 101}],
            [{"minMonthsRemaining": 0, "maxMonthsRemaining": 2, "penaltyPercentage": "lots"}],
            [{"minMonthsRemaining": 1.5, "maxMonthsRemaining": 2, "penaltyPercentage": 10}],
            ["not an object"],
            "not a list",
        ],
    )
    def test_malformed_rejected(self, raw):
        with pytest.raises(InvalidPolicyRulesError):
            parse_rules(raw)

    def test_lenient_keeps_valid_rules(self):
        rules, problems = parse_rules_lenient(
            [
                {"minMonthsRemaining": 0, "maxMonthsRemaining": 1, "penaltyPercentage": 0},
                {"minMonthsRemaining": "x", "penaltyPercentage": 10},
            ]
        )
        assert len(rules) == 1
        assert len(problems) == 1
        assert problems[0].startswith("rule 1:")

    def test_json_round_trip_preserves_order(self):
        assert parse_rules(rules_to_json(FOUR_TIERS)) == FOUR_TIERS


# =============================================================================
# Selection
# =============================================================================


class TestSelectRule:
    def test_inclusive_upper_bound(self):
        rule, matched = select_rule(_rules((0, 1, "0"), (2, 5, "50")), 1)
        assert matched
        assert rule.penalty_percentage == Decimal("0")

    def test_overlap_first_in_list_wins(self):
        # 3 is both {3,6} min and {1,3} max: list order decides.
        rule, matched = select_rule(FOUR_TIERS, 3)
        assert matched
        assert (rule.min_months_remaining, rule.max_months_remaining) == (3, 6)

        reordered = _rules((1, 3, "25"), (3, 6, "50"))
        rule, _ = select_rule(reordered, 3)
        assert rule.penalty_percentage == Decimal("25")

    def test_no_match_falls_back_to_highest_first_among_ties(self):
        rules = _rules((0, 1, "40"), (2, 3, "80"), (4, 5, "80"))
        rule, matched = select_rule(rules, 12)
        assert not matched
        assert (rule.min_months_remaining, rule.penalty_percentage) == (2, Decimal("80"))

    def test_empty(self):
        assert select_rule((), 4) == (None, False)


# =============================================================================
# calculate
# =============================================================================


class TestCalculate:
    def test_four_tier_policy_four_months_remaining(self):
        result = calculate(
            policy=_policy(FOUR_TIERS),
            lease=_lease(end_date=date(2025, 2, 28)),
            requested_end_date=date(2024, 10, 31),
            monthly_rent=Decimal("1000"),
            now=NOW,
        )
        assert result.months_remaining == 4
        assert result.rule_matched
        assert (result.applied_rule.min_months_remaining, result.applied_rule.max_months_remaining) == (3, 6)
        assert result.penalty_amount == Decimal("500.00")
        assert result.is_valid

    def test_short_notice_is_error_but_penalty_still_computed(self):
        result = calculate(
            policy=_policy(FOUR_TIERS, minimum_notice_days=30),
            lease=_lease(),
            requested_end_date=date(2024, 6, 20),
            monthly_rent=Decimal("1000"),
            now=NOW,
        )
        assert result.is_valid is False
        assert result.days_notice == 10
        assert any("Minimum notice required is 30 days" in e for e in result.errors)
        assert result.penalty_amount == Decimal("1000.00")

    def test_notice_days_round_up_partial_days(self):
        result = calculate(_policy(FOUR_TIERS, 0), _lease(), date(2024, 6, 11), Decimal("1000"), NOW)
        # 13.5 hours until midnight of the 11th
        assert result.days_notice == 1

    def test_fallback_warns(self):
        rules = _rules((0, 1, "0"), (2, 3, "30"))
        result = calculate(_policy(rules, 0), _lease(date(2025, 6, 30)), date(2024, 7, 31), Decimal("1000"), NOW)
        assert not result.rule_matched
        assert result.penalty_percentage == Decimal("30")
        assert "No specific rule found. Applying highest penalty rate." in result.warnings

    def test_empty_rules_zero_penalty_with_warning(self):
        result = calculate(_policy((), 0), _lease(), date(2024, 9, 30), Decimal("1000"), NOW)
        assert result.applied_rule is None
        assert result.penalty_amount == Decimal("0.00")
        assert any("no penalty rules" in w for w in result.warnings)

    def test_high_penalty_warning(self):
        result = calculate(_policy(FOUR_TIERS, 0), _lease(date(2025, 6, 30)), date(2024, 8, 31), Decimal("1000"), NOW)
        assert result.penalty_percentage == Decimal("100")
        assert any(w.startswith("High penalty rate (100%)") for w in result.warnings)

    def test_end_after_lease_end_is_negative_and_matched_as_zero(self):
        result = calculate(
            _policy(FOUR_TIERS, 0), _lease(date(2024, 8, 31)), date(2024, 10, 31), Decimal("1000"), NOW
        )
        assert result.months_remaining == -2
        assert result.penalty_amount == Decimal("0.00")
        assert any("after the lease end date" in w for w in result.warnings)

    def test_rounding_half_up(self):
        rules = _rules((0, 999, "33.3345"))
        result = calculate(_policy(rules, 0), _lease(), date(2024, 9, 30), Decimal("1000"), NOW)
        # 333.345 -> 333.35 (banker's rounding would give 333.34)
        assert result.penalty_amount == Decimal("333.35")

    def test_waiver_fields_copied_from_policy(self):
        result = calculate(
            _policy(FOUR_TIERS, 0, allow_waiver=False, categories=("A", "B")),
            _lease(), date(2024, 9, 30), Decimal("1000"), NOW,
        )
        assert result.can_waive_for_emergency is False
        assert result.emergency_categories == ("A", "B")

    def test_deterministic(self):
        policy = _policy(FOUR_TIERS)
        lease = _lease()
        a = calculate(policy, lease, date(2024, 11, 15), Decimal("1000"), NOW)
        b = calculate(policy, lease, date(2024, 11, 15), Decimal("1000"), NOW)
        assert a == b

    def test_emits_engine_trace(self, captured_logs):
        calculate(_policy(FOUR_TIERS), _lease(), date(2024, 11, 15), Decimal("1000"), NOW)
        traces = [r for r in captured_logs() if r["message"] == "RENTAL_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "termination_policy"
        assert len(traces[-1]["input_fingerprint"]) == 16

    def test_fingerprint_covers_clock(self, captured_logs):
        policy, lease = _policy(FOUR_TIERS), _lease()
        early = calculate(policy, lease, date(2024, 11, 15), Decimal("1000"), NOW)
        later = calculate(policy, lease, date(2024, 11, 15), Decimal("1000"), datetime(2024, 6, 12, 10, 30))

        assert early.days_notice != later.days_notice
        traces = [r for r in captured_logs() if r["message"] == "RENTAL_ENGINE_TRACE"]
        assert traces[-2]["input_fingerprint"] != traces[-1]["input_fingerprint"]


class TestEstimateNoticePenalty:
    @pytest.mark.parametrize(
        "days,expected",
        [(90, "0.00"), (60, "0.00"), (59, "750.00"), (30, "750.00"), (29, "1500.00"), (0, "1500.00")],
    )
    def test_tiers(self, days, expected):
        assert estimate_notice_penalty(Decimal("1500"), days) == Decimal(expected)

    def test_custom_thresholds(self):
        assert estimate_notice_penalty(Decimal("1000"), 20, no_penalty_days=20, half_penalty_days=10) == Decimal("0.00")
