"""Tests for policy authoring validation.

Malformed policies must be rejected when written, and a corrupt stored
policy must surface as MalformedPolicyError.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.policy.errors import MalformedPolicyError
from app.policy.models import PenaltyKind
from app.schemas.policy import (
    CancellationPolicyDefinition,
    LateCancellationSchema,
    NoShowSchema,
    PolicyRuleSchema,
    parse_policy,
)


class TestRuleValidation:
    def test_percentage_over_100_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PolicyRuleSchema(threshold_hours=24, penalty_kind="percentage", penalty_value=150)

    def test_negative_threshold_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PolicyRuleSchema(threshold_hours=-1, penalty_kind="percentage", penalty_value=10)

    def test_negative_value_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PolicyRuleSchema(threshold_hours=1, penalty_kind="fixed_amount", penalty_value=-5)

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PolicyRuleSchema(threshold_hours=1, penalty_kind="double_charge")

    def test_fixed_amount_above_100_allowed(self) -> None:
        rule = PolicyRuleSchema(threshold_hours=1, penalty_kind="fixed_amount", penalty_value=250)

        assert rule.penalty_value == Decimal("250")


class TestSectionKindRestrictions:
    def test_late_cancellation_rejects_full_charge(self) -> None:
        with pytest.raises(ValidationError):
            LateCancellationSchema(penalty_kind="full_charge")

    def test_late_cancellation_rejects_none(self) -> None:
        with pytest.raises(ValidationError):
            LateCancellationSchema(penalty_kind="none")

    def test_no_show_rejects_none(self) -> None:
        with pytest.raises(ValidationError):
            NoShowSchema(penalty_kind="none")

    def test_no_show_accepts_full_charge(self) -> None:
        assert NoShowSchema(penalty_kind="full_charge").penalty_kind == PenaltyKind.FULL_CHARGE


class TestPolicyDefinition:
    def test_duplicate_thresholds_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unique threshold_hours"):
            CancellationPolicyDefinition(
                rules=[
                    {"threshold_hours": 12, "penalty_kind": "percentage", "penalty_value": 50},
                    {"threshold_hours": 12, "penalty_kind": "percentage", "penalty_value": 40},
                ]
            )

    def test_duplicate_exception_codes_rejected(self) -> None:
        with pytest.raises(ValidationError, match="unique reason_code"):
            CancellationPolicyDefinition(
                exceptions=[
                    {"reason_code": "emergency"},
                    {"reason_code": "emergency", "refund_percentage": 50},
                ]
            )

    def test_unknown_exception_code_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CancellationPolicyDefinition(exceptions=[{"reason_code": "bad_hair_day"}])

    def test_exception_refund_over_100_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CancellationPolicyDefinition(
                exceptions=[{"reason_code": "illness", "refund_percentage": 120}]
            )

    def test_defaults_build_a_usable_policy(self) -> None:
        policy = CancellationPolicyDefinition().to_policy()

        assert policy.rules == ()
        assert policy.free_cancellation_window.enabled is True
        assert policy.no_show.penalty_kind == PenaltyKind.FULL_CHARGE
        assert policy.reschedule.max_reschedules == 2

    def test_rules_sorted_into_snapshot(self) -> None:
        policy = CancellationPolicyDefinition(
            rules=[
                {"threshold_hours": 48, "penalty_kind": "none"},
                {"threshold_hours": 12, "penalty_kind": "percentage", "penalty_value": 50},
                {"threshold_hours": 24, "penalty_kind": "percentage", "penalty_value": 25},
            ]
        ).to_policy()

        assert policy.thresholds == [12, 24, 48]


class TestParsePolicy:
    def test_malformed_policy_raises_with_error_list(self) -> None:
        with pytest.raises(MalformedPolicyError) as exc_info:
            parse_policy(
                {
                    "rules": [{"threshold_hours": 24, "penalty_kind": "percentage", "penalty_value": 300}],
                    "late_cancellation": {"penalty_kind": "full_charge"},
                }
            )

        assert len(exc_info.value.errors) == 2
        assert any(error.startswith("rules.0") for error in exc_info.value.errors)
        assert any(error.startswith("late_cancellation") for error in exc_info.value.errors)

    def test_valid_policy_parses(self) -> None:
        policy = parse_policy(
            {
                "rules": [{"threshold_hours": 24, "penalty_kind": "percentage", "penalty_value": 25, "refund_percentage": 75}],
                "no_show": {"enabled": False},
            }
        )

        assert policy.rules[0].penalty_value == Decimal("25")
        assert policy.no_show.enabled is False


class TestContentHash:
    def test_hash_ignores_descriptive_fields(self) -> None:
        base = {"rules": [{"threshold_hours": 24, "penalty_kind": "percentage", "penalty_value": 25}]}

        first = parse_policy({**base, "name": "Spring", "is_default": True})
        second = parse_policy({**base, "name": "Autumn", "is_default": False})

        assert first.content_hash == second.content_hash

    def test_hash_changes_with_rules(self) -> None:
        first = parse_policy({"rules": [{"threshold_hours": 24, "penalty_kind": "percentage", "penalty_value": 25}]})
        second = parse_policy({"rules": [{"threshold_hours": 24, "penalty_kind": "percentage", "penalty_value": 30}]})

        assert first.content_hash != second.content_hash
        assert len(first.content_hash) == 64
