"""Tests for no-show and exception resolution."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.policy.calculator import calculate_penalty
from app.policy.loader import default_policy
from app.policy.models import (
    CancellationPolicy,
    LateCancellationFallback,
    NoShowPolicy,
    PenaltyBasis,
    PenaltyKind,
    PolicyException,
)
from app.policy.resolvers import resolve_exception, resolve_no_show

PRICE = Decimal("100.00")


class TestNoShow:
    """No-show penalties."""

    def test_full_charge_no_show(self) -> None:
        policy = CancellationPolicy(no_show=NoShowPolicy(enabled=True, penalty_kind=PenaltyKind.FULL_CHARGE))

        result = resolve_no_show(policy, PRICE)

        assert result.penalty == Decimal("100.00")
        assert result.refund == Decimal("0.00")
        assert result.refund_percentage == Decimal("0.00")
        assert result.basis == PenaltyBasis.NO_SHOW
        assert result.reason == "No-show"

    def test_percentage_no_show(self) -> None:
        policy = CancellationPolicy(
            no_show=NoShowPolicy(penalty_kind=PenaltyKind.PERCENTAGE, penalty_value=Decimal("80"))
        )

        result = resolve_no_show(policy, Decimal("50.00"))

        assert result.penalty == Decimal("40.00")
        assert result.refund == Decimal("10.00")
        assert result.refund_percentage == Decimal("20.00")

    def test_fixed_amount_no_show_capped(self) -> None:
        policy = CancellationPolicy(
            no_show=NoShowPolicy(penalty_kind=PenaltyKind.FIXED_AMOUNT, penalty_value=Decimal("500"))
        )

        result = resolve_no_show(policy, PRICE)

        assert result.penalty == PRICE
        assert result.refund == Decimal("0.00")

    def test_disabled_no_show_refunds_in_full(self) -> None:
        policy = CancellationPolicy(no_show=NoShowPolicy(enabled=False))

        result = resolve_no_show(policy, PRICE)

        assert result.penalty == Decimal("0.00")
        assert result.refund == PRICE
        assert result.refund_percentage == Decimal("100")
        assert result.basis == PenaltyBasis.NO_SHOW_DISABLED
        assert result.reason == "No-show policy not enabled"

    def test_disabled_no_show_with_fallback_flag(self) -> None:
        policy = CancellationPolicy(
            no_show=NoShowPolicy(enabled=False),
            late_cancellation=LateCancellationFallback(
                penalty_kind=PenaltyKind.PERCENTAGE, penalty_value=Decimal("30")
            ),
        )

        result = resolve_no_show(policy, PRICE, fallback_when_disabled=True)

        assert result.basis == PenaltyBasis.LATE_CANCELLATION
        assert result.penalty == Decimal("30.00")
        assert result.refund == Decimal("70.00")

    def test_no_show_none_kind_rejected(self) -> None:
        policy = CancellationPolicy(no_show=NoShowPolicy(penalty_kind=PenaltyKind.NONE))

        with pytest.raises(ValueError):
            resolve_no_show(policy, PRICE)


class TestExceptions:
    """Exception overrides."""

    @pytest.fixture
    def policy(self) -> CancellationPolicy:
        return CancellationPolicy(
            exceptions=(
                PolicyException("emergency", Decimal("100"), requires_proof=True, notes="Documentation required"),
                PolicyException("weather", Decimal("50")),
                PolicyException("provider_cancellation"),
            ),
        )

    def test_provider_cancellation_full_refund_at_start(self, policy: CancellationPolicy) -> None:
        """A provider cancellation refunds in full even after the time-based rules would charge."""
        scheduled = datetime(2026, 6, 1, 15, 0, tzinfo=timezone.utc)
        time_based = calculate_penalty(policy, PRICE, scheduled, scheduled)
        assert time_based.penalty > 0

        result = resolve_exception(policy, "provider_cancellation", PRICE)

        assert result is not None
        assert result.refund == PRICE
        assert result.penalty == Decimal("0.00")
        assert result.refund_percentage == Decimal("100")
        assert result.reason == "Exception: provider_cancellation"
        assert result.basis == PenaltyBasis.EXCEPTION

    def test_partial_exception_conserves_price(self, policy: CancellationPolicy) -> None:
        result = resolve_exception(policy, "weather", Decimal("33.33"))

        assert result is not None
        assert result.refund == Decimal("16.67")
        assert result.penalty == Decimal("16.66")
        assert result.penalty + result.refund == Decimal("33.33")

    def test_proof_requirement_is_reported(self, policy: CancellationPolicy) -> None:
        result = resolve_exception(policy, "emergency", PRICE)

        assert result is not None
        assert result.requires_proof is True
        assert result.notes == "Documentation required"
        payload = result.to_payload()
        assert payload["reason_code"] == "emergency"
        assert payload["requires_proof"] is True

    def test_unknown_reason_returns_none(self, policy: CancellationPolicy) -> None:
        assert resolve_exception(policy, "illness", PRICE) is None

    def test_empty_reason_returns_none(self, policy: CancellationPolicy) -> None:
        assert resolve_exception(policy, None, PRICE) is None
        assert resolve_exception(policy, "", PRICE) is None

    def test_standard_template_exceptions(self) -> None:
        policy = default_policy()

        emergency = resolve_exception(policy, "emergency", PRICE)

        assert emergency is not None
        assert emergency.refund == PRICE
        assert emergency.requires_proof is True
