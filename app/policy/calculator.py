"""Time-tiered cancellation penalty calculation.

Pure functions: the caller supplies the policy snapshot, the booking price
and both instants. Same input always produces the same result.

Evaluation order:
1. Free cancellation window (short-circuits the tiered rules)
2. Tiered rule with the largest threshold still satisfied
3. Late cancellation fallback when no tiered rule qualifies
"""

from bisect import bisect_right
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from app.policy.models import (
    HUNDRED,
    LATE_CANCELLATION_KINDS,
    CancellationPolicy,
    LateCancellationFallback,
    PenaltyBasis,
    PenaltyKind,
    PenaltyResult,
    PolicyRule,
    as_decimal,
    to_money,
)

FREE_WINDOW_REASON = "Free cancellation window"
STANDARD_POLICY_REASON = "Standard cancellation policy"
LATE_CANCELLATION_REASON = "Late cancellation"

ZERO = Decimal("0")


def hours_until(scheduled_time: datetime, evaluation_time: datetime) -> float:
    """Hours between evaluation and the appointment (negative once started)."""
    if scheduled_time.tzinfo is None or evaluation_time.tzinfo is None:
        raise ValueError("scheduled_time and evaluation_time must be timezone-aware")
    return (scheduled_time - evaluation_time).total_seconds() / 3600


def _validate_price(booking_price: Decimal) -> Decimal:
    price = as_decimal(booking_price)
    if price <= 0:
        raise ValueError(f"booking_price must be positive, got {price}")
    return price


def compute_penalty_amount(
    kind: PenaltyKind,
    value: Decimal,
    booking_price: Decimal,
    places: int = 2,
) -> Decimal:
    """Penalty for a kind/value pair, never more than the booking price."""
    if kind == PenaltyKind.NONE:
        return to_money(ZERO, places)
    if kind == PenaltyKind.PERCENTAGE:
        penalty = booking_price * as_decimal(value) / HUNDRED
    elif kind == PenaltyKind.FIXED_AMOUNT:
        penalty = min(as_decimal(value), booking_price)
    elif kind == PenaltyKind.FULL_CHARGE:
        penalty = booking_price
    else:
        raise ValueError(f"Unknown penalty kind: {kind}")

    return to_money(min(max(penalty, ZERO), booking_price), places)


def derived_refund_percentage(refund: Decimal, booking_price: Decimal) -> Decimal:
    """Refund expressed as a percentage of the price, rounded to 2 places."""
    return to_money(refund / booking_price * HUNDRED, 2)


def select_rule(rules: Sequence[PolicyRule], hours: float) -> Optional[PolicyRule]:
    """Select the rule with the largest threshold that is still satisfied.

    ``rules`` must be sorted by ascending threshold. Equivalent to scanning
    in ascending order and keeping the last rule whose threshold is <= hours,
    so with duplicate thresholds the later rule wins.
    """
    thresholds = [rule.threshold_hours for rule in rules]
    index = bisect_right(thresholds, hours)
    if index == 0:
        return None
    return rules[index - 1]


def penalty_from_rule(
    rule: PolicyRule,
    booking_price: Decimal,
    places: int = 2,
) -> PenaltyResult:
    """Apply a tiered rule to the booking price."""
    price = _validate_price(booking_price)
    penalty = compute_penalty_amount(rule.penalty_kind, rule.penalty_value, price, places)
    refund = max(to_money(price, places) - penalty, ZERO)

    if rule.penalty_kind == PenaltyKind.NONE:
        refund_percentage = HUNDRED
    elif rule.penalty_kind == PenaltyKind.FULL_CHARGE:
        refund_percentage = ZERO
    else:
        refund_percentage = as_decimal(rule.refund_percentage)

    return PenaltyResult(
        penalty=penalty,
        refund=refund,
        refund_percentage=refund_percentage,
        reason=STANDARD_POLICY_REASON,
        basis=PenaltyBasis.STANDARD_POLICY,
    )


def late_cancellation_penalty(
    fallback: LateCancellationFallback,
    booking_price: Decimal,
    places: int = 2,
) -> PenaltyResult:
    """Apply the late cancellation fallback to the booking price."""
    price = _validate_price(booking_price)
    if fallback.penalty_kind not in LATE_CANCELLATION_KINDS:
        raise ValueError(
            f"Late cancellation does not support penalty kind '{fallback.penalty_kind.value}'"
        )

    penalty = compute_penalty_amount(fallback.penalty_kind, fallback.penalty_value, price, places)
    refund = max(to_money(price, places) - penalty, ZERO)

    return PenaltyResult(
        penalty=penalty,
        refund=refund,
        refund_percentage=derived_refund_percentage(refund, price),
        reason=LATE_CANCELLATION_REASON,
        basis=PenaltyBasis.LATE_CANCELLATION,
    )


def calculate_penalty(
    policy: CancellationPolicy,
    booking_price: Decimal,
    scheduled_time: datetime,
    evaluation_time: datetime,
    places: int = 2,
) -> PenaltyResult:
    """Compute the penalty and refund for a cancellation.

    Args:
        policy: Active policy snapshot
        booking_price: Price paid for the booking (must be positive)
        scheduled_time: Appointment start (timezone-aware)
        evaluation_time: Instant of the cancellation request (timezone-aware)
        places: Decimal places of the currency

    Returns:
        PenaltyResult with penalty, refund, refund percentage and reason

    Examples:
        Price 100, rules 12h/50% and 24h/25%, cancelled 30h before:
        the 24h rule applies, giving penalty 25 and refund 75.
    """
    price = _validate_price(booking_price)
    hours = hours_until(scheduled_time, evaluation_time)

    window = policy.free_cancellation_window
    if window.enabled and hours >= window.hours:
        return PenaltyResult(
            penalty=to_money(ZERO, places),
            refund=to_money(price, places),
            refund_percentage=HUNDRED,
            reason=FREE_WINDOW_REASON,
            basis=PenaltyBasis.FREE_WINDOW,
        )

    rule = select_rule(policy.rules, hours)
    if rule is None:
        return late_cancellation_penalty(policy.late_cancellation, price, places)

    return penalty_from_rule(rule, price, places)
