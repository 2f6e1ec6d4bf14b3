"""No-show and exception resolution.

Both resolvers only compute the monetary outcome. Whether a no-show may be
declared (grace period) and whether an exception claim is genuine (proof)
are decided by the caller.
"""

from decimal import Decimal
from typing import Optional

from app.policy.calculator import (
    ZERO,
    compute_penalty_amount,
    derived_refund_percentage,
    late_cancellation_penalty,
)
from app.policy.models import (
    HUNDRED,
    NO_SHOW_KINDS,
    CancellationPolicy,
    PenaltyBasis,
    PenaltyResult,
    as_decimal,
    to_money,
)

NO_SHOW_REASON = "No-show"
NO_SHOW_DISABLED_REASON = "No-show policy not enabled"


def resolve_no_show(
    policy: CancellationPolicy,
    booking_price: Decimal,
    fallback_when_disabled: bool = False,
    places: int = 2,
) -> PenaltyResult:
    """Compute the penalty for a booking marked as no-show.

    Args:
        policy: Active policy snapshot
        booking_price: Price paid for the booking
        fallback_when_disabled: Apply the late cancellation fallback instead
            of a full refund when the no-show policy is disabled
        places: Decimal places of the currency

    Returns:
        PenaltyResult for the no-show
    """
    price = as_decimal(booking_price)
    if price <= 0:
        raise ValueError(f"booking_price must be positive, got {price}")

    no_show = policy.no_show

    if not no_show.enabled:
        if fallback_when_disabled:
            return late_cancellation_penalty(policy.late_cancellation, price, places)
        return PenaltyResult(
            penalty=to_money(ZERO, places),
            refund=to_money(price, places),
            refund_percentage=HUNDRED,
            reason=NO_SHOW_DISABLED_REASON,
            basis=PenaltyBasis.NO_SHOW_DISABLED,
        )

    if no_show.penalty_kind not in NO_SHOW_KINDS:
        raise ValueError(f"No-show does not support penalty kind '{no_show.penalty_kind.value}'")

    penalty = compute_penalty_amount(no_show.penalty_kind, no_show.penalty_value, price, places)
    refund = max(to_money(price, places) - penalty, ZERO)

    return PenaltyResult(
        penalty=penalty,
        refund=refund,
        refund_percentage=derived_refund_percentage(refund, price),
        reason=NO_SHOW_REASON,
        basis=PenaltyBasis.NO_SHOW,
    )


def resolve_exception(
    policy: CancellationPolicy,
    reason_code: Optional[str],
    booking_price: Decimal,
    places: int = 2,
) -> Optional[PenaltyResult]:
    """Apply a policy exception for the given reason code.

    An unrecognized or empty reason code is not an error: it returns None
    and the caller falls back to the time-based calculation.

    Returns:
        PenaltyResult overriding the time-based rules, or None
    """
    if not reason_code:
        return None

    exception = policy.find_exception(reason_code)
    if exception is None:
        return None

    price = as_decimal(booking_price)
    if price <= 0:
        raise ValueError(f"booking_price must be positive, got {price}")

    refund_percentage = as_decimal(exception.refund_percentage)
    refund = to_money(price * refund_percentage / HUNDRED, places)
    penalty = to_money(price, places) - refund

    return PenaltyResult(
        penalty=penalty,
        refund=refund,
        refund_percentage=refund_percentage,
        reason=f"Exception: {reason_code}",
        basis=PenaltyBasis.EXCEPTION,
        reason_code=reason_code,
        requires_proof=exception.requires_proof,
        notes=exception.notes,
    )
