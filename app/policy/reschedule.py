"""Reschedule eligibility check.

Non-monetary gate: the fee is reported, never charged here.
"""

from datetime import datetime

from app.policy.calculator import hours_until
from app.policy.models import CancellationPolicy, EligibilityResult, FeeKind, to_money


def check_reschedule_eligibility(
    policy: CancellationPolicy,
    scheduled_time: datetime,
    now: datetime,
    prior_reschedule_count: int,
) -> EligibilityResult:
    """Check whether a booking may be moved to another time.

    Checks run in order and the first failure is returned:
    1. Provider allows rescheduling
    2. Reschedule limit not reached
    3. Minimum notice given

    Args:
        policy: Active policy snapshot
        scheduled_time: Current appointment start (timezone-aware)
        now: Instant of the request (timezone-aware)
        prior_reschedule_count: Times this booking was already rescheduled

    Returns:
        EligibilityResult with reason on rejection, fee details on success
    """
    reschedule = policy.reschedule

    if not reschedule.allowed:
        return EligibilityResult(allowed=False, reason="Rescheduling not allowed by provider")

    if prior_reschedule_count >= reschedule.max_reschedules:
        return EligibilityResult(
            allowed=False,
            reason=f"Maximum reschedules ({reschedule.max_reschedules}) exceeded",
        )

    if hours_until(scheduled_time, now) < reschedule.min_notice_hours:
        return EligibilityResult(
            allowed=False,
            reason=f"Minimum notice of {reschedule.min_notice_hours:g} hours required",
        )

    fee = reschedule.fee_value if reschedule.fee_kind == FeeKind.FIXED_AMOUNT else 0
    return EligibilityResult(
        allowed=True,
        fee=to_money(fee),
        fee_kind=reschedule.fee_kind,
    )
