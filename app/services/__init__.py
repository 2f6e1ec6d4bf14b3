"""Business logic services."""

from app.services.booking_lifecycle import (
    Actor,
    BookingLifecycleService,
    LifecycleOutcome,
    RefundDecision,
    choose_policy,
)

__all__ = [
    "Actor",
    "BookingLifecycleService",
    "LifecycleOutcome",
    "RefundDecision",
    "choose_policy",
]
