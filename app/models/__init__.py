"""Database models for Bookwell."""

from app.models.booking import (
    ACTIONABLE_STATUSES,
    TERMINAL_STATUSES,
    ActorRole,
    Booking,
    BookingStatus,
)
from app.models.cancellation_policy import CancellationPolicyRecord

__all__ = [
    # Booking
    "Booking",
    "BookingStatus",
    "ActorRole",
    "ACTIONABLE_STATUSES",
    "TERMINAL_STATUSES",
    # Policy
    "CancellationPolicyRecord",
]
