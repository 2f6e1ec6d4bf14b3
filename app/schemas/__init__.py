"""Pydantic schemas for request/response validation."""

from app.schemas.policy import CancellationPolicyDefinition, parse_policy
from app.schemas.booking import (
    ActorRequest,
    BookingRead,
    CancelBookingRequest,
    EligibilityRead,
    LifecycleResponse,
    PenaltyRead,
    RefundDecisionRead,
    RescheduleBookingRequest,
)

__all__ = [
    # Policy
    "CancellationPolicyDefinition",
    "parse_policy",
    # Booking
    "ActorRequest",
    "BookingRead",
    "CancelBookingRequest",
    "EligibilityRead",
    "LifecycleResponse",
    "PenaltyRead",
    "RefundDecisionRead",
    "RescheduleBookingRequest",
]
