"""Booking lifecycle request/response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from app.models.booking import ActorRole


class ActorRequest(BaseModel):
    """Identity of the party acting on a booking.

    Authentication happens upstream; the verified identity is passed in.
    """

    actor_id: str = Field(..., min_length=1)
    actor_role: ActorRole


class CancelBookingRequest(ActorRequest):
    """Request body for cancelling a booking."""

    reason_code: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class RescheduleBookingRequest(ActorRequest):
    """Request body for rescheduling a booking."""

    new_scheduled_time: datetime


class PenaltyRead(BaseModel):
    """Computed penalty and refund."""

    penalty: Decimal
    refund: Decimal
    refund_percentage: Decimal
    reason: str
    basis: str
    reason_code: Optional[str] = None
    requires_proof: bool = False
    notes: Optional[str] = None


class EligibilityRead(BaseModel):
    """Reschedule eligibility outcome."""

    allowed: bool
    reason: Optional[str] = None
    fee: Decimal = Decimal("0")
    fee_kind: Optional[str] = None


class RefundDecisionRead(BaseModel):
    """Refund instruction for the payment collaborator."""

    booking_id: str
    refund_amount: Decimal
    penalty: Decimal
    refund_percentage: Decimal
    reason: str
    basis: str
    policy_id: str
    policy_hash: str
    decided_at: datetime
    requires_proof: bool


class BookingRead(BaseModel):
    """Schema for reading booking lifecycle fields."""

    id: str
    client_id: str
    provider_id: str
    service_id: str
    status: str
    scheduled_time: datetime
    original_scheduled_time: Optional[datetime]
    price: Decimal
    reschedule_count: int
    cancellation_penalty: Decimal
    refund_amount: Decimal
    refund_percentage: Optional[Decimal]
    cancellation_time: Optional[datetime]
    cancelled_by: Optional[str]
    cancellation_reason: Optional[str]
    policy_hash: Optional[str]

    model_config = {"from_attributes": True}


class LifecycleResponse(BaseModel):
    """Response for a lifecycle transition."""

    message: str
    booking: BookingRead
    penalty: Optional[PenaltyRead] = None
    refund_decision: Optional[RefundDecisionRead] = None
    eligibility: Optional[EligibilityRead] = None
