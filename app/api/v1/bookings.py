"""Booking status API endpoints.

Thin adapter over BookingLifecycleService: cancel, no-show, reschedule
and read-only quotes. The refund decision in each response is meant for
the payment collaborator; nothing here moves money.
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from app.api.deps import LifecycleService
from app.models.booking import ActorRole
from app.policy.errors import (
    BookingNotFoundError,
    BookingPolicyError,
    InvalidBookingStateError,
    MalformedPolicyError,
    PolicyNotFoundError,
    RescheduleNotAllowedError,
    UnauthorizedActorError,
)
from app.policy.models import EligibilityResult, PenaltyResult
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
from app.services.booking_lifecycle import Actor, LifecycleOutcome, RefundDecision

router = APIRouter()

# Order matters: subclasses before their bases
ERROR_STATUS_CODES: list[tuple[type[BookingPolicyError], int]] = [
    (BookingNotFoundError, status.HTTP_404_NOT_FOUND),
    (PolicyNotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedActorError, status.HTTP_403_FORBIDDEN),
    (InvalidBookingStateError, status.HTTP_409_CONFLICT),
    (RescheduleNotAllowedError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def _http_error(exc: BookingPolicyError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _penalty_read(result: PenaltyResult) -> PenaltyRead:
    return PenaltyRead(
        penalty=result.penalty,
        refund=result.refund,
        refund_percentage=result.refund_percentage,
        reason=result.reason,
        basis=result.basis.value,
        reason_code=result.reason_code,
        requires_proof=result.requires_proof,
        notes=result.notes,
    )


def _eligibility_read(result: EligibilityResult) -> EligibilityRead:
    return EligibilityRead(
        allowed=result.allowed,
        reason=result.reason,
        fee=result.fee,
        fee_kind=result.fee_kind.value if result.fee_kind else None,
    )


def _decision_read(decision: RefundDecision) -> RefundDecisionRead:
    return RefundDecisionRead(
        booking_id=decision.booking_id,
        refund_amount=decision.refund_amount,
        penalty=decision.penalty,
        refund_percentage=decision.refund_percentage,
        reason=decision.reason,
        basis=decision.basis.value,
        policy_id=decision.policy_id,
        policy_hash=decision.policy_hash,
        decided_at=decision.decided_at,
        requires_proof=decision.requires_proof,
    )


def _lifecycle_response(outcome: LifecycleOutcome) -> LifecycleResponse:
    return LifecycleResponse(
        message=outcome.message,
        booking=BookingRead.model_validate(outcome.booking),
        penalty=_penalty_read(outcome.penalty) if outcome.penalty else None,
        refund_decision=(
            _decision_read(outcome.refund_decision) if outcome.refund_decision else None
        ),
        eligibility=_eligibility_read(outcome.eligibility) if outcome.eligibility else None,
    )


def _actor(request: ActorRequest) -> Actor:
    return Actor(id=request.actor_id, role=request.actor_role)


@router.post("/{booking_id}/cancel", response_model=LifecycleResponse)
async def cancel_booking(
    booking_id: str,
    request: CancelBookingRequest,
    service: LifecycleService,
) -> LifecycleResponse:
    """Cancel a booking and compute its penalty and refund.

    A matching policy exception for ``reason_code`` overrides the
    time-based rules.
    """
    try:
        outcome = await service.cancel_booking(
            booking_id=booking_id,
            actor=_actor(request),
            reason_code=request.reason_code,
            notes=request.notes,
        )
    except MalformedPolicyError:
        raise
    except BookingPolicyError as e:
        raise _http_error(e)

    return _lifecycle_response(outcome)


@router.post("/{booking_id}/cancellation-quote", response_model=PenaltyRead)
async def quote_cancellation(
    booking_id: str,
    request: CancelBookingRequest,
    service: LifecycleService,
) -> PenaltyRead:
    """Preview the penalty and refund of cancelling now. Does not cancel."""
    try:
        result = await service.quote_cancellation(
            booking_id=booking_id,
            actor=_actor(request),
            reason_code=request.reason_code,
        )
    except MalformedPolicyError:
        raise
    except BookingPolicyError as e:
        raise _http_error(e)

    return _penalty_read(result)


@router.post("/{booking_id}/no-show", response_model=LifecycleResponse)
async def mark_no_show(
    booking_id: str,
    request: ActorRequest,
    service: LifecycleService,
) -> LifecycleResponse:
    """Mark a booking as no-show (provider only)."""
    try:
        outcome = await service.mark_no_show(booking_id=booking_id, actor=_actor(request))
    except MalformedPolicyError:
        raise
    except BookingPolicyError as e:
        raise _http_error(e)

    return _lifecycle_response(outcome)


@router.get("/{booking_id}/reschedule-eligibility", response_model=EligibilityRead)
async def reschedule_eligibility(
    booking_id: str,
    service: LifecycleService,
    actor_id: Annotated[str, Query(min_length=1)],
    actor_role: Annotated[ActorRole, Query()],
) -> EligibilityRead:
    """Check whether the booking may be rescheduled now."""
    try:
        result = await service.check_reschedule(
            booking_id=booking_id,
            actor=Actor(id=actor_id, role=actor_role),
        )
    except MalformedPolicyError:
        raise
    except BookingPolicyError as e:
        raise _http_error(e)

    return _eligibility_read(result)


@router.post("/{booking_id}/reschedule", response_model=LifecycleResponse)
async def reschedule_booking(
    booking_id: str,
    request: RescheduleBookingRequest,
    service: LifecycleService,
) -> LifecycleResponse:
    """Move a booking to a new time if the policy allows it."""
    try:
        outcome = await service.reschedule_booking(
            booking_id=booking_id,
            actor=_actor(request),
            new_scheduled_time=request.new_scheduled_time,
        )
    except MalformedPolicyError:
        raise
    except BookingPolicyError as e:
        raise _http_error(e)

    return _lifecycle_response(outcome)
