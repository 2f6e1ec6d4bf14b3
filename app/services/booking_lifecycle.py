"""Booking lifecycle controller.

Drives the cancel, no-show and reschedule transitions of a booking:
loads the provider's active policy, delegates the money decision to the
policy engine and writes the outcome back with a conditional update, so
only one transition can ever succeed per booking.

The refund itself is executed by the payment collaborator from the
returned RefundDecision. This module never moves money.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.logging import audit_logger
from app.db.base import as_utc, utc_now
from app.models.booking import (
    ACTIONABLE_STATUSES,
    ActorRole,
    Booking,
    BookingStatus,
)
from app.models.cancellation_policy import CancellationPolicyRecord
from app.policy.calculator import calculate_penalty
from app.policy.errors import (
    BookingNotFoundError,
    ConcurrentTransitionError,
    InvalidBookingStateError,
    MalformedPolicyError,
    PolicyNotFoundError,
    RescheduleNotAllowedError,
    UnauthorizedActorError,
)
from app.policy.models import (
    CancellationPolicy,
    EligibilityResult,
    PenaltyBasis,
    PenaltyResult,
)
from app.policy.reschedule import check_reschedule_eligibility
from app.policy.resolvers import resolve_exception, resolve_no_show

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Actor:
    """Party requesting a lifecycle action."""

    id: str
    role: ActorRole


@dataclass(frozen=True)
class RefundDecision:
    """Refund instruction handed to the payment collaborator."""

    booking_id: str
    refund_amount: Decimal
    penalty: Decimal
    refund_percentage: Decimal
    reason: str
    basis: PenaltyBasis
    policy_id: str
    policy_hash: str
    decided_at: datetime
    requires_proof: bool = False

    @property
    def has_refund(self) -> bool:
        return self.refund_amount > 0

    def to_payload(self) -> dict[str, object]:
        return {
            "booking_id": self.booking_id,
            "refund_amount": str(self.refund_amount),
            "penalty": str(self.penalty),
            "refund_percentage": str(self.refund_percentage),
            "reason": self.reason,
            "basis": self.basis.value,
            "policy_id": self.policy_id,
            "policy_hash": self.policy_hash,
            "decided_at": self.decided_at.isoformat(),
            "requires_proof": self.requires_proof,
        }


@dataclass(frozen=True)
class LifecycleOutcome:
    """Result of a successful lifecycle transition."""

    booking: Booking
    message: str
    penalty: Optional[PenaltyResult] = None
    refund_decision: Optional[RefundDecision] = None
    eligibility: Optional[EligibilityResult] = None


def choose_policy(
    records: Sequence[CancellationPolicyRecord],
    service_id: str | None,
) -> CancellationPolicyRecord | None:
    """Pick the policy that governs a booking.

    Preference among active policies:
    1. Scoped to the booking's service
    2. General (no service scope), non-default
    3. Provider default
    Most recent effective date wins within a group.
    """
    active = [r for r in records if r.is_active]
    by_recency = sorted(
        active,
        key=lambda r: as_utc(r.effective_date) if r.effective_date else _EPOCH,
        reverse=True,
    )

    if service_id:
        for record in by_recency:
            if service_id in (record.applies_to or []):
                return record

    for record in by_recency:
        if not record.applies_to and not record.is_default:
            return record

    for record in by_recency:
        if record.is_default:
            return record

    return None


class BookingLifecycleService:
    """Service for cancel, no-show and reschedule transitions."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock

    @property
    def places(self) -> int:
        return self.settings.currency_decimal_places

    def _now(self) -> datetime:
        return as_utc(self.clock())

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_booking(self, booking_id: str) -> Booking | None:
        """Get a single booking by ID."""
        result = await self.session.execute(select(Booking).where(Booking.id == booking_id))
        return result.scalar_one_or_none()

    async def _require_booking(self, booking_id: str) -> Booking:
        booking = await self.get_booking(booking_id)
        if not booking:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    async def list_active_policies(self, provider_id: str) -> Sequence[CancellationPolicyRecord]:
        """List active policies owned by a provider."""
        result = await self.session.execute(
            select(CancellationPolicyRecord).where(
                CancellationPolicyRecord.provider_id == provider_id,
                CancellationPolicyRecord.is_active == True,
            )
        )
        return result.scalars().all()

    async def get_active_policy(
        self,
        provider_id: str,
        service_id: str | None = None,
    ) -> tuple[CancellationPolicyRecord, CancellationPolicy]:
        """Resolve and parse the policy governing a provider's service.

        Raises:
            PolicyNotFoundError: If no active policy resolves
            MalformedPolicyError: If the stored policy is corrupt
        """
        records = await self.list_active_policies(provider_id)
        record = choose_policy(records, service_id)

        if record is None:
            raise PolicyNotFoundError(f"No cancellation policy found for provider {provider_id}")

        try:
            policy = record.to_policy()
        except MalformedPolicyError:
            logger.error(f"Stored cancellation policy {record.id} failed validation")
            raise

        return record, policy

    # =========================================================================
    # GUARDS
    # =========================================================================

    def _authorize(self, booking: Booking, actor: Actor, provider_only: bool = False) -> None:
        """Check the actor may act on this booking.

        Raises:
            UnauthorizedActorError: If the actor is neither party nor admin
        """
        if provider_only:
            if actor.role == ActorRole.PROVIDER and actor.id == booking.provider_id:
                return
            raise UnauthorizedActorError("Only the booking's provider can mark a no-show")

        if actor.role == ActorRole.ADMIN:
            return
        if actor.role == ActorRole.CLIENT and actor.id == booking.client_id:
            return
        if actor.role == ActorRole.PROVIDER and actor.id == booking.provider_id:
            return

        raise UnauthorizedActorError("Not authorized to act on this booking")

    def _require_actionable(self, booking: Booking, action: str) -> BookingStatus:
        status = BookingStatus(booking.status)

        if status == BookingStatus.DISPUTED:
            raise InvalidBookingStateError(
                f"Cannot {action} a booking under dispute", status=status.value
            )
        if status not in ACTIONABLE_STATUSES:
            raise InvalidBookingStateError(
                f"Cannot {action} a booking that is already {status.value}", status=status.value
            )

        return status

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def _apply_transition(
        self,
        booking: Booking,
        expected_status: BookingStatus,
        values: dict,
        expected_reschedule_count: int | None = None,
    ) -> Booking:
        """Write a transition only if the booking is still as we read it.

        Raises:
            ConcurrentTransitionError: If another request got there first
        """
        stmt = (
            update(Booking)
            .where(
                Booking.id == booking.id,
                Booking.status == expected_status.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if expected_reschedule_count is not None:
            stmt = stmt.where(Booking.reschedule_count == expected_reschedule_count)

        result = await self.session.execute(stmt)

        if result.rowcount != 1:
            await self.session.rollback()
            raise ConcurrentTransitionError(
                "Booking was modified by another request", status=expected_status.value
            )

        await self.session.commit()
        await self.session.refresh(booking)

        return booking

    def _resolve_cancellation(
        self,
        policy: CancellationPolicy,
        booking: Booking,
        reason_code: str | None,
        now: datetime,
    ) -> PenaltyResult:
        """Exception first, time-based calculation otherwise."""
        result = resolve_exception(policy, reason_code, booking.price, places=self.places)
        if result is not None:
            return result

        if reason_code:
            logger.info(
                f"Reason code '{reason_code}' has no exception in policy; "
                "using time-based calculation"
            )

        return calculate_penalty(
            policy,
            booking.price,
            as_utc(booking.scheduled_time),
            now,
            places=self.places,
        )

    def _refund_decision(
        self,
        booking: Booking,
        record: CancellationPolicyRecord,
        policy: CancellationPolicy,
        result: PenaltyResult,
        now: datetime,
    ) -> RefundDecision:
        return RefundDecision(
            booking_id=booking.id,
            refund_amount=result.refund,
            penalty=result.penalty,
            refund_percentage=result.refund_percentage,
            reason=result.reason,
            basis=result.basis,
            policy_id=record.id,
            policy_hash=policy.content_hash,
            decided_at=now,
            requires_proof=result.requires_proof,
        )

    async def quote_cancellation(
        self,
        booking_id: str,
        actor: Actor,
        reason_code: str | None = None,
    ) -> PenaltyResult:
        """Compute what a cancellation would cost right now, without applying it."""
        booking = await self._require_booking(booking_id)
        self._authorize(booking, actor)
        self._require_actionable(booking, "cancel")

        _, policy = await self.get_active_policy(booking.provider_id, booking.service_id)
        return self._resolve_cancellation(policy, booking, reason_code, self._now())

    async def cancel_booking(
        self,
        booking_id: str,
        actor: Actor,
        reason_code: str | None = None,
        notes: str | None = None,
    ) -> LifecycleOutcome:
        """Cancel a pending or confirmed booking.

        Resolution order: policy exception for ``reason_code`` if one
        matches, otherwise the time-based penalty calculation.

        Raises:
            BookingNotFoundError: If the booking does not exist
            UnauthorizedActorError: If the actor is not a party to the booking
            InvalidBookingStateError: If the booking is terminal or disputed
            PolicyNotFoundError: If the provider has no active policy
            MalformedPolicyError: If the stored policy is corrupt
        """
        booking = await self._require_booking(booking_id)
        self._authorize(booking, actor)
        status = self._require_actionable(booking, "cancel")

        record, policy = await self.get_active_policy(booking.provider_id, booking.service_id)

        now = self._now()
        result = self._resolve_cancellation(policy, booking, reason_code, now)
        decision = self._refund_decision(booking, record, policy, result, now)

        await self._apply_transition(
            booking,
            expected_status=status,
            values={
                "status": BookingStatus.CANCELLED.value,
                "cancellation_penalty": result.penalty,
                "refund_amount": result.refund,
                "refund_percentage": result.refund_percentage,
                "cancellation_time": now,
                "cancelled_by": actor.role.value,
                "cancelled_by_id": actor.id,
                "cancellation_reason": reason_code,
                "cancellation_notes": notes,
                "policy_id": record.id,
                "policy_hash": decision.policy_hash,
            },
        )

        audit_logger.log(
            action="booking_cancelled",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="booking",
            entity_id=booking.id,
            metadata=result.to_payload(),
        )

        return LifecycleOutcome(
            booking=booking,
            message="Booking cancelled successfully",
            penalty=result,
            refund_decision=decision,
        )

    async def mark_no_show(self, booking_id: str, actor: Actor) -> LifecycleOutcome:
        """Mark a booking as no-show (provider only).

        Whether the grace period has passed is the caller's decision;
        this only computes and records the monetary outcome.
        """
        booking = await self._require_booking(booking_id)
        self._authorize(booking, actor, provider_only=True)
        status = self._require_actionable(booking, "mark as no-show")

        record, policy = await self.get_active_policy(booking.provider_id, booking.service_id)

        now = self._now()
        result = resolve_no_show(
            policy,
            booking.price,
            fallback_when_disabled=self.settings.no_show_disabled_falls_back_to_late_cancellation,
            places=self.places,
        )
        decision = self._refund_decision(booking, record, policy, result, now)

        await self._apply_transition(
            booking,
            expected_status=status,
            values={
                "status": BookingStatus.NO_SHOW.value,
                "cancellation_penalty": result.penalty,
                "refund_amount": result.refund,
                "refund_percentage": result.refund_percentage,
                "cancellation_time": now,
                "cancelled_by": actor.role.value,
                "cancelled_by_id": actor.id,
                "policy_id": record.id,
                "policy_hash": decision.policy_hash,
            },
        )

        audit_logger.log(
            action="booking_no_show",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="booking",
            entity_id=booking.id,
            metadata=result.to_payload(),
        )

        return LifecycleOutcome(
            booking=booking,
            message="Booking marked as no-show",
            penalty=result,
            refund_decision=decision,
        )

    async def check_reschedule(self, booking_id: str, actor: Actor) -> EligibilityResult:
        """Check whether the booking may be rescheduled right now."""
        booking = await self._require_booking(booking_id)
        self._authorize(booking, actor)
        self._require_actionable(booking, "reschedule")

        _, policy = await self.get_active_policy(booking.provider_id, booking.service_id)

        return check_reschedule_eligibility(
            policy,
            as_utc(booking.scheduled_time),
            self._now(),
            booking.reschedule_count,
        )

    async def reschedule_booking(
        self,
        booking_id: str,
        actor: Actor,
        new_scheduled_time: datetime,
    ) -> LifecycleOutcome:
        """Move a booking to a new time if the policy allows it.

        Status and monetary fields are left unchanged. Any reschedule fee
        is returned in the eligibility result for the caller to charge.

        Raises:
            RescheduleNotAllowedError: If eligibility fails or the new time is not in the future
        """
        booking = await self._require_booking(booking_id)
        self._authorize(booking, actor)
        status = self._require_actionable(booking, "reschedule")

        _, policy = await self.get_active_policy(booking.provider_id, booking.service_id)

        now = self._now()
        new_time = as_utc(new_scheduled_time)
        if new_time <= now:
            raise RescheduleNotAllowedError("New time must be in the future")

        current_time = as_utc(booking.scheduled_time)
        eligibility = check_reschedule_eligibility(
            policy, current_time, now, booking.reschedule_count
        )
        if not eligibility.allowed:
            logger.info(f"Reschedule of booking {booking.id} rejected: {eligibility.reason}")
            raise RescheduleNotAllowedError(eligibility.reason or "Rescheduling not allowed")

        prior_count = booking.reschedule_count
        await self._apply_transition(
            booking,
            expected_status=status,
            expected_reschedule_count=prior_count,
            values={
                "scheduled_time": new_time,
                "original_scheduled_time": booking.original_scheduled_time or current_time,
                "reschedule_count": prior_count + 1,
            },
        )

        audit_logger.log(
            action="booking_rescheduled",
            actor_type=actor.role.value,
            actor_id=actor.id,
            entity_type="booking",
            entity_id=booking.id,
            metadata={
                "from": current_time.isoformat(),
                "to": new_time.isoformat(),
                "reschedule_count": prior_count + 1,
                **eligibility.to_payload(),
            },
        )

        return LifecycleOutcome(
            booking=booking,
            message="Booking rescheduled successfully",
            eligibility=eligibility,
        )
