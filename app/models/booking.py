"""Booking model and lifecycle states.

A booking links a client, a provider and a service at a scheduled time.
Cancellation fields are written once, by the transition that ends the
booking.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin


class BookingStatus(str, Enum):
    """Lifecycle status of a booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"
    DISPUTED = "disputed"


# Terminal states never transition again through this engine
TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)

# States from which cancel, no-show and reschedule are possible
ACTIONABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class ActorRole(str, Enum):
    """Party acting on a booking."""

    CLIENT = "client"
    PROVIDER = "provider"
    ADMIN = "admin"


class Booking(Base, TimestampMixin):
    """Service booking between a client and a provider."""

    __tablename__ = "bookings"

    client_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    service_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=BookingStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    scheduled_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    # Set on first reschedule
    original_scheduled_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    duration_minutes: Mapped[int] = mapped_column(
        Integer,
        default=60,
        nullable=False,
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    reschedule_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    # Cancellation / no-show outcome
    cancellation_penalty: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        default=Decimal("0"),
        nullable=False,
    )
    refund_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        default=Decimal("0"),
        nullable=False,
    )
    refund_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2),
        nullable=True,
    )
    cancellation_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_by: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    cancelled_by_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    cancellation_reason: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )
    cancellation_notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    # Policy that produced the outcome
    policy_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    policy_hash: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    @property
    def is_terminal(self) -> bool:
        return BookingStatus(self.status) in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Booking {self.id[:8]}... {self.scheduled_time} status={self.status}>"
