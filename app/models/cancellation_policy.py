"""Stored cancellation policy owned by a provider.

The policy body lives in JSON columns and is parsed into an immutable
CancellationPolicy snapshot before any calculation.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, utc_now
from app.policy.models import CancellationPolicy
from app.schemas.policy import parse_policy


class CancellationPolicyRecord(Base, TimestampMixin):
    """Provider cancellation policy, optionally scoped to services."""

    __tablename__ = "cancellation_policies"

    provider_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(200),
        default="Standard Cancellation Policy",
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    rules: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    free_cancellation_window: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    late_cancellation: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    no_show: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    reschedule: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    exceptions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    repeat_offender: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    deposit: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    # Service ids this policy is scoped to (empty = all services)
    applies_to: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    is_default: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )
    effective_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )

    def to_policy(self) -> CancellationPolicy:
        """Parse the stored body into a validated snapshot.

        Raises:
            MalformedPolicyError: If the stored body fails validation
        """
        return parse_policy(
            {
                "name": self.name,
                "description": self.description or "",
                "rules": self.rules or [],
                "free_cancellation_window": self.free_cancellation_window or {},
                "late_cancellation": self.late_cancellation or {},
                "no_show": self.no_show or {},
                "reschedule": self.reschedule or {},
                "exceptions": self.exceptions or [],
                "repeat_offender": self.repeat_offender or {},
                "deposit": self.deposit or {},
                "is_default": self.is_default,
                "is_active": self.is_active,
                "applies_to": self.applies_to or [],
                "effective_date": self.effective_date,
            }
        )

    @classmethod
    def from_policy(cls, provider_id: str, policy: CancellationPolicy) -> "CancellationPolicyRecord":
        """Build a record from a validated snapshot."""
        data = policy.to_dict()
        record = cls(
            provider_id=provider_id,
            name=data["name"],
            description=data["description"],
            rules=data["rules"],
            free_cancellation_window=data["free_cancellation_window"],
            late_cancellation=data["late_cancellation"],
            no_show=data["no_show"],
            reschedule=data["reschedule"],
            exceptions=data["exceptions"],
            repeat_offender=data["repeat_offender"],
            deposit=data["deposit"],
            applies_to=data["applies_to"],
            is_default=policy.is_default,
            is_active=policy.is_active,
        )
        if policy.effective_date is not None:
            record.effective_date = policy.effective_date
        return record

    def __repr__(self) -> str:
        return f"<CancellationPolicyRecord {self.name} provider={self.provider_id[:8]}...>"
