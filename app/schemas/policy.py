"""Cancellation policy authoring schemas.

Malformed policies are rejected here, when they are written. The same
schema parses stored policies before calculation, so a corrupt record
surfaces as MalformedPolicyError instead of a wrong refund.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from app.policy.errors import MalformedPolicyError
from app.policy.models import (
    LATE_CANCELLATION_KINDS,
    NO_SHOW_KINDS,
    CancellationPolicy,
    DepositPolicy,
    ExceptionReason,
    FeeKind,
    FreeCancellationWindow,
    LateCancellationFallback,
    NoShowPolicy,
    PenaltyKind,
    PolicyException,
    PolicyRule,
    RepeatOffenderPolicy,
    ReschedulePolicy,
)


class PolicyRuleSchema(BaseModel):
    """Schema for one time-tiered rule."""

    threshold_hours: float = Field(..., ge=0, description="Minimum hours of notice")
    penalty_kind: PenaltyKind
    penalty_value: Decimal = Field(Decimal("0"), ge=0)
    refund_percentage: Decimal = Field(Decimal("100"), ge=0, le=100)

    @model_validator(mode="after")
    def validate_percentage(self) -> "PolicyRuleSchema":
        """Percentage penalties cannot exceed 100."""
        if self.penalty_kind == PenaltyKind.PERCENTAGE and self.penalty_value > 100:
            raise ValueError("percentage penalty_value must be between 0 and 100")
        return self


class FreeCancellationWindowSchema(BaseModel):
    enabled: bool = True
    hours: float = Field(48, ge=0)


class LateCancellationSchema(BaseModel):
    threshold_hours: float = Field(24, ge=0)
    penalty_kind: PenaltyKind = PenaltyKind.PERCENTAGE
    penalty_value: Decimal = Field(Decimal("50"), ge=0)

    @model_validator(mode="after")
    def validate_kind(self) -> "LateCancellationSchema":
        """Late cancellation only supports percentage or fixed amount."""
        if self.penalty_kind not in LATE_CANCELLATION_KINDS:
            raise ValueError("late cancellation penalty_kind must be 'percentage' or 'fixed_amount'")
        if self.penalty_kind == PenaltyKind.PERCENTAGE and self.penalty_value > 100:
            raise ValueError("percentage penalty_value must be between 0 and 100")
        return self


class NoShowSchema(BaseModel):
    enabled: bool = True
    penalty_kind: PenaltyKind = PenaltyKind.FULL_CHARGE
    penalty_value: Decimal = Field(Decimal("100"), ge=0)
    grace_period_minutes: int = Field(15, ge=0)

    @model_validator(mode="after")
    def validate_kind(self) -> "NoShowSchema":
        """No-show does not support the 'none' kind."""
        if self.penalty_kind not in NO_SHOW_KINDS:
            raise ValueError(
                "no-show penalty_kind must be 'percentage', 'fixed_amount' or 'full_charge'"
            )
        if self.penalty_kind == PenaltyKind.PERCENTAGE and self.penalty_value > 100:
            raise ValueError("percentage penalty_value must be between 0 and 100")
        return self


class RescheduleSchema(BaseModel):
    allowed: bool = True
    max_reschedules: int = Field(2, ge=0)
    min_notice_hours: float = Field(24, ge=0)
    fee_kind: FeeKind = FeeKind.NONE
    fee_value: Decimal = Field(Decimal("0"), ge=0)


class PolicyExceptionSchema(BaseModel):
    reason_code: ExceptionReason
    refund_percentage: Decimal = Field(Decimal("100"), ge=0, le=100)
    requires_proof: bool = False
    notes: Optional[str] = Field(None, max_length=500)


class RepeatOffenderSchema(BaseModel):
    enabled: bool = False
    threshold: int = Field(3, ge=1)
    timeframe_days: int = Field(90, ge=1)
    penalty: Literal[
        "warning", "deposit_required", "booking_restriction", "account_suspension"
    ] = "deposit_required"


class DepositSchema(BaseModel):
    required: bool = False
    amount: Decimal = Field(Decimal("0"), ge=0)
    kind: Literal["fixed", "percentage"] = "percentage"
    refundable: bool = True


class CancellationPolicyDefinition(BaseModel):
    """Full cancellation policy as authored by a provider."""

    name: str = Field("Standard Cancellation Policy", min_length=1, max_length=200)
    description: str = Field("", max_length=500)
    rules: list[PolicyRuleSchema] = Field(default_factory=list)
    free_cancellation_window: FreeCancellationWindowSchema = Field(
        default_factory=FreeCancellationWindowSchema
    )
    late_cancellation: LateCancellationSchema = Field(default_factory=LateCancellationSchema)
    no_show: NoShowSchema = Field(default_factory=NoShowSchema)
    reschedule: RescheduleSchema = Field(default_factory=RescheduleSchema)
    exceptions: list[PolicyExceptionSchema] = Field(default_factory=list)
    repeat_offender: RepeatOffenderSchema = Field(default_factory=RepeatOffenderSchema)
    deposit: DepositSchema = Field(default_factory=DepositSchema)
    is_default: bool = False
    is_active: bool = True
    applies_to: list[str] = Field(default_factory=list)
    effective_date: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_uniqueness(self) -> "CancellationPolicyDefinition":
        """Rule thresholds and exception reason codes must be unique."""
        thresholds = [rule.threshold_hours for rule in self.rules]
        duplicates = sorted({t for t in thresholds if thresholds.count(t) > 1})
        if duplicates:
            raise ValueError(
                "rules must have unique threshold_hours; duplicated: "
                + ", ".join(f"{t:g}" for t in duplicates)
            )

        codes = [e.reason_code for e in self.exceptions]
        duplicate_codes = sorted({c.value for c in codes if codes.count(c) > 1})
        if duplicate_codes:
            raise ValueError(
                "exceptions must have unique reason_code; duplicated: "
                + ", ".join(duplicate_codes)
            )
        return self

    def to_policy(self) -> CancellationPolicy:
        """Build the immutable policy snapshot."""
        return CancellationPolicy(
            name=self.name,
            description=self.description,
            rules=tuple(
                PolicyRule(
                    threshold_hours=r.threshold_hours,
                    penalty_kind=r.penalty_kind,
                    penalty_value=r.penalty_value,
                    refund_percentage=r.refund_percentage,
                )
                for r in self.rules
            ),
            free_cancellation_window=FreeCancellationWindow(
                enabled=self.free_cancellation_window.enabled,
                hours=self.free_cancellation_window.hours,
            ),
            late_cancellation=LateCancellationFallback(
                threshold_hours=self.late_cancellation.threshold_hours,
                penalty_kind=self.late_cancellation.penalty_kind,
                penalty_value=self.late_cancellation.penalty_value,
            ),
            no_show=NoShowPolicy(
                enabled=self.no_show.enabled,
                penalty_kind=self.no_show.penalty_kind,
                penalty_value=self.no_show.penalty_value,
                grace_period_minutes=self.no_show.grace_period_minutes,
            ),
            reschedule=ReschedulePolicy(
                allowed=self.reschedule.allowed,
                max_reschedules=self.reschedule.max_reschedules,
                min_notice_hours=self.reschedule.min_notice_hours,
                fee_kind=self.reschedule.fee_kind,
                fee_value=self.reschedule.fee_value,
            ),
            exceptions=tuple(
                PolicyException(
                    reason_code=e.reason_code.value,
                    refund_percentage=e.refund_percentage,
                    requires_proof=e.requires_proof,
                    notes=e.notes,
                )
                for e in self.exceptions
            ),
            repeat_offender=RepeatOffenderPolicy(
                enabled=self.repeat_offender.enabled,
                threshold=self.repeat_offender.threshold,
                timeframe_days=self.repeat_offender.timeframe_days,
                penalty=self.repeat_offender.penalty,
            ),
            deposit=DepositPolicy(
                required=self.deposit.required,
                amount=self.deposit.amount,
                kind=self.deposit.kind,
                refundable=self.deposit.refundable,
            ),
            is_default=self.is_default,
            is_active=self.is_active,
            applies_to=tuple(self.applies_to),
            effective_date=self.effective_date,
        )


def parse_policy(data: dict[str, Any]) -> CancellationPolicy:
    """Validate policy data and build the snapshot.

    Raises:
        MalformedPolicyError: If the data fails validation
    """
    try:
        definition = CancellationPolicyDefinition.model_validate(data)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or 'policy'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise MalformedPolicyError("Cancellation policy failed validation", errors=errors) from exc

    return definition.to_policy()
