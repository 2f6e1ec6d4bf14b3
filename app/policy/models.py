"""Cancellation policy value objects and decision results.

Policies are immutable snapshots. They are built from validated authoring
data (see app.schemas.policy) and never mutated by the calculation code.
"""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional


class PenaltyKind(str, Enum):
    """How a penalty value is interpreted."""

    NONE = "none"
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FULL_CHARGE = "full_charge"


class FeeKind(str, Enum):
    """How a reschedule fee is interpreted."""

    NONE = "none"
    FIXED_AMOUNT = "fixed_amount"


class ExceptionReason(str, Enum):
    """Reason codes a policy may grant an exception for."""

    EMERGENCY = "emergency"
    ILLNESS = "illness"
    WEATHER = "weather"
    PROVIDER_CANCELLATION = "provider_cancellation"
    OTHER = "other"


class PenaltyBasis(str, Enum):
    """Which branch of the policy produced a penalty result."""

    FREE_WINDOW = "free_window"
    STANDARD_POLICY = "standard_policy"
    LATE_CANCELLATION = "late_cancellation"
    NO_SHOW = "no_show"
    NO_SHOW_DISABLED = "no_show_disabled"
    EXCEPTION = "exception"


# Kinds allowed per policy section
LATE_CANCELLATION_KINDS = frozenset({PenaltyKind.PERCENTAGE, PenaltyKind.FIXED_AMOUNT})
NO_SHOW_KINDS = frozenset(
    {PenaltyKind.PERCENTAGE, PenaltyKind.FIXED_AMOUNT, PenaltyKind.FULL_CHARGE}
)

HUNDRED = Decimal("100")


def as_decimal(value: Any) -> Decimal:
    """Convert a number to Decimal without float representation noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def money_quantum(places: int = 2) -> Decimal:
    """Smallest currency unit for the given number of decimal places."""
    return Decimal(1).scaleb(-places)


def to_money(value: Any, places: int = 2) -> Decimal:
    """Round an amount to the smallest currency unit (half up)."""
    return as_decimal(value).quantize(money_quantum(places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PolicyRule:
    """One time-tiered penalty rule.

    Applies when the cancellation happens at least ``threshold_hours``
    before the appointment.
    """

    threshold_hours: float
    penalty_kind: PenaltyKind
    penalty_value: Decimal = Decimal("0")
    refund_percentage: Decimal = HUNDRED


@dataclass(frozen=True)
class FreeCancellationWindow:
    enabled: bool = True
    hours: float = 48


@dataclass(frozen=True)
class LateCancellationFallback:
    """Penalty used when no tiered rule matches."""

    threshold_hours: float = 24
    penalty_kind: PenaltyKind = PenaltyKind.PERCENTAGE
    penalty_value: Decimal = Decimal("50")


@dataclass(frozen=True)
class NoShowPolicy:
    enabled: bool = True
    penalty_kind: PenaltyKind = PenaltyKind.FULL_CHARGE
    penalty_value: Decimal = HUNDRED
    grace_period_minutes: int = 15


@dataclass(frozen=True)
class ReschedulePolicy:
    allowed: bool = True
    max_reschedules: int = 2
    min_notice_hours: float = 24
    fee_kind: FeeKind = FeeKind.NONE
    fee_value: Decimal = Decimal("0")


@dataclass(frozen=True)
class PolicyException:
    """Named override reason with a fixed refund percentage."""

    reason_code: str
    refund_percentage: Decimal = HUNDRED
    requires_proof: bool = False
    notes: Optional[str] = None


@dataclass(frozen=True)
class RepeatOffenderPolicy:
    # Stored with the policy but not enforced by the engine
    enabled: bool = False
    threshold: int = 3
    timeframe_days: int = 90
    penalty: str = "deposit_required"


@dataclass(frozen=True)
class DepositPolicy:
    # Stored with the policy but not enforced by the engine
    required: bool = False
    amount: Decimal = Decimal("0")
    kind: str = "percentage"
    refundable: bool = True


@dataclass(frozen=True)
class CancellationPolicy:
    """Immutable snapshot of a provider's cancellation policy."""

    name: str = "Standard Cancellation Policy"
    description: str = ""
    rules: tuple[PolicyRule, ...] = ()
    free_cancellation_window: FreeCancellationWindow = field(
        default_factory=FreeCancellationWindow
    )
    late_cancellation: LateCancellationFallback = field(
        default_factory=LateCancellationFallback
    )
    no_show: NoShowPolicy = field(default_factory=NoShowPolicy)
    reschedule: ReschedulePolicy = field(default_factory=ReschedulePolicy)
    exceptions: tuple[PolicyException, ...] = ()
    repeat_offender: RepeatOffenderPolicy = field(default_factory=RepeatOffenderPolicy)
    deposit: DepositPolicy = field(default_factory=DepositPolicy)
    is_default: bool = False
    is_active: bool = True
    applies_to: tuple[str, ...] = ()
    effective_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        # Rule selection relies on ascending thresholds
        ordered = tuple(sorted(self.rules, key=lambda r: r.threshold_hours))
        if ordered != self.rules:
            object.__setattr__(self, "rules", ordered)

    @property
    def thresholds(self) -> list[float]:
        """Rule thresholds in ascending order."""
        return [rule.threshold_hours for rule in self.rules]

    def find_exception(self, reason_code: str) -> Optional[PolicyException]:
        """Look up an exception by exact reason code."""
        for exception in self.exceptions:
            if exception.reason_code == reason_code:
                return exception
        return None

    @property
    def content_hash(self) -> str:
        """SHA-256 of the calculation-relevant policy content.

        Recorded with every decision so a refund can be traced back to the
        exact policy that produced it.
        """
        content = self.to_dict()
        for key in ("name", "description", "is_default", "is_active", "applies_to", "effective_date"):
            content.pop(key, None)
        content_str = json.dumps(content, sort_keys=True)
        return hashlib.sha256(content_str.encode()).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        """Convert policy to a JSON-safe dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "rules": [
                {
                    "threshold_hours": r.threshold_hours,
                    "penalty_kind": r.penalty_kind.value,
                    "penalty_value": str(r.penalty_value),
                    "refund_percentage": str(r.refund_percentage),
                }
                for r in self.rules
            ],
            "free_cancellation_window": {
                "enabled": self.free_cancellation_window.enabled,
                "hours": self.free_cancellation_window.hours,
            },
            "late_cancellation": {
                "threshold_hours": self.late_cancellation.threshold_hours,
                "penalty_kind": self.late_cancellation.penalty_kind.value,
                "penalty_value": str(self.late_cancellation.penalty_value),
            },
            "no_show": {
                "enabled": self.no_show.enabled,
                "penalty_kind": self.no_show.penalty_kind.value,
                "penalty_value": str(self.no_show.penalty_value),
                "grace_period_minutes": self.no_show.grace_period_minutes,
            },
            "reschedule": {
                "allowed": self.reschedule.allowed,
                "max_reschedules": self.reschedule.max_reschedules,
                "min_notice_hours": self.reschedule.min_notice_hours,
                "fee_kind": self.reschedule.fee_kind.value,
                "fee_value": str(self.reschedule.fee_value),
            },
            "exceptions": [
                {
                    "reason_code": e.reason_code,
                    "refund_percentage": str(e.refund_percentage),
                    "requires_proof": e.requires_proof,
                    "notes": e.notes,
                }
                for e in self.exceptions
            ],
            "repeat_offender": {
                "enabled": self.repeat_offender.enabled,
                "threshold": self.repeat_offender.threshold,
                "timeframe_days": self.repeat_offender.timeframe_days,
                "penalty": self.repeat_offender.penalty,
            },
            "deposit": {
                "required": self.deposit.required,
                "amount": str(self.deposit.amount),
                "kind": self.deposit.kind,
                "refundable": self.deposit.refundable,
            },
            "is_default": self.is_default,
            "is_active": self.is_active,
            "applies_to": list(self.applies_to),
            "effective_date": self.effective_date.isoformat() if self.effective_date else None,
        }


@dataclass(frozen=True)
class PenaltyResult:
    """Monetary outcome of a cancellation or no-show.

    Invariant: penalty + refund == booking price.
    """

    penalty: Decimal
    refund: Decimal
    refund_percentage: Decimal
    reason: str
    basis: PenaltyBasis
    reason_code: Optional[str] = None
    requires_proof: bool = False
    notes: Optional[str] = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "penalty": str(self.penalty),
            "refund": str(self.refund),
            "refund_percentage": str(self.refund_percentage),
            "reason": self.reason,
            "basis": self.basis.value,
        }
        if self.basis == PenaltyBasis.EXCEPTION:
            payload["reason_code"] = self.reason_code
            payload["requires_proof"] = self.requires_proof
            payload["notes"] = self.notes
        return payload


@dataclass(frozen=True)
class EligibilityResult:
    """Outcome of a reschedule eligibility check."""

    allowed: bool
    reason: Optional[str] = None
    fee: Decimal = Decimal("0")
    fee_kind: Optional[FeeKind] = None

    def to_payload(self) -> dict[str, object]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "fee": str(self.fee),
            "fee_kind": self.fee_kind.value if self.fee_kind else None,
        }
