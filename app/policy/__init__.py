"""Cancellation and refund policy engine."""

from app.policy.calculator import calculate_penalty, penalty_from_rule, select_rule
from app.policy.models import (
    CancellationPolicy,
    EligibilityResult,
    PenaltyBasis,
    PenaltyKind,
    PenaltyResult,
    PolicyRule,
)
from app.policy.reschedule import check_reschedule_eligibility
from app.policy.resolvers import resolve_exception, resolve_no_show

__all__ = [
    "CancellationPolicy",
    "EligibilityResult",
    "PenaltyBasis",
    "PenaltyKind",
    "PenaltyResult",
    "PolicyRule",
    "calculate_penalty",
    "check_reschedule_eligibility",
    "penalty_from_rule",
    "resolve_exception",
    "resolve_no_show",
    "select_rule",
]
