"""Error taxonomy for cancellation policy evaluation and booking transitions.

State and authorization errors are recoverable by the caller and are raised
before anything is written. MalformedPolicyError is fatal to the request.
"""


class BookingPolicyError(Exception):
    """Base class for booking lifecycle and policy errors."""

    pass


class PolicyNotFoundError(BookingPolicyError):
    """Raised when no active cancellation policy resolves for a provider/service."""

    pass


class BookingNotFoundError(BookingPolicyError):
    """Raised when the booking does not exist."""

    pass


class InvalidBookingStateError(BookingPolicyError):
    """Raised when a transition is attempted from a state that does not allow it."""

    def __init__(self, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


class ConcurrentTransitionError(InvalidBookingStateError):
    """Raised when another request changed the booking between read and write."""

    pass


class UnauthorizedActorError(BookingPolicyError):
    """Raised when the actor is not allowed to act on the booking."""

    pass


class RescheduleNotAllowedError(BookingPolicyError):
    """Raised when the reschedule eligibility check rejects the request."""

    pass


class MalformedPolicyError(BookingPolicyError):
    """Raised when a stored policy fails validation.

    Malformed policies must be rejected when they are authored. Seeing one
    at calculation time means the stored record is corrupt.
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []
