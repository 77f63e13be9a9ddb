from enum import Enum
from typing import Any, Dict, Optional


class ReasonCode(str, Enum):
    """Stable reason codes shared by the booking core and its callers."""
    NOT_FOUND = "not_found"
    SCHEDULE_CLOSED = "schedule_closed"
    ALREADY_STARTED = "already_started"
    DUPLICATE_BOOKING = "duplicate_booking"
    NO_ACTIVE_MEMBERSHIP = "no_active_membership"
    CLASS_FULL = "class_full"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    NOT_OWNER = "not_owner"
    ALREADY_CANCELLED = "already_cancelled"
    CUTOFF_PASSED = "cutoff_passed"
    ALREADY_WAITLISTED = "already_waitlisted"
    NOT_FULL = "not_full"
    NOT_WAITING = "not_waiting"
    UNAVAILABLE = "unavailable"


class BookingError(Exception):
    """
    A booking request that the rules reject.

    These are expected, caller-recoverable outcomes: each one carries a stable
    `code` the presentation layer can turn into a specific message, plus an
    optional `context` dict with the ids involved.
    """
    code: ReasonCode = ReasonCode.NOT_FOUND
    default_message = "Booking request rejected"
    expected = True

    def __init__(self, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "context": {key: str(value) for key, value in self.context.items()},
        }


class NotFoundError(BookingError):
    code = ReasonCode.NOT_FOUND
    default_message = "The requested record was not found"


class ScheduleClosedError(BookingError):
    code = ReasonCode.SCHEDULE_CLOSED
    default_message = "This class is not open for booking"


class AlreadyStartedError(BookingError):
    code = ReasonCode.ALREADY_STARTED
    default_message = "Class has already started"


class DuplicateBookingError(BookingError):
    code = ReasonCode.DUPLICATE_BOOKING
    default_message = "You have already booked this class"


class NoActiveMembershipError(BookingError):
    code = ReasonCode.NO_ACTIVE_MEMBERSHIP
    default_message = "No active membership"


class ClassFullError(BookingError):
    code = ReasonCode.CLASS_FULL
    default_message = "Class is full, you can join the waitlist"


class InsufficientCreditsError(BookingError):
    code = ReasonCode.INSUFFICIENT_CREDITS
    default_message = "Insufficient class credits"


class NotOwnerError(BookingError):
    code = ReasonCode.NOT_OWNER
    default_message = "You can only manage your own bookings"


class AlreadyCancelledError(BookingError):
    code = ReasonCode.ALREADY_CANCELLED
    default_message = "Booking is no longer active"


class CutoffPassedError(BookingError):
    code = ReasonCode.CUTOFF_PASSED
    default_message = "The cancellation window for this class has closed"


class AlreadyWaitlistedError(BookingError):
    code = ReasonCode.ALREADY_WAITLISTED
    default_message = "You are already on the waitlist for this class"


class NotFullError(BookingError):
    code = ReasonCode.NOT_FULL
    default_message = "Class still has free seats, book it directly"


class NotWaitingError(BookingError):
    code = ReasonCode.NOT_WAITING
    default_message = "Waitlist entry is no longer waiting"


class BookingUnavailableError(Exception):
    """
    The store could not complete the operation (connection loss, aborted
    transaction, exhausted serialization retries). The operation either fully
    committed or fully rolled back; callers may retry with backoff.
    """
    code = ReasonCode.UNAVAILABLE
    expected = False

    def __init__(self, message: str = "Booking service temporarily unavailable", context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "context": {key: str(value) for key, value in self.context.items()},
        }
