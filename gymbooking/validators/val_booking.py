from datetime import datetime
from typing import Optional

from gymbooking.configuration.config import BookingPolicy
from gymbooking.configuration.timeutils import as_utc
from gymbooking.models.mod_booking import Booking, BookingStatus
from gymbooking.models.mod_membership import Membership
from gymbooking.services.svc_catalog import ScheduleSnapshot
from gymbooking.services.svc_errors import (
    AlreadyCancelledError,
    AlreadyStartedError,
    ClassFullError,
    CutoffPassedError,
    DuplicateBookingError,
    InsufficientCreditsError,
    NoActiveMembershipError,
    NotFoundError,
    NotOwnerError,
    ScheduleClosedError,
)


class BookingValidator:
    """
    The eligibility rules, as plain checks over data already loaded.

    Each check raises the matching BookingError; the caller decides whether
    the data came from a plain read or from rows locked in a transaction.
    """

    @staticmethod
    def validate_schedule_open(snapshot: Optional[ScheduleSnapshot], schedule_id: str):
        """Schedule exists, is scheduled and its class is active"""
        if snapshot is None:
            raise NotFoundError("Class schedule not found", {"schedule_id": schedule_id})
        if not snapshot.is_open:
            raise ScheduleClosedError(context={
                "schedule_id": schedule_id,
                "status": snapshot.schedule.status,
            })

    @staticmethod
    def validate_not_started(snapshot: ScheduleSnapshot, now: datetime):
        """Start time is strictly in the future"""
        if as_utc(snapshot.schedule.start_time) <= now:
            raise AlreadyStartedError(context={"schedule_id": snapshot.schedule.id})

    @staticmethod
    def validate_no_duplicate(existing: Optional[Booking], member_id: str, schedule_id: str):
        if existing is not None:
            raise DuplicateBookingError(context={
                "member_id": member_id,
                "schedule_id": schedule_id,
                "booking_id": existing.id,
            })

    @staticmethod
    def validate_membership(membership: Optional[Membership], member_id: str):
        if membership is None:
            raise NoActiveMembershipError(context={"member_id": member_id})

    @staticmethod
    def validate_capacity(snapshot: ScheduleSnapshot):
        if snapshot.seats_left <= 0:
            raise ClassFullError(context={
                "schedule_id": snapshot.schedule.id,
                "capacity": snapshot.effective_capacity,
                "confirmed": snapshot.confirmed_count,
            })

    @staticmethod
    def validate_credits(membership: Membership, snapshot: ScheduleSnapshot):
        """Limited memberships must cover the class's credit price"""
        required = snapshot.class_definition.credits_required or 0
        if membership.class_credits_remaining is not None and membership.class_credits_remaining < required:
            raise InsufficientCreditsError(context={
                "membership_id": membership.id,
                "remaining": membership.class_credits_remaining,
                "required": required,
            })

    @staticmethod
    def validate_reservation(
        snapshot: Optional[ScheduleSnapshot],
        existing: Optional[Booking],
        membership: Optional[Membership],
        member_id: str,
        schedule_id: str,
        now: datetime,
    ):
        """Validate all rules for reserving a seat, in order, stopping at the first failure"""
        BookingValidator.validate_schedule_open(snapshot, schedule_id)
        BookingValidator.validate_not_started(snapshot, now)
        BookingValidator.validate_no_duplicate(existing, member_id, schedule_id)
        BookingValidator.validate_membership(membership, member_id)
        BookingValidator.validate_capacity(snapshot)
        BookingValidator.validate_credits(membership, snapshot)

    @staticmethod
    def validate_cancel_booking(
        booking: Optional[Booking],
        snapshot: Optional[ScheduleSnapshot],
        booking_id: str,
        acting_member_id: str,
        staff_override: bool,
        policy: BookingPolicy,
        now: datetime,
    ):
        """Validate all rules for cancelling a booking"""
        if booking is None:
            raise NotFoundError("Booking not found", {"booking_id": booking_id})
        if not staff_override and booking.member_id != acting_member_id:
            raise NotOwnerError(context={"booking_id": booking_id})
        if booking.status != BookingStatus.CONFIRMED.value:
            raise AlreadyCancelledError(
                f"Booking is {booking.status} and can no longer be cancelled",
                {"booking_id": booking_id, "status": booking.status},
            )
        if snapshot is None:
            raise NotFoundError("Class schedule not found", {"schedule_id": booking.schedule_id})
        cutoff = as_utc(snapshot.schedule.start_time) - policy.cancellation_cutoff
        if now > cutoff:
            raise CutoffPassedError(
                f"Bookings can only be cancelled up to {int(policy.cancellation_cutoff.total_seconds() // 60)} minutes before class",
                {"booking_id": booking_id, "cutoff": cutoff.isoformat()},
            )
