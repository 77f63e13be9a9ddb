from typing import Optional

from gymbooking.models.mod_booking import Booking
from gymbooking.models.mod_waitlist import WaitlistEntry, WaitlistStatus
from gymbooking.services.svc_catalog import ScheduleSnapshot
from gymbooking.services.svc_errors import (
    AlreadyWaitlistedError,
    DuplicateBookingError,
    NotFoundError,
    NotFullError,
    NotOwnerError,
    NotWaitingError,
)


class WaitlistValidator:
    @staticmethod
    def validate_join(
        snapshot: ScheduleSnapshot,
        existing_booking: Optional[Booking],
        existing_entry: Optional[WaitlistEntry],
        member_id: str,
    ):
        """A member may only queue for a full class they have not booked or already joined"""
        schedule_id = snapshot.schedule.id
        if existing_booking is not None:
            raise DuplicateBookingError(context={
                "member_id": member_id,
                "schedule_id": schedule_id,
                "booking_id": existing_booking.id,
            })
        if existing_entry is not None:
            raise AlreadyWaitlistedError(context={
                "member_id": member_id,
                "schedule_id": schedule_id,
                "position": existing_entry.position,
            })
        if snapshot.seats_left > 0:
            raise NotFullError(context={"schedule_id": schedule_id, "seats_left": snapshot.seats_left})

    @staticmethod
    def validate_withdraw(
        entry: Optional[WaitlistEntry],
        entry_id: str,
        acting_member_id: str,
        staff_override: bool,
    ):
        if entry is None:
            raise NotFoundError("Waitlist entry not found", {"entry_id": entry_id})
        if not staff_override and entry.member_id != acting_member_id:
            raise NotOwnerError("You can only withdraw your own waitlist entries", {"entry_id": entry_id})
        if entry.status != WaitlistStatus.WAITING.value:
            raise NotWaitingError(context={"entry_id": entry_id, "status": entry.status})
