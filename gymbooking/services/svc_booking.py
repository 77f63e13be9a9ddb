from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gymbooking.configuration.config import BookingPolicy
from gymbooking.configuration.monitor import log_event, log_exception, start_span
from gymbooking.configuration.timeutils import utcnow
from gymbooking.models.mod_booking import Booking, BookingStatus
from gymbooking.models.mod_catalog import ClassSchedule
from gymbooking.services.svc_catalog import ClassCatalog
from gymbooking.services.svc_errors import (
    BookingError,
    BookingUnavailableError,
    DuplicateBookingError,
    NotFoundError,
    ReasonCode,
)
from gymbooking.services.svc_ledger import MembershipLedger
from gymbooking.services.svc_notifier import BookingEvents, Notifier
from gymbooking.services.svc_transactions import run_in_transaction
from gymbooking.validators.val_booking import BookingValidator

SeatReleasedListener = Callable[[Session, str], object]


@dataclass
class EligibilityResult:
    eligible: bool
    reason: Optional[ReasonCode] = None
    message: Optional[str] = None


class BookingEngine:
    """
    Reserves and cancels seats in scheduled classes.

    Every operation takes the request's Session. `reserve` and `cancel` each
    run as a single transaction that locks the schedule row first, then
    re-validates and writes, so two requests racing for the last seat cannot
    both win and a credit is never debited without its booking (or the
    reverse).
    """

    def __init__(
        self,
        ledger: MembershipLedger,
        catalog: ClassCatalog,
        notifier: Notifier,
        policy: BookingPolicy,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ledger = ledger
        self.catalog = catalog
        self.notifier = notifier
        self.policy = policy
        self.clock = clock
        self._seat_released_listeners: List[SeatReleasedListener] = []

    def add_seat_released_listener(self, listener: SeatReleasedListener):
        """Register a callback run (in its own transaction) after a cancellation frees a seat."""
        self._seat_released_listeners.append(listener)

    @staticmethod
    def find_confirmed_booking(session: Session, member_id: str, schedule_id: str) -> Optional[Booking]:
        return session.execute(
            select(Booking).where(
                Booking.member_id == member_id,
                Booking.schedule_id == schedule_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        ).scalars().first()

    def check_eligibility(self, session: Session, member_id: str, schedule_id: str) -> EligibilityResult:
        """
        Tell whether the member could book the schedule right now.

        Read only. The answer is advisory: `reserve` runs the same checks again
        under lock.
        """
        with start_span("check_eligibility", attributes={"member_id": member_id, "schedule_id": schedule_id}):
            try:
                snapshot = self.catalog.get_schedule_with_class(session, schedule_id)
                existing = self.find_confirmed_booking(session, member_id, schedule_id)
                membership = self.ledger.get_active_membership(session, member_id)
                BookingValidator.validate_reservation(
                    snapshot, existing, membership, member_id, schedule_id, self.clock()
                )
            except BookingError as e:
                log_event("Booking not eligible", {
                    "member_id": member_id,
                    "schedule_id": schedule_id,
                    "reason": e.code.value,
                })
                return EligibilityResult(eligible=False, reason=e.code, message=e.message)
            except SQLAlchemyError as e:
                log_exception(e, {"operation": "check_eligibility", "schedule_id": schedule_id})
                raise BookingUnavailableError(context={"schedule_id": schedule_id}) from e
            finally:
                session.rollback()

            return EligibilityResult(eligible=True)

    def reserve(self, session: Session, member_id: str, schedule_id: str, notes: Optional[str] = None) -> Booking:
        """Book a seat for the member, debiting the class's credits. Emits booking.confirmed after commit."""
        with start_span("reserve_booking", attributes={"member_id": member_id, "schedule_id": schedule_id}):
            log_event("Reserve booking started", {"member_id": member_id, "schedule_id": schedule_id})

            booking = run_in_transaction(
                session,
                "reserve_booking",
                lambda: self.reserve_in_transaction(session, member_id, schedule_id, notes),
                {"member_id": member_id, "schedule_id": schedule_id},
                integrity_error=DuplicateBookingError,
            )

            log_event("Booking confirmed", {
                "booking_id": booking.id,
                "member_id": member_id,
                "schedule_id": schedule_id,
                "credits_used": booking.credits_used,
            })
            self.notifier.publish(BookingEvents.BOOKING_CONFIRMED, {
                "booking_id": booking.id,
                "member_id": member_id,
                "schedule_id": schedule_id,
            })
            return booking

    def reserve_in_transaction(
        self,
        session: Session,
        member_id: str,
        schedule_id: str,
        notes: Optional[str] = None,
        waitlist_entry_id: Optional[str] = None,
    ) -> Booking:
        """
        Lock, re-validate, insert and debit inside the caller's open transaction.

        Nothing is written unless every check passes. Does not commit and does
        not publish events.
        """
        now = self.clock()
        snapshot = self.catalog.get_schedule_with_class(session, schedule_id, for_update=True)
        existing = self.find_confirmed_booking(session, member_id, schedule_id)
        membership = self.ledger.get_active_membership(session, member_id, for_update=True)
        BookingValidator.validate_reservation(snapshot, existing, membership, member_id, schedule_id, now)

        credits = 0 if membership.is_unlimited else (snapshot.class_definition.credits_required or 0)
        booking = Booking(
            member_id=member_id,
            schedule_id=schedule_id,
            membership_id=membership.id,
            status=BookingStatus.CONFIRMED.value,
            credits_used=credits,
            member_notes=notes,
            waitlist_entry_id=waitlist_entry_id,
            created_at=now,
        )
        session.add(booking)
        session.flush()

        if credits:
            self.ledger.adjust_credits(session, membership.id, -credits)
        return booking

    def cancel(
        self,
        session: Session,
        booking_id: str,
        acting_member_id: str,
        staff_override: bool = False,
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Cancel a confirmed booking and refund the credits it debited.

        After the cancellation commits, seat-released listeners (the waitlist)
        run in their own transaction. Their failure is logged and leaves the
        cancellation in place; promotion can be re-run at any time.
        """
        with start_span("cancel_booking", attributes={"booking_id": booking_id}):
            log_event("Cancel booking started", {
                "booking_id": booking_id,
                "acting_member_id": acting_member_id,
                "staff_override": staff_override,
            })

            booking = run_in_transaction(
                session,
                "cancel_booking",
                lambda: self._cancel_in_transaction(session, booking_id, acting_member_id, staff_override, reason),
                {"booking_id": booking_id, "acting_member_id": acting_member_id},
            )

            log_event("Booking cancelled successfully", {
                "booking_id": booking_id,
                "member_id": booking.member_id,
                "refunded_credits": booking.credits_used,
            })
            self.notifier.publish(BookingEvents.BOOKING_CANCELLED, {"booking_id": booking.id})
            self._release_seat(session, booking.schedule_id)
            return booking

    def _cancel_in_transaction(
        self,
        session: Session,
        booking_id: str,
        acting_member_id: str,
        staff_override: bool,
        reason: Optional[str],
    ) -> Booking:
        now = self.clock()
        booking = session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", {"booking_id": booking_id})

        # Lock order: schedule, then booking, then membership (same as reserve)
        snapshot = self.catalog.get_schedule_with_class(session, booking.schedule_id, for_update=True)
        booking = session.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()

        BookingValidator.validate_cancel_booking(
            booking, snapshot, booking_id, acting_member_id, staff_override, self.policy, now
        )

        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = now
        booking.cancellation_reason = reason
        booking.cancelled_by = acting_member_id
        session.flush()

        if booking.credits_used and booking.membership_id:
            self.ledger.adjust_credits(session, booking.membership_id, booking.credits_used)
        return booking

    def _release_seat(self, session: Session, schedule_id: str):
        for listener in self._seat_released_listeners:
            try:
                listener(session, schedule_id)
            except BookingUnavailableError as e:
                log_exception(e, {"operation": "seat_released", "schedule_id": schedule_id})

    def get_booking(self, session: Session, booking_id: str) -> Optional[Booking]:
        try:
            with start_span("get_booking", attributes={"booking_id": booking_id}):
                booking = session.get(Booking, booking_id)
                if booking is None:
                    log_event("Booking not found", {"booking_id": booking_id})
                return booking
        except SQLAlchemyError as e:
            log_exception(e, {"operation": "get_booking", "booking_id": booking_id})
            raise BookingUnavailableError(context={"booking_id": booking_id}) from e

    def list_member_bookings(self, session: Session, member_id: str, upcoming: bool = True) -> List[Booking]:
        """Confirmed bookings of a member: upcoming ones by start time, or past ones most recent first"""
        try:
            with start_span("list_member_bookings", attributes={"member_id": member_id, "upcoming": upcoming}):
                now = self.clock()
                query = (
                    select(Booking)
                    .join(ClassSchedule, ClassSchedule.id == Booking.schedule_id)
                    .where(Booking.member_id == member_id)
                )
                if upcoming:
                    query = query.where(
                        Booking.status == BookingStatus.CONFIRMED.value,
                        ClassSchedule.start_time > now,
                    ).order_by(ClassSchedule.start_time.asc())
                else:
                    query = query.where(
                        Booking.status.in_([BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value]),
                        ClassSchedule.start_time <= now,
                    ).order_by(ClassSchedule.start_time.desc())

                bookings = list(session.execute(query).scalars().all())
                log_event("Member bookings retrieved", {
                    "member_id": member_id,
                    "upcoming": upcoming,
                    "count": len(bookings),
                })
                return bookings
        except SQLAlchemyError as e:
            log_exception(e, {"operation": "list_member_bookings", "member_id": member_id})
            raise BookingUnavailableError(context={"member_id": member_id}) from e
