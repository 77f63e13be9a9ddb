from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gymbooking.configuration.monitor import log_event, log_exception, start_span
from gymbooking.configuration.timeutils import as_utc
from gymbooking.models.mod_booking import Booking
from gymbooking.models.mod_waitlist import WaitlistEntry, WaitlistStatus
from gymbooking.services.svc_booking import BookingEngine
from gymbooking.services.svc_errors import AlreadyWaitlistedError, BookingError, BookingUnavailableError, NotFoundError
from gymbooking.services.svc_notifier import BookingEvents
from gymbooking.services.svc_transactions import run_in_transaction
from gymbooking.validators.val_booking import BookingValidator
from gymbooking.validators.val_waitlist import WaitlistValidator

PROMOTION_NOTE = "Promoted from waitlist"


class WaitlistManager:
    """
    First-in-first-out waitlists for full schedules.

    Waiting entries of a schedule always hold positions 1..n: every removal
    (promotion, expiry, withdrawal) renumbers the rest in the same
    transaction. Registers itself with the engine so each cancellation is
    followed by `promote_next`.
    """

    def __init__(self, engine: BookingEngine):
        self.engine = engine
        engine.add_seat_released_listener(self.promote_next)

    @property
    def _ttl(self):
        return self.engine.policy.waitlist_entry_ttl

    @staticmethod
    def _waiting_query(schedule_id: str):
        return (
            select(WaitlistEntry)
            .where(
                WaitlistEntry.schedule_id == schedule_id,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
            )
            .order_by(WaitlistEntry.position, WaitlistEntry.joined_at)
        )

    def _waiting_entries(self, session: Session, schedule_id: str, for_update: bool = False) -> List[WaitlistEntry]:
        query = self._waiting_query(schedule_id)
        if for_update:
            query = query.with_for_update()
        return list(session.execute(query).scalars().all())

    @staticmethod
    def _find_waiting(session: Session, member_id: str, schedule_id: str) -> Optional[WaitlistEntry]:
        return session.execute(
            select(WaitlistEntry).where(
                WaitlistEntry.member_id == member_id,
                WaitlistEntry.schedule_id == schedule_id,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
            )
        ).scalars().first()

    @staticmethod
    def _resolve(entry: WaitlistEntry, status: WaitlistStatus, now: datetime):
        entry.status = status.value
        entry.resolved_at = now

    def _renumber(self, session: Session, schedule_id: str):
        session.flush()
        for position, entry in enumerate(self._waiting_entries(session, schedule_id), start=1):
            if entry.position != position:
                entry.position = position
        session.flush()

    def _expire_stale(self, session: Session, schedule_id: str, now: datetime) -> int:
        expired = 0
        for entry in self._waiting_entries(session, schedule_id, for_update=True):
            if entry.expires_at is not None and as_utc(entry.expires_at) <= now:
                self._resolve(entry, WaitlistStatus.EXPIRED, now)
                expired += 1
        if expired:
            self._renumber(session, schedule_id)
            log_event("Stale waitlist entries expired", {"schedule_id": schedule_id, "count": expired})
        return expired

    def join(self, session: Session, member_id: str, schedule_id: str) -> WaitlistEntry:
        """Queue the member for a full schedule at the next position."""
        with start_span("join_waitlist", attributes={"member_id": member_id, "schedule_id": schedule_id}):
            log_event("Join waitlist started", {"member_id": member_id, "schedule_id": schedule_id})
            entry = run_in_transaction(
                session,
                "join_waitlist",
                lambda: self._join_in_transaction(session, member_id, schedule_id),
                {"member_id": member_id, "schedule_id": schedule_id},
                integrity_error=AlreadyWaitlistedError,
            )
            log_event("Joined waitlist", {
                "entry_id": entry.id,
                "member_id": member_id,
                "schedule_id": schedule_id,
                "position": entry.position,
            })
            return entry

    def _join_in_transaction(self, session: Session, member_id: str, schedule_id: str) -> WaitlistEntry:
        now = self.engine.clock()
        snapshot = self.engine.catalog.get_schedule_with_class(session, schedule_id, for_update=True)
        BookingValidator.validate_schedule_open(snapshot, schedule_id)
        BookingValidator.validate_not_started(snapshot, now)
        self._expire_stale(session, schedule_id, now)

        WaitlistValidator.validate_join(
            snapshot,
            self.engine.find_confirmed_booking(session, member_id, schedule_id),
            self._find_waiting(session, member_id, schedule_id),
            member_id,
        )

        last_position = session.execute(
            select(func.max(WaitlistEntry.position)).where(
                WaitlistEntry.schedule_id == schedule_id,
                WaitlistEntry.status == WaitlistStatus.WAITING.value,
            )
        ).scalar()
        entry = WaitlistEntry(
            member_id=member_id,
            schedule_id=schedule_id,
            position=(last_position or 0) + 1,
            status=WaitlistStatus.WAITING.value,
            joined_at=now,
            expires_at=now + self._ttl if self._ttl else None,
        )
        session.add(entry)
        session.flush()
        return entry

    def promote_next(self, session: Session, schedule_id: str) -> Optional[WaitlistEntry]:
        """
        Give a free seat to the first eligible waiting member.

        Entries whose member can no longer book (credits ran out, membership
        lapsed, entry timed out) are marked expired and skipped, so a stale
        entry never holds a seat back. No free seat or nobody waiting is a
        no-op returning None; running it twice is safe.
        """
        with start_span("promote_next", attributes={"schedule_id": schedule_id}):
            result = run_in_transaction(
                session,
                "promote_next",
                lambda: self._promote_in_transaction(session, schedule_id),
                {"schedule_id": schedule_id},
            )
            if result is None:
                log_event("No waitlist promotion", {"schedule_id": schedule_id})
                return None

            entry, booking = result
            log_event("Waitlist entry promoted", {
                "entry_id": entry.id,
                "booking_id": booking.id,
                "member_id": entry.member_id,
                "schedule_id": schedule_id,
            })
            self.engine.notifier.publish(BookingEvents.BOOKING_CONFIRMED, {
                "booking_id": booking.id,
                "member_id": booking.member_id,
                "schedule_id": schedule_id,
            })
            self.engine.notifier.publish(BookingEvents.WAITLIST_PROMOTED, {
                "entry_id": entry.id,
                "booking_id": booking.id,
            })
            return entry

    def _promote_in_transaction(self, session: Session, schedule_id: str) -> Optional[Tuple[WaitlistEntry, Booking]]:
        now = self.engine.clock()
        snapshot = self.engine.catalog.get_schedule_with_class(session, schedule_id, for_update=True)
        if snapshot is None or not snapshot.is_open or snapshot.seats_left <= 0:
            return None
        # Nobody can book a started class; waiting entries stay as they are
        if as_utc(snapshot.schedule.start_time) <= now:
            return None

        promoted = None
        for entry in self._waiting_entries(session, schedule_id, for_update=True):
            if entry.expires_at is not None and as_utc(entry.expires_at) <= now:
                self._resolve(entry, WaitlistStatus.EXPIRED, now)
                continue
            try:
                with session.begin_nested():
                    booking = self.engine.reserve_in_transaction(
                        session, entry.member_id, schedule_id, PROMOTION_NOTE, waitlist_entry_id=entry.id
                    )
            except BookingError as e:
                log_event("Waitlist entry skipped", {
                    "entry_id": entry.id,
                    "member_id": entry.member_id,
                    "reason": e.code.value,
                })
                self._resolve(entry, WaitlistStatus.EXPIRED, now)
                continue

            self._resolve(entry, WaitlistStatus.PROMOTED, now)
            entry.booking_id = booking.id
            promoted = (entry, booking)
            break

        self._renumber(session, schedule_id)
        return promoted

    def withdraw(self, session: Session, entry_id: str, acting_member_id: str, staff_override: bool = False) -> WaitlistEntry:
        """Take a waiting entry off the list and close the gap it leaves."""
        with start_span("withdraw_waitlist", attributes={"entry_id": entry_id}):
            entry = run_in_transaction(
                session,
                "withdraw_waitlist",
                lambda: self._withdraw_in_transaction(session, entry_id, acting_member_id, staff_override),
                {"entry_id": entry_id, "acting_member_id": acting_member_id},
            )
            log_event("Waitlist entry withdrawn", {
                "entry_id": entry_id,
                "member_id": entry.member_id,
                "schedule_id": entry.schedule_id,
            })
            return entry

    def _withdraw_in_transaction(self, session: Session, entry_id: str, acting_member_id: str, staff_override: bool) -> WaitlistEntry:
        now = self.engine.clock()
        entry = session.get(WaitlistEntry, entry_id)
        if entry is None:
            raise NotFoundError("Waitlist entry not found", {"entry_id": entry_id})

        self.engine.catalog.get_schedule_with_class(session, entry.schedule_id, for_update=True)
        entry = session.execute(
            select(WaitlistEntry)
            .where(WaitlistEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()
        WaitlistValidator.validate_withdraw(entry, entry_id, acting_member_id, staff_override)

        self._resolve(entry, WaitlistStatus.WITHDRAWN, now)
        self._renumber(session, entry.schedule_id)
        return entry

    def list_waiting(self, session: Session, schedule_id: str) -> List[WaitlistEntry]:
        try:
            with start_span("list_waiting", attributes={"schedule_id": schedule_id}):
                return self._waiting_entries(session, schedule_id)
        except SQLAlchemyError as e:
            log_exception(e, {"operation": "list_waiting", "schedule_id": schedule_id})
            raise BookingUnavailableError(context={"schedule_id": schedule_id}) from e
