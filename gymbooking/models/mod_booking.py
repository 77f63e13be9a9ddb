import uuid
from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text, text
from sqlalchemy.sql import func

from gymbooking.configuration.database import Base


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"  # set by the attendance process, never by this service


class Booking(Base):
    """
    A member's seat in a scheduled class.

    Rows are never deleted; cancellation is a status change kept for audit.
    """
    __tablename__ = "class_bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    member_id = Column(String(36), nullable=False, index=True)
    schedule_id = Column(String(36), nullable=False, index=True)
    membership_id = Column(String(36), nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    credits_used = Column(Integer, nullable=False, default=0)
    member_notes = Column(Text, nullable=True)
    waitlist_entry_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(36), nullable=True)

    __table_args__ = (
        # One confirmed booking per member per schedule; cancelled rows may repeat
        Index(
            "uq_class_bookings_member_schedule_confirmed",
            "member_id",
            "schedule_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
        Index("idx_class_bookings_schedule_status", "schedule_id", "status"),
        CheckConstraint("credits_used >= 0", name="check_booking_credits_non_negative"),
        CheckConstraint("status IN ('confirmed', 'cancelled', 'completed')", name="check_booking_status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, member={self.member_id}, schedule={self.schedule_id}, status={self.status})>"
