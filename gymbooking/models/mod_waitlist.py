import uuid
from enum import Enum

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, text
from sqlalchemy.sql import func

from gymbooking.configuration.database import Base


class WaitlistStatus(str, Enum):
    WAITING = "waiting"
    NOTIFIED = "notified"
    EXPIRED = "expired"
    PROMOTED = "promoted"
    WITHDRAWN = "withdrawn"


class WaitlistEntry(Base):
    """A member queued for a full schedule. Positions of waiting entries run 1..n."""
    __tablename__ = "class_waitlists"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    member_id = Column(String(36), nullable=False, index=True)
    schedule_id = Column(String(36), nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=WaitlistStatus.WAITING.value)
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    booking_id = Column(String(36), nullable=True)

    __table_args__ = (
        Index(
            "uq_class_waitlists_member_schedule_waiting",
            "member_id",
            "schedule_id",
            unique=True,
            postgresql_where=text("status = 'waiting'"),
            sqlite_where=text("status = 'waiting'"),
        ),
        Index("idx_class_waitlists_schedule_status_position", "schedule_id", "status", "position"),
        CheckConstraint("position >= 1", name="check_waitlist_position_positive"),
        CheckConstraint(
            "status IN ('waiting', 'notified', 'expired', 'promoted', 'withdrawn')",
            name="check_waitlist_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<WaitlistEntry(id={self.id}, member={self.member_id}, schedule={self.schedule_id}, position={self.position}, status={self.status})>"
