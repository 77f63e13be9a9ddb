import uuid
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from gymbooking.configuration.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ScheduleStatus(str, Enum):
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class ClassDefinition(Base):
    """Catalog entry maintained by gym staff. The booking core only reads it."""
    __tablename__ = "class_definitions"

    id = Column(String(36), primary_key=True, default=_new_id)
    gym_id = Column(String(36), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    capacity = Column(Integer, nullable=False, default=20)
    credits_required = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="check_class_capacity_non_negative"),
        CheckConstraint("credits_required >= 0", name="check_class_credits_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<ClassDefinition(id={self.id}, name={self.name}, capacity={self.capacity})>"


class ClassSchedule(Base):
    """One concrete occurrence of a class. Holds the class id, not the class object."""
    __tablename__ = "class_schedules"

    id = Column(String(36), primary_key=True, default=_new_id)
    class_id = Column(String(36), nullable=False, index=True)
    trainer_id = Column(String(36), nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    capacity_override = Column(Integer, nullable=True)
    price_override = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False, default=ScheduleStatus.SCHEDULED.value)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_class_schedules_start_time", "start_time"),
        CheckConstraint("status IN ('scheduled', 'cancelled', 'completed')", name="check_schedule_status"),
    )

    def __repr__(self) -> str:
        return f"<ClassSchedule(id={self.id}, class={self.class_id}, start={self.start_time}, status={self.status})>"
