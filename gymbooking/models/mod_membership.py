import uuid
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Index, Integer, String
from sqlalchemy.sql import func

from gymbooking.configuration.database import Base


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    FROZEN = "frozen"


class Membership(Base):
    """
    A member's subscription instance and its class-credit ledger.

    class_credits_remaining is NULL for unlimited plans.
    """
    __tablename__ = "member_memberships"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    member_id = Column(String(36), nullable=False)
    plan_name = Column(String(100), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    class_credits_remaining = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=MembershipStatus.ACTIVE.value)
    is_frozen = Column(Boolean, nullable=False, default=False)
    frozen_until = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_member_memberships_member_status", "member_id", "status"),
        CheckConstraint(
            "class_credits_remaining IS NULL OR class_credits_remaining >= 0",
            name="check_membership_credits_non_negative",
        ),
    )

    @property
    def is_unlimited(self) -> bool:
        return self.class_credits_remaining is None

    def __repr__(self) -> str:
        return f"<Membership(id={self.id}, member={self.member_id}, credits={self.class_credits_remaining}, status={self.status})>"
