from datetime import date
from typing import Callable, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from gymbooking.configuration.monitor import log_event
from gymbooking.configuration.timeutils import utcnow
from gymbooking.models.mod_membership import Membership, MembershipStatus
from gymbooking.services.svc_errors import InsufficientCreditsError, NotFoundError


class MembershipLedger:
    """
    Reads a member's active subscription and moves class credits on it.

    Callers own the transaction: nothing here commits.
    """

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self._today = today or (lambda: utcnow().date())

    def get_active_membership(self, session: Session, member_id: str, for_update: bool = False) -> Optional[Membership]:
        """
        Return the member's current active membership, or None.

        Active means status 'active', not frozen, started on or before today and
        not ended before today. The most recently started one wins.
        """
        today = self._today()
        query = (
            select(Membership)
            .where(
                Membership.member_id == member_id,
                Membership.status == MembershipStatus.ACTIVE.value,
                Membership.is_frozen.is_(False),
                Membership.start_date <= today,
                or_(Membership.end_date.is_(None), Membership.end_date >= today),
            )
            .order_by(Membership.start_date.desc(), Membership.id)
            .limit(1)
        )
        if for_update:
            query = query.with_for_update()
        return session.execute(query).scalars().first()

    def adjust_credits(self, session: Session, membership_id: str, delta: int) -> Membership:
        """
        Add `delta` credits (negative on reserve, positive on refund).

        Unlimited memberships are left untouched. The balance never goes below
        zero: such a debit raises InsufficientCreditsError and changes nothing.
        """
        membership = session.execute(
            select(Membership).where(Membership.id == membership_id).with_for_update()
        ).scalars().first()
        if membership is None:
            raise NotFoundError("Membership not found", {"membership_id": membership_id})

        if membership.is_unlimited or delta == 0:
            return membership

        new_balance = membership.class_credits_remaining + delta
        if new_balance < 0:
            raise InsufficientCreditsError(context={
                "membership_id": membership_id,
                "remaining": membership.class_credits_remaining,
                "required": -delta,
            })

        membership.class_credits_remaining = new_balance
        session.flush()
        log_event("Membership credits adjusted", {
            "membership_id": membership_id,
            "member_id": membership.member_id,
            "delta": delta,
            "remaining": new_balance,
        })
        return membership
