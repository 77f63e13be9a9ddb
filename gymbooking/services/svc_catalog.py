from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gymbooking.configuration.monitor import log_event, log_exception, start_span
from gymbooking.models.mod_booking import Booking, BookingStatus
from gymbooking.models.mod_catalog import ClassDefinition, ClassSchedule, ScheduleStatus
from gymbooking.services.svc_errors import BookingUnavailableError


@dataclass
class ScheduleSnapshot:
    """A schedule, its class and the confirmed-booking count, read together."""
    schedule: ClassSchedule
    class_definition: ClassDefinition
    confirmed_count: int

    @property
    def effective_capacity(self) -> int:
        if self.schedule.capacity_override is not None:
            return self.schedule.capacity_override
        return self.class_definition.capacity or 0

    @property
    def seats_left(self) -> int:
        return max(self.effective_capacity - self.confirmed_count, 0)

    @property
    def is_open(self) -> bool:
        return self.schedule.status == ScheduleStatus.SCHEDULED.value and bool(self.class_definition.is_active)


class ClassCatalog:
    """Read-only access to class definitions and their scheduled occurrences."""

    @staticmethod
    def count_confirmed(session: Session, schedule_id: str) -> int:
        return session.execute(
            select(func.count(Booking.id)).where(
                Booking.schedule_id == schedule_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        ).scalar_one()

    def get_schedule_with_class(self, session: Session, schedule_id: str, for_update: bool = False) -> Optional[ScheduleSnapshot]:
        """
        Load a schedule with its class and the current confirmed count.

        With for_update the schedule row is locked until the caller's
        transaction ends, which serializes every seat change on that schedule.
        """
        query = select(ClassSchedule).where(ClassSchedule.id == schedule_id)
        if for_update:
            query = query.with_for_update()
        schedule = session.execute(query).scalars().first()
        if schedule is None:
            return None

        class_definition = session.get(ClassDefinition, schedule.class_id)
        if class_definition is None:
            return None

        return ScheduleSnapshot(
            schedule=schedule,
            class_definition=class_definition,
            confirmed_count=self.count_confirmed(session, schedule_id),
        )

    def list_available_classes(
        self,
        session: Session,
        start: datetime,
        end: datetime,
        gym_id: Optional[str] = None,
    ) -> List[ScheduleSnapshot]:
        """Scheduled occurrences of active classes starting in [start, end], with booked counts."""
        try:
            with start_span("list_available_classes", attributes={"gym_id": str(gym_id)}):
                booked = (
                    select(Booking.schedule_id, func.count(Booking.id).label("booked"))
                    .where(Booking.status == BookingStatus.CONFIRMED.value)
                    .group_by(Booking.schedule_id)
                    .subquery()
                )
                conditions = [
                    ClassDefinition.is_active.is_(True),
                    ClassSchedule.status == ScheduleStatus.SCHEDULED.value,
                    ClassSchedule.start_time >= start,
                    ClassSchedule.start_time <= end,
                ]
                if gym_id:
                    conditions.append(ClassDefinition.gym_id == gym_id)

                rows = session.execute(
                    select(ClassSchedule, ClassDefinition, func.coalesce(booked.c.booked, 0))
                    .join(ClassDefinition, ClassSchedule.class_id == ClassDefinition.id)
                    .outerjoin(booked, booked.c.schedule_id == ClassSchedule.id)
                    .where(and_(*conditions))
                    .order_by(ClassSchedule.start_time)
                ).all()

                snapshots = [
                    ScheduleSnapshot(schedule=schedule, class_definition=class_definition, confirmed_count=count)
                    for schedule, class_definition, count in rows
                ]
                log_event("Available classes retrieved", {"gym_id": gym_id, "count": len(snapshots)})
                return snapshots
        except SQLAlchemyError as e:
            log_exception(e, {"operation": "list_available_classes", "gym_id": gym_id})
            raise BookingUnavailableError(context={"gym_id": gym_id}) from e
