from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from gymbooking.services.svc_catalog import ScheduleSnapshot

class AvailableClassResponse(BaseModel):
    schedule_id: str
    class_id: str
    class_name: str
    trainer_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    capacity: int
    booked_count: int
    available_spots: int
    credits_required: int
    is_full: bool

    @classmethod
    def from_snapshot(cls, snapshot: ScheduleSnapshot) -> "AvailableClassResponse":
        schedule = snapshot.schedule
        return cls(
            schedule_id=schedule.id,
            class_id=snapshot.class_definition.id,
            class_name=snapshot.class_definition.name,
            trainer_id=schedule.trainer_id,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            capacity=snapshot.effective_capacity,
            booked_count=snapshot.confirmed_count,
            available_spots=snapshot.seats_left,
            credits_required=snapshot.class_definition.credits_required or 0,
            is_full=snapshot.seats_left <= 0,
        )
