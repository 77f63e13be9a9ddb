from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class BookingCreate(BaseModel):
    schedule_id: str
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Optional note for the trainer"
    )

class BookingCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)

class BookingResponse(BaseModel):
    id: str
    member_id: str
    schedule_id: str
    status: str
    credits_used: int
    member_notes: Optional[str] = None
    waitlist_entry_id: Optional[str] = None
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    class Config:
        from_attributes = True

class EligibilityResponse(BaseModel):
    schedule_id: str
    eligible: bool
    reason: Optional[str] = None
    message: Optional[str] = None
