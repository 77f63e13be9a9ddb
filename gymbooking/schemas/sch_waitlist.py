from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class WaitlistJoin(BaseModel):
    schedule_id: str

class WaitlistEntryResponse(BaseModel):
    id: str
    member_id: str
    schedule_id: str
    position: int
    status: str
    joined_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    booking_id: Optional[str] = None

    class Config:
        from_attributes = True

class PromotionResponse(BaseModel):
    schedule_id: str
    promoted: Optional[WaitlistEntryResponse] = None
