from datetime import datetime, timedelta
from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.orm import Session
from gymbooking.schemas.sch_catalog import AvailableClassResponse
from gymbooking.services.svc_catalog import ClassCatalog
from gymbooking.configuration.database import get_session
from gymbooking.configuration.timeutils import as_utc
from gymbooking.dependencies.dep_auth import get_current_user
from gymbooking.dependencies.dep_booking import get_class_catalog
from gymbooking.models.mod_auth import AuthUser
from gymbooking.routers.rou_errors import ERROR_RESPONSES, booking_errors_as_http
from typing import List, Optional

MAX_WINDOW_DAYS = 31

router = APIRouter(
    prefix="/classes",
    tags=["Classes"],
    responses=ERROR_RESPONSES,
)

@router.get('/available', response_model=List[AvailableClassResponse])
def get_available_classes(
    start: datetime = Query(..., description="Window start in ISO 8601 format (e.g. 2025-03-11T06:00:00Z)"),
    end: datetime = Query(..., description="Window end in ISO 8601 format"),
    gym_id: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    catalog: ClassCatalog = Depends(get_class_catalog),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    List scheduled classes starting inside a time window, with booked and free seats.

    - Only active classes in 'scheduled' state are listed, ordered by start time
    - The window may span at most 31 days
    """
    start = as_utc(start)
    end = as_utc(end)
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    if end - start > timedelta(days=MAX_WINDOW_DAYS):
        raise HTTPException(status_code=400, detail=f"The window may span at most {MAX_WINDOW_DAYS} days")

    with booking_errors_as_http():
        snapshots = catalog.list_available_classes(session, start, end, gym_id)
    return [AvailableClassResponse.from_snapshot(snapshot) for snapshot in snapshots]
