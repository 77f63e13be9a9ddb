from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from gymbooking.schemas.sch_waitlist import WaitlistJoin, WaitlistEntryResponse, PromotionResponse
from gymbooking.services.svc_waitlist import WaitlistManager
from gymbooking.configuration.database import get_session
from gymbooking.dependencies.dep_auth import get_current_user, get_current_staff
from gymbooking.dependencies.dep_booking import get_waitlist_manager
from gymbooking.models.mod_auth import AuthUser
from gymbooking.routers.rou_errors import ERROR_RESPONSES, booking_errors_as_http
from typing import List

router = APIRouter(
    prefix="/waitlist",
    tags=["Waitlist"],
    responses=ERROR_RESPONSES,
)

@router.post('/', response_model=WaitlistEntryResponse, status_code=201)
def join_waitlist(
    request: WaitlistJoin,
    session: Session = Depends(get_session),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Join the waitlist of a full class.

    - Only full classes have a waitlist; a class with free seats answers `not_full`
    - Members are promoted in the order they joined when a seat frees up
    """
    with booking_errors_as_http():
        return waitlist.join(session, current_user.id, request.schedule_id)

@router.post('/{entry_id}/withdraw', response_model=WaitlistEntryResponse)
def withdraw_from_waitlist(
    entry_id: str,
    session: Session = Depends(get_session),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Leave a waitlist. Members behind the withdrawn entry move up one position.
    """
    with booking_errors_as_http():
        return waitlist.withdraw(session, entry_id, current_user.id, staff_override=current_user.is_staff)

@router.get('/schedules/{schedule_id}', response_model=List[WaitlistEntryResponse])
def get_schedule_waitlist(
    schedule_id: str,
    session: Session = Depends(get_session),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
    current_staff: AuthUser = Depends(get_current_staff)
):
    """
    Get the waiting members of a class in promotion order. Staff and admins only.
    """
    with booking_errors_as_http():
        return waitlist.list_waiting(session, schedule_id)

@router.post('/schedules/{schedule_id}/promote', response_model=PromotionResponse)
def promote_from_waitlist(
    schedule_id: str,
    session: Session = Depends(get_session),
    waitlist: WaitlistManager = Depends(get_waitlist_manager),
    current_staff: AuthUser = Depends(get_current_staff)
):
    """
    Offer any free seat of a class to its waitlist. Staff and admins only.

    - Safe to repeat: with no free seat or nobody waiting nothing happens
    """
    with booking_errors_as_http():
        entry = waitlist.promote_next(session, schedule_id)
    return PromotionResponse(
        schedule_id=schedule_id,
        promoted=WaitlistEntryResponse.model_validate(entry) if entry else None
    )
