from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy.orm import Session
from gymbooking.schemas.sch_booking import BookingCreate, BookingCancel, BookingResponse, EligibilityResponse
from gymbooking.services.svc_booking import BookingEngine
from gymbooking.configuration.database import get_session
from gymbooking.dependencies.dep_auth import get_current_user
from gymbooking.dependencies.dep_booking import get_booking_engine
from gymbooking.models.mod_auth import AuthUser
from gymbooking.routers.rou_errors import ERROR_RESPONSES, booking_errors_as_http
from typing import List

router = APIRouter(
    prefix="/bookings",
    tags=["Bookings"],
    responses=ERROR_RESPONSES,
)

@router.get('/eligibility', response_model=EligibilityResponse)
def check_eligibility(
    schedule_id: str = Query(..., description="Class schedule to check"),
    session: Session = Depends(get_session),
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Check whether the authenticated member can book a class right now.

    - Never changes anything
    - `reason` is one of: not_found, schedule_closed, already_started, duplicate_booking,
      no_active_membership, class_full, insufficient_credits
    - A `class_full` answer means the member can join the waitlist instead
    """
    with booking_errors_as_http():
        result = engine.check_eligibility(session, current_user.id, schedule_id)
    return EligibilityResponse(
        schedule_id=schedule_id,
        eligible=result.eligible,
        reason=result.reason.value if result.reason else None,
        message=result.message
    )

@router.post('/', response_model=BookingResponse, status_code=201)
def create_booking(
    booking: BookingCreate,
    session: Session = Depends(get_session),
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Book a seat in a scheduled class for the authenticated member.

    - Debits the class's credits from the member's active membership (unlimited plans are not debited)
    - Fails with a 409 and a reason code when a booking rule rejects the request
    """
    with booking_errors_as_http():
        return engine.reserve(session, current_user.id, booking.schedule_id, booking.notes)

@router.get('/members/{member_id}/upcoming', response_model=List[BookingResponse])
def get_member_upcoming_bookings(
    member_id: str,
    session: Session = Depends(get_session),
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Get all upcoming confirmed bookings of a member, ordered by class start time.

    - Members can only view their own bookings
    - Staff and admins can view any member's bookings
    """
    if not current_user.is_staff and current_user.id != member_id:
        raise HTTPException(
            status_code=403,
            detail="You can only view your own bookings"
        )
    with booking_errors_as_http():
        return engine.list_member_bookings(session, member_id, upcoming=True)

@router.get('/members/{member_id}/past', response_model=List[BookingResponse])
def get_member_past_bookings(
    member_id: str,
    session: Session = Depends(get_session),
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Get the bookings of a member for classes that already started, most recent first.

    - Members can only view their own bookings
    - Staff and admins can view any member's bookings
    """
    if not current_user.is_staff and current_user.id != member_id:
        raise HTTPException(
            status_code=403,
            detail="You can only view your own bookings"
        )
    with booking_errors_as_http():
        return engine.list_member_bookings(session, member_id, upcoming=False)

@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: str,
    session: Session = Depends(get_session),
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Get details of a specific booking by its ID.
    - Members can only view their own bookings
    - Staff and admins can view all bookings
    """
    with booking_errors_as_http():
        booking = engine.get_booking(session, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail='Booking not found')

    if current_user.is_staff or booking.member_id == current_user.id:
        return booking
    raise HTTPException(
        status_code=403,
        detail="You don't have permission to view this booking"
    )

@router.post('/{booking_id}/cancel', response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    cancellation: BookingCancel = None,
    session: Session = Depends(get_session),
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: AuthUser = Depends(get_current_user)
):
    """
    Cancel a confirmed booking.

    - Changes booking status to 'cancelled' and refunds the credits it used
    - Only allowed until the gym's cancellation cutoff before class start
    - Members can only cancel their own bookings; staff and admins can cancel any booking
    - The freed seat is offered to the class waitlist right away
    """
    reason = cancellation.reason if cancellation else None
    with booking_errors_as_http():
        return engine.cancel(
            session,
            booking_id,
            current_user.id,
            staff_override=current_user.is_staff,
            reason=reason
        )
