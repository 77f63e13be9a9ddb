import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from fastapi import FastAPI
from datetime import datetime, timedelta, timezone

from gymbooking.routers.rou_booking import router
from gymbooking.configuration.database import get_session
from gymbooking.dependencies.dep_auth import get_current_user
from gymbooking.dependencies.dep_booking import get_booking_engine
from gymbooking.models.mod_auth import AuthUser, UserRole
from gymbooking.models.mod_booking import Booking, BookingStatus
from gymbooking.services.svc_booking import EligibilityResult
from gymbooking.services.svc_errors import (
    BookingUnavailableError,
    ClassFullError,
    CutoffPassedError,
    NotFoundError,
    NotOwnerError,
    ReasonCode,
)

app = FastAPI()
app.include_router(router)

MEMBER = AuthUser(id="member-1", email="member@example.com", name="Test Member")
OTHER_MEMBER = AuthUser(id="member-2", email="other@example.com", name="Other Member")
STAFF = AuthUser(id="staff-1", email="staff@example.com", name="Front Desk", role=UserRole.STAFF)


@pytest.fixture
def mock_engine():
    return MagicMock()


@pytest.fixture
def mock_session():
    return MagicMock()


@pytest.fixture
def as_user(mock_engine, mock_session):
    """Returns a function that builds a client authenticated as the given user"""
    def build(user: AuthUser) -> TestClient:
        app.dependency_overrides[get_session] = lambda: mock_session
        app.dependency_overrides[get_booking_engine] = lambda: mock_engine
        app.dependency_overrides[get_current_user] = lambda: user
        return TestClient(app)

    yield build
    app.dependency_overrides.clear()


@pytest.fixture
def sample_booking():
    return Booking(
        id="booking-1",
        member_id=MEMBER.id,
        schedule_id="schedule-1",
        membership_id="membership-1",
        status=BookingStatus.CONFIRMED.value,
        credits_used=1,
        member_notes="First class",
        created_at=datetime.now(timezone.utc),
    )


def test_create_booking_success(as_user, mock_engine, mock_session, sample_booking):
    mock_engine.reserve.return_value = sample_booking

    response = as_user(MEMBER).post("/bookings/", json={"schedule_id": "schedule-1", "notes": "First class"})

    assert response.status_code == 201
    data = response.json()
    assert data["id"] == "booking-1"
    assert data["status"] == "confirmed"
    assert data["credits_used"] == 1
    mock_engine.reserve.assert_called_once_with(mock_session, MEMBER.id, "schedule-1", "First class")


def test_create_booking_rule_rejection(as_user, mock_engine):
    mock_engine.reserve.side_effect = ClassFullError(context={"schedule_id": "schedule-1"})

    response = as_user(MEMBER).post("/bookings/", json={"schedule_id": "schedule-1"})

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == ReasonCode.CLASS_FULL.value
    assert detail["message"] == ClassFullError.default_message
    assert detail["context"] == {"schedule_id": "schedule-1"}


def test_create_booking_store_unavailable(as_user, mock_engine):
    mock_engine.reserve.side_effect = BookingUnavailableError(context={"schedule_id": "schedule-1"})

    response = as_user(MEMBER).post("/bookings/", json={"schedule_id": "schedule-1"})

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["detail"]["code"] == ReasonCode.UNAVAILABLE.value


def test_create_booking_rejects_long_notes(as_user, mock_engine):
    response = as_user(MEMBER).post("/bookings/", json={"schedule_id": "schedule-1", "notes": "x" * 1001})

    assert response.status_code == 422
    mock_engine.reserve.assert_not_called()


def test_check_eligibility(as_user, mock_engine, mock_session):
    mock_engine.check_eligibility.return_value = EligibilityResult(
        eligible=False, reason=ReasonCode.CLASS_FULL, message="Class is full"
    )

    response = as_user(MEMBER).get("/bookings/eligibility", params={"schedule_id": "schedule-1"})

    assert response.status_code == 200
    assert response.json() == {
        "schedule_id": "schedule-1",
        "eligible": False,
        "reason": "class_full",
        "message": "Class is full",
    }
    mock_engine.check_eligibility.assert_called_once_with(mock_session, MEMBER.id, "schedule-1")


def test_check_eligibility_ok(as_user, mock_engine):
    mock_engine.check_eligibility.return_value = EligibilityResult(eligible=True)

    response = as_user(MEMBER).get("/bookings/eligibility", params={"schedule_id": "schedule-1"})

    assert response.json()["eligible"] is True
    assert response.json()["reason"] is None


def test_get_booking_owner(as_user, mock_engine, sample_booking):
    mock_engine.get_booking.return_value = sample_booking

    response = as_user(MEMBER).get("/bookings/booking-1")

    assert response.status_code == 200
    assert response.json()["member_id"] == MEMBER.id


def test_get_booking_other_member_forbidden(as_user, mock_engine, sample_booking):
    mock_engine.get_booking.return_value = sample_booking

    response = as_user(OTHER_MEMBER).get("/bookings/booking-1")

    assert response.status_code == 403


def test_get_booking_staff_allowed(as_user, mock_engine, sample_booking):
    mock_engine.get_booking.return_value = sample_booking

    assert as_user(STAFF).get("/bookings/booking-1").status_code == 200


def test_get_booking_not_found(as_user, mock_engine):
    mock_engine.get_booking.return_value = None

    response = as_user(MEMBER).get("/bookings/missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Booking not found"


def test_get_upcoming_bookings(as_user, mock_engine, mock_session, sample_booking):
    mock_engine.list_member_bookings.return_value = [sample_booking]

    response = as_user(MEMBER).get(f"/bookings/members/{MEMBER.id}/upcoming")

    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == ["booking-1"]
    mock_engine.list_member_bookings.assert_called_once_with(mock_session, MEMBER.id, upcoming=True)


def test_get_past_bookings_of_other_member_forbidden(as_user, mock_engine):
    response = as_user(OTHER_MEMBER).get(f"/bookings/members/{MEMBER.id}/past")

    assert response.status_code == 403
    mock_engine.list_member_bookings.assert_not_called()


def test_staff_can_list_member_past_bookings(as_user, mock_engine, mock_session):
    mock_engine.list_member_bookings.return_value = []

    response = as_user(STAFF).get(f"/bookings/members/{MEMBER.id}/past")

    assert response.status_code == 200
    assert response.json() == []
    mock_engine.list_member_bookings.assert_called_once_with(mock_session, MEMBER.id, upcoming=False)


def test_cancel_booking(as_user, mock_engine, mock_session, sample_booking):
    sample_booking.status = BookingStatus.CANCELLED.value
    sample_booking.cancelled_at = datetime.now(timezone.utc)
    sample_booking.cancellation_reason = "Sick"
    mock_engine.cancel.return_value = sample_booking

    response = as_user(MEMBER).post("/bookings/booking-1/cancel", json={"reason": "Sick"})

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Sick"
    mock_engine.cancel.assert_called_once_with(
        mock_session, "booking-1", MEMBER.id, staff_override=False, reason="Sick"
    )


def test_cancel_booking_without_body(as_user, mock_engine, mock_session, sample_booking):
    mock_engine.cancel.return_value = sample_booking

    response = as_user(STAFF).post("/bookings/booking-1/cancel")

    assert response.status_code == 200
    mock_engine.cancel.assert_called_once_with(
        mock_session, "booking-1", STAFF.id, staff_override=True, reason=None
    )


@pytest.mark.parametrize("error, status_code", [
    (NotFoundError("Booking not found", {"booking_id": "booking-1"}), 404),
    (NotOwnerError(), 403),
    (CutoffPassedError(context={"cutoff": timedelta(hours=2)}), 409),
])
def test_cancel_booking_errors(as_user, mock_engine, error, status_code):
    mock_engine.cancel.side_effect = error

    response = as_user(MEMBER).post("/bookings/booking-1/cancel")

    assert response.status_code == status_code
    detail = response.json()["detail"]
    assert detail["code"] == error.code.value
    assert detail["message"] == error.message
