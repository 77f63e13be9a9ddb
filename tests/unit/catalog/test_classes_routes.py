import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from fastapi import FastAPI
from datetime import datetime, timedelta, timezone

from gymbooking.routers.rou_classes import router
from gymbooking.configuration.database import get_session
from gymbooking.dependencies.dep_auth import get_current_user
from gymbooking.dependencies.dep_booking import get_class_catalog
from gymbooking.models.mod_auth import AuthUser
from gymbooking.models.mod_catalog import ClassDefinition, ClassSchedule
from gymbooking.services.svc_catalog import ScheduleSnapshot
from gymbooking.services.svc_errors import BookingUnavailableError

app = FastAPI()
app.include_router(router)

START = datetime(2025, 6, 2, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_catalog():
    return MagicMock()


@pytest.fixture
def client(mock_catalog):
    app.dependency_overrides[get_session] = lambda: MagicMock()
    app.dependency_overrides[get_class_catalog] = lambda: mock_catalog
    app.dependency_overrides[get_current_user] = lambda: AuthUser(id="member-1")
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_snapshot(capacity=10, capacity_override=None, booked=0):
    definition = ClassDefinition(id="class-1", name="Spin", capacity=capacity, credits_required=1, is_active=True)
    schedule = ClassSchedule(
        id="schedule-1",
        class_id="class-1",
        trainer_id="trainer-1",
        start_time=START + timedelta(hours=2),
        end_time=START + timedelta(hours=3),
        capacity_override=capacity_override,
        status="scheduled",
    )
    return ScheduleSnapshot(schedule=schedule, class_definition=definition, confirmed_count=booked)


def test_available_classes(client, mock_catalog):
    mock_catalog.list_available_classes.return_value = [make_snapshot(capacity=10, capacity_override=3, booked=3)]

    response = client.get("/classes/available", params={
        "start": "2025-06-02T06:00:00Z",
        "end": "2025-06-03T06:00:00Z",
        "gym_id": "gym-1",
    })

    assert response.status_code == 200
    [item] = response.json()
    assert item["schedule_id"] == "schedule-1"
    assert item["capacity"] == 3
    assert item["booked_count"] == 3
    assert item["available_spots"] == 0
    assert item["is_full"] is True
    args = mock_catalog.list_available_classes.call_args.args
    assert args[1] == START
    assert args[3] == "gym-1"


def test_naive_times_are_utc(client, mock_catalog):
    mock_catalog.list_available_classes.return_value = []

    client.get("/classes/available", params={"start": "2025-06-02T06:00:00", "end": "2025-06-02T09:00:00"})

    assert mock_catalog.list_available_classes.call_args.args[1] == START


def test_offset_times_are_converted_to_utc(client, mock_catalog):
    mock_catalog.list_available_classes.return_value = []

    client.get("/classes/available", params={"start": "2025-06-02T08:00:00+02:00", "end": "2025-06-02T12:00:00+02:00"})

    args = mock_catalog.list_available_classes.call_args.args
    assert args[1] == START
    assert args[1].utcoffset() == timedelta(0)
    assert args[2] == START + timedelta(hours=4)


@pytest.mark.parametrize("start, end", [
    ("2025-06-02T06:00:00Z", "2025-06-01T06:00:00Z"),
    ("2025-06-01T06:00:00Z", "2025-08-01T06:00:00Z"),
])
def test_invalid_window(client, mock_catalog, start, end):
    response = client.get("/classes/available", params={"start": start, "end": end})

    assert response.status_code == 400
    mock_catalog.list_available_classes.assert_not_called()


def test_store_unavailable(client, mock_catalog):
    mock_catalog.list_available_classes.side_effect = BookingUnavailableError()

    response = client.get("/classes/available", params={
        "start": "2025-06-02T06:00:00Z",
        "end": "2025-06-03T06:00:00Z",
    })

    assert response.status_code == 503
