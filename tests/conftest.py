import pytest
from datetime import date, datetime, timedelta, timezone
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from gymbooking.configuration.config import BookingPolicy
from gymbooking.configuration.database import build_engine, create_schema
from gymbooking.models.mod_booking import Booking, BookingStatus
from gymbooking.models.mod_catalog import ClassDefinition, ClassSchedule
from gymbooking.models.mod_membership import Membership
from gymbooking.models.mod_waitlist import WaitlistEntry
from gymbooking.services.svc_booking import BookingEngine
from gymbooking.services.svc_catalog import ClassCatalog
from gymbooking.services.svc_ledger import MembershipLedger
from gymbooking.services.svc_notifier import RecordingNotifier
from gymbooking.services.svc_waitlist import WaitlistManager

NOW = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class Seeder:
    """Writes fixture rows through short-lived sessions, like staff tools would."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _add(self, row):
        with self.session_factory() as session:
            session.add(row)
            session.commit()
            return row.id

    def class_definition(self, capacity=10, credits_required=1, is_active=True, gym_id="gym-1", name="Spin"):
        return self._add(ClassDefinition(
            name=name,
            gym_id=gym_id,
            capacity=capacity,
            credits_required=credits_required,
            is_active=is_active,
            duration_minutes=45,
        ))

    def schedule(self, class_id, start=None, capacity_override=None, status="scheduled"):
        start = start or NOW + timedelta(days=1)
        return self._add(ClassSchedule(
            class_id=class_id,
            start_time=start,
            end_time=start + timedelta(minutes=45),
            capacity_override=capacity_override,
            status=status,
        ))

    def class_with_schedule(self, capacity=10, credits_required=1, start=None):
        class_id = self.class_definition(capacity=capacity, credits_required=credits_required)
        return self.schedule(class_id, start=start)

    def membership(self, member_id, credits=5, status="active", is_frozen=False, start_date=date(2020, 1, 1), end_date=None):
        return self._add(Membership(
            member_id=member_id,
            plan_name="Test plan",
            start_date=start_date,
            end_date=end_date,
            class_credits_remaining=credits,
            status=status,
            is_frozen=is_frozen,
        ))

    def update_membership(self, membership_id, **fields):
        with self.session_factory() as session:
            membership = session.get(Membership, membership_id)
            for key, value in fields.items():
                setattr(membership, key, value)
            session.commit()

    def credits(self, membership_id):
        with self.session_factory() as session:
            return session.get(Membership, membership_id).class_credits_remaining

    def confirmed_count(self, schedule_id):
        with self.session_factory() as session:
            return session.execute(
                select(func.count(Booking.id)).where(
                    Booking.schedule_id == schedule_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
            ).scalar_one()

    def bookings(self, schedule_id):
        with self.session_factory() as session:
            return list(session.execute(
                select(Booking).where(Booking.schedule_id == schedule_id)
            ).scalars().all())

    def waitlist(self, schedule_id):
        with self.session_factory() as session:
            return list(session.execute(
                select(WaitlistEntry)
                .where(WaitlistEntry.schedule_id == schedule_id)
                .order_by(WaitlistEntry.joined_at, WaitlistEntry.position)
            ).scalars().all())


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'gymbooking.db'}", echo=False)
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    db_session = session_factory()
    yield db_session
    db_session.close()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy():
    return BookingPolicy(cancellation_cutoff=timedelta(hours=2), waitlist_entry_ttl=None)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(notifier, policy, clock):
    return BookingEngine(
        ledger=MembershipLedger(),
        catalog=ClassCatalog(),
        notifier=notifier,
        policy=policy,
        clock=clock,
    )


@pytest.fixture
def waitlist(engine):
    return WaitlistManager(engine)
