from functools import lru_cache
from typing import Optional, Tuple

from gymbooking.configuration.config import BookingPolicy
from gymbooking.services.svc_booking import BookingEngine
from gymbooking.services.svc_catalog import ClassCatalog
from gymbooking.services.svc_ledger import MembershipLedger
from gymbooking.services.svc_notifier import Notifier
from gymbooking.services.svc_waitlist import WaitlistManager


def build_booking_services(policy: BookingPolicy, notifier: Optional[Notifier] = None) -> Tuple[BookingEngine, WaitlistManager]:
    """Wire the booking engine and its waitlist together."""
    engine = BookingEngine(
        ledger=MembershipLedger(),
        catalog=ClassCatalog(),
        notifier=notifier or Notifier(),
        policy=policy,
    )
    return engine, WaitlistManager(engine)


@lru_cache(maxsize=1)
def _booking_services() -> Tuple[BookingEngine, WaitlistManager]:
    return build_booking_services(BookingPolicy.from_config())


def get_booking_engine() -> BookingEngine:
    """Dependency that provides the process-wide booking engine (stateless apart from configuration)"""
    return _booking_services()[0]


def get_waitlist_manager() -> WaitlistManager:
    return _booking_services()[1]


def get_class_catalog() -> ClassCatalog:
    return get_booking_engine().catalog
