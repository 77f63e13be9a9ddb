from enum import Enum
from typing import Any, Dict, List, Tuple

from gymbooking.configuration.monitor import log_event, log_exception


class BookingEvents(str, Enum):
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_CANCELLED = "booking.cancelled"
    WAITLIST_PROMOTED = "waitlist.promoted"


EVENT_FIELDS = {
    BookingEvents.BOOKING_CONFIRMED: ("booking_id", "member_id", "schedule_id"),
    BookingEvents.BOOKING_CANCELLED: ("booking_id",),
    BookingEvents.WAITLIST_PROMOTED: ("entry_id", "booking_id"),
}


class Notifier:
    """
    Hands booking events to the real-time relay.

    Publishing is fire-and-forget: a delivery failure is logged and never
    interrupts the booking flow that already committed.
    """

    def publish(self, event_type: BookingEvents, payload: Dict[str, Any]) -> bool:
        missing = [field for field in EVENT_FIELDS[event_type] if field not in payload]
        if missing:
            raise ValueError(f"Event {event_type.value} missing fields: {', '.join(missing)}")
        try:
            self._deliver(event_type, payload)
            return True
        except Exception as e:
            log_exception(e, {"operation": "publish_event", "event_type": event_type.value})
            return False

    def _deliver(self, event_type: BookingEvents, payload: Dict[str, Any]) -> None:
        log_event(event_type.value, payload)


class RecordingNotifier(Notifier):
    """Keeps published events in memory, in order."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def _deliver(self, event_type: BookingEvents, payload: Dict[str, Any]) -> None:
        self.events.append((event_type.value, dict(payload)))

    def of_type(self, event_type: BookingEvents) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event_type.value]
