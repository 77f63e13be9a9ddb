import pytest
from datetime import timedelta
from types import SimpleNamespace

from gymbooking.configuration.config import BookingPolicy, ConfigurationError


def settings(cutoff="120", ttl="never"):
    return SimpleNamespace(BOOKING_CANCELLATION_CUTOFF_MINUTES=cutoff, WAITLIST_ENTRY_TTL_MINUTES=ttl)


def test_policy_from_minutes():
    policy = BookingPolicy.from_config(settings(cutoff="90", ttl="1440"))

    assert policy.cancellation_cutoff == timedelta(minutes=90)
    assert policy.waitlist_entry_ttl == timedelta(days=1)


def test_ttl_never_disables_expiry():
    policy = BookingPolicy.from_config(settings(ttl=" Never "))

    assert policy.waitlist_entry_ttl is None


def test_zero_cutoff_is_allowed():
    assert BookingPolicy.from_config(settings(cutoff="0")).cancellation_cutoff == timedelta(0)


@pytest.mark.parametrize("cutoff, ttl, message", [
    (None, "60", "BOOKING_CANCELLATION_CUTOFF_MINUTES is not set"),
    ("  ", "60", "BOOKING_CANCELLATION_CUTOFF_MINUTES is not set"),
    ("60", None, "WAITLIST_ENTRY_TTL_MINUTES is not set"),
    ("two hours", "60", "must be an integer"),
    ("-5", "60", "must not be negative"),
    ("60", "0", "must be positive"),
])
def test_invalid_settings(cutoff, ttl, message):
    with pytest.raises(ConfigurationError) as exc_info:
        BookingPolicy.from_config(settings(cutoff=cutoff, ttl=ttl))

    assert message in str(exc_info.value)
