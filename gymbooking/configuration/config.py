import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing or malformed"""

class Config:
    # Relational store
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gymbooking.db")
    DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"
    DATABASE_LOCK_TIMEOUT_SECONDS = int(os.getenv("DATABASE_LOCK_TIMEOUT_SECONDS", "30"))

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv("AUTH_SECRET_KEY")
    JWT_ALGORITHM = os.getenv("AUTH_ALGORITHM", "HS256")

    # Booking policy (required, see BookingPolicy.from_config)
    BOOKING_CANCELLATION_CUTOFF_MINUTES = os.getenv("BOOKING_CANCELLATION_CUTOFF_MINUTES")
    WAITLIST_ENTRY_TTL_MINUTES = os.getenv("WAITLIST_ENTRY_TTL_MINUTES")

    # Application Insights
    APPLICATIONINSIGHTS_CONNECTION_STRING = os.getenv("APPINSIGHTS_INSTRUMENTATIONKEY")


@dataclass(frozen=True)
class BookingPolicy:
    """
    Gym-level booking rules supplied by configuration.

    cancellation_cutoff: how long before class start a member may still cancel.
    waitlist_entry_ttl: how long a waitlist entry stays eligible for promotion,
        None when entries never expire by time.
    """
    cancellation_cutoff: timedelta
    waitlist_entry_ttl: Optional[timedelta]

    @classmethod
    def from_config(cls, config=Config) -> "BookingPolicy":
        cutoff_raw = config.BOOKING_CANCELLATION_CUTOFF_MINUTES
        ttl_raw = config.WAITLIST_ENTRY_TTL_MINUTES
        if cutoff_raw is None or not str(cutoff_raw).strip():
            raise ConfigurationError("BOOKING_CANCELLATION_CUTOFF_MINUTES is not set")
        if ttl_raw is None or not str(ttl_raw).strip():
            raise ConfigurationError(
                "WAITLIST_ENTRY_TTL_MINUTES is not set (use 'never' to disable expiry)"
            )

        cutoff = _parse_minutes("BOOKING_CANCELLATION_CUTOFF_MINUTES", cutoff_raw)
        if str(ttl_raw).strip().lower() == "never":
            ttl = None
        else:
            ttl = _parse_minutes("WAITLIST_ENTRY_TTL_MINUTES", ttl_raw)
            if ttl <= timedelta(0):
                raise ConfigurationError("WAITLIST_ENTRY_TTL_MINUTES must be positive or 'never'")
        return cls(cancellation_cutoff=cutoff, waitlist_entry_ttl=ttl)


def _parse_minutes(name: str, raw) -> timedelta:
    try:
        minutes = int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer number of minutes, got {raw!r}")
    if minutes < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return timedelta(minutes=minutes)
