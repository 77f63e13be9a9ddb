from typing import Any, Callable, Dict, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from gymbooking.configuration.database import atomic
from gymbooking.configuration.monitor import log_exception, log_metric
from gymbooking.services.svc_errors import BookingError, BookingUnavailableError

T = TypeVar("T")

MAX_TRANSACTION_ATTEMPTS = 3

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}
RETRYABLE_MESSAGES = ("deadlock detected", "could not serialize access", "database is locked")


def is_retryable(exc: OperationalError) -> bool:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in RETRYABLE_SQLSTATES:
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


def run_in_transaction(
    session: Session,
    operation: str,
    work: Callable[[], T],
    properties: Optional[Dict[str, Any]] = None,
    integrity_error: Optional[Type[BookingError]] = None,
) -> T:
    """
    Run `work` as one all-or-nothing transaction on `session`.

    Serialization conflicts and deadlocks are retried up to
    MAX_TRANSACTION_ATTEMPTS times; `work` re-reads and re-validates on every
    attempt. Rule rejections (BookingError) are never retried. A unique-index
    violation is reported as `integrity_error` when given. Any other storage
    failure surfaces as BookingUnavailableError after rollback.
    """
    properties = dict(properties or {})
    properties["operation"] = operation

    for attempt in range(1, MAX_TRANSACTION_ATTEMPTS + 1):
        try:
            with atomic(session):
                return work()
        except BookingError as e:
            log_exception(e, properties)
            raise
        except IntegrityError as e:
            if integrity_error is not None:
                error = integrity_error(context={k: v for k, v in properties.items() if k != "operation"})
                log_exception(error, properties)
                raise error from e
            log_exception(e, properties)
            raise BookingUnavailableError(context=properties) from e
        except OperationalError as e:
            if is_retryable(e) and attempt < MAX_TRANSACTION_ATTEMPTS:
                log_metric("booking.transaction_retry", attempt, properties)
                continue
            log_exception(e, {**properties, "attempts": attempt})
            raise BookingUnavailableError(context=properties) from e
        except SQLAlchemyError as e:
            log_exception(e, properties)
            raise BookingUnavailableError(context=properties) from e

    raise BookingUnavailableError(context=properties)
