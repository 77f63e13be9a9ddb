from contextlib import contextmanager

from fastapi import HTTPException, status

from gymbooking.schemas.sch_errors import ErrorResponse
from gymbooking.services.svc_errors import BookingError, BookingUnavailableError, ReasonCode

STATUS_BY_CODE = {
    ReasonCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ReasonCode.NOT_OWNER: status.HTTP_403_FORBIDDEN,
    ReasonCode.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

ERROR_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Acting on someone else's booking or entry"},
    404: {"model": ErrorResponse, "description": "Not found"},
    409: {"model": ErrorResponse, "description": "Rejected by a booking rule; `code` tells which"},
    503: {"model": ErrorResponse, "description": "Store unavailable, safe to retry"},
}


def as_http_exception(error) -> HTTPException:
    """Turn a booking error into an HTTPException carrying {code, message, context}"""
    status_code = STATUS_BY_CODE.get(error.code, status.HTTP_409_CONFLICT)
    headers = {"Retry-After": "1"} if error.code == ReasonCode.UNAVAILABLE else None
    return HTTPException(status_code=status_code, detail=error.to_dict(), headers=headers)


@contextmanager
def booking_errors_as_http():
    try:
        yield
    except (BookingError, BookingUnavailableError) as e:
        raise as_http_exception(e) from e
