from typing import Dict, TypeVar

from fastapi import HTTPException, status

from boxoffice.services.errors import EngineError, ErrorKind
from boxoffice.services.results import Result

T = TypeVar("T")

# every ErrorKind must have an entry
ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_AMOUNT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_VOUCHER_VALUE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.SEAT_ALREADY_RESERVED: status.HTTP_409_CONFLICT,
    ErrorKind.SESSION_OVERLAP: status.HTTP_409_CONFLICT,
    ErrorKind.VOUCHER_DEPLETED: status.HTTP_409_CONFLICT,
    ErrorKind.VOUCHER_EXPIRED: status.HTTP_409_CONFLICT,
    ErrorKind.BOOKING_EXPIRED: status.HTTP_410_GONE,
    ErrorKind.BOOKING_ALREADY_CONFIRMED: status.HTTP_409_CONFLICT,
    ErrorKind.SESSION_HAS_BOOKINGS: status.HTTP_409_CONFLICT,
    ErrorKind.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.HALL_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.SEAT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.BOOKING_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PAYMENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.VOUCHER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.PAYMENT_PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PERSISTENCE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}

# the caller may retry these; the provider should redeliver the webhook
TRANSIENT_KINDS = (ErrorKind.PAYMENT_PROVIDER_ERROR, ErrorKind.PERSISTENCE_ERROR)


def http_error(err: EngineError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS[err.kind], detail=err.as_dict())


def unwrap_or_raise(result: Result[T]) -> T:
    if not result.ok:
        raise http_error(result.error)
    return result.value
