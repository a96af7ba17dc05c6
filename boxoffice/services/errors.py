import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    # validation
    VALIDATION = "ValidationError"
    INVALID_AMOUNT = "InvalidAmount"
    INVALID_VOUCHER_VALUE = "InvalidVoucherValue"
    # domain conflicts
    SEAT_ALREADY_RESERVED = "SeatAlreadyReserved"
    SESSION_OVERLAP = "SessionOverlap"
    VOUCHER_DEPLETED = "VoucherDepleted"
    VOUCHER_EXPIRED = "VoucherExpired"
    BOOKING_EXPIRED = "BookingExpired"
    BOOKING_ALREADY_CONFIRMED = "BookingAlreadyConfirmed"
    SESSION_HAS_BOOKINGS = "SessionHasBookings"
    # not found
    SESSION_NOT_FOUND = "SessionNotFound"
    HALL_NOT_FOUND = "HallNotFound"
    SEAT_NOT_FOUND = "SeatNotFound"
    BOOKING_NOT_FOUND = "BookingNotFound"
    PAYMENT_NOT_FOUND = "PaymentNotFound"
    VOUCHER_NOT_FOUND = "VoucherNotFound"
    # collaborators / infrastructure
    PAYMENT_PROVIDER_ERROR = "PaymentProviderError"
    PERSISTENCE_ERROR = "PersistenceError"


class EngineError(Exception):
    """A named, expected failure of one of the engine operations."""

    def __init__(self, kind: ErrorKind, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail or {}

    def __repr__(self) -> str:
        return f"EngineError({self.kind.value}, {self.message!r})"

    def as_dict(self) -> Dict[str, Any]:
        return {"error": self.kind.value, "message": self.message, "detail": self.detail}
