from boxoffice.db.base import Base
from .models import *

__all__ = [
    "Base",
    "SeatType",
    "BookingStatus",
    "PaymentStatus",
    "TERMINAL_PAYMENT_STATUSES",
    "User",
    "Hall",
    "Seat",
    "Screening",
    "Booking",
    "BookingSeat",
    "Voucher",
    "Payment",
    "AuditLog",
]
