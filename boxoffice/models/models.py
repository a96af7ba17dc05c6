import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from boxoffice.clock import utcnow
from boxoffice.db.base import Base


class SeatType(str, enum.Enum):
    NORMAL = "Normal"
    VIP = "VIP"
    REDUCED = "Reduced"


class BookingStatus(str, enum.Enum):
    UNCONFIRMED = "Unconfirmed"
    CONFIRMED = "Confirmed"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    EXPIRED = "Expired"


TERMINAL_PAYMENT_STATUSES = (PaymentStatus.PAID.value, PaymentStatus.FAILED.value, PaymentStatus.EXPIRED.value)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Hall(Base):
    __tablename__ = "halls"
    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False, unique=True)
    cinema_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    seats = relationship("Seat", back_populates="hall")


class Seat(Base):
    __tablename__ = "seats"
    id = Column(Integer, primary_key=True)
    hall_id = Column(Integer, ForeignKey("halls.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_number = Column(String(10), nullable=False)
    seat_type = Column(String(50), nullable=False, default=SeatType.NORMAL.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    hall = relationship("Hall", back_populates="seats")

    __table_args__ = (UniqueConstraint("hall_id", "seat_number", name="uq_hall_seat_number"),)


class Screening(Base):
    """A scheduled session of a movie in one hall."""

    __tablename__ = "screenings"
    id = Column(Integer, primary_key=True)
    hall_id = Column(Integer, ForeignKey("halls.id", ondelete="CASCADE"), nullable=False, index=True)
    movie_title = Column(String(255), nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    base_price = Column(Numeric(8, 2), nullable=False)
    promotion_percent = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    hall = relationship("Hall")

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_screening_price_non_negative"),
        CheckConstraint(
            "promotion_percent IS NULL OR (promotion_percent >= 0 AND promotion_percent <= 100)",
            name="ck_screening_promotion_range",
        ),
        Index("ix_screening_hall_start", "hall_id", "start_time"),
    )


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    screening_id = Column(Integer, ForeignKey("screenings.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.UNCONFIRMED.value, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    seats = relationship("BookingSeat", back_populates="booking", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="booking")
    user = relationship("User")
    screening = relationship("Screening")


class BookingSeat(Base):
    __tablename__ = "booking_seats"
    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    # denormalized from the booking so the store can enforce one claim per (screening, seat)
    screening_id = Column(Integer, ForeignKey("screenings.id", ondelete="CASCADE"), nullable=False)
    seat_id = Column(Integer, ForeignKey("seats.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="seats")
    seat = relationship("Seat")

    __table_args__ = (UniqueConstraint("screening_id", "seat_id", name="uq_booking_seat_screening_seat"),)


class Voucher(Base):
    __tablename__ = "vouchers"
    id = Column(Integer, primary_key=True)
    code = Column(String(16), nullable=False, unique=True, index=True)
    value = Column(Numeric(5, 2), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    max_usages = Column(Integer, nullable=False)
    usages = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("value > 0 AND value < 1", name="ck_voucher_value_fraction"),
        CheckConstraint("usages >= 0 AND usages <= max_usages", name="ck_voucher_usages_bounds"),
    )


class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="SET NULL"), nullable=True, index=True)
    reference = Column(String(255), nullable=False, unique=True)
    method = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    amount_paid = Column(Numeric(8, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="eur")
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="payments")
    voucher = relationship("Voucher")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    action = Column(String(255), nullable=False)
    object_type = Column(String(128), nullable=True)
    object_id = Column(String(128), nullable=True)
    detail = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
