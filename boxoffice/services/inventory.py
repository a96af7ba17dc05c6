"""Seat inventory guard.

The inventory is the set of (screening, seat) pairs not claimed by a BookingSeat
row. Claims are only ever made inside the reservation unit, after the screening
row has been locked, and the ``uq_booking_seat_screening_seat`` constraint turns
any race that slips past the in-transaction check into an IntegrityError at
flush time rather than a double sale.
"""
from typing import Iterable, List, Optional

from sqlalchemy import delete as sa_delete
from sqlalchemy import select as sa_select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.models.models import Booking, BookingSeat, BookingStatus, Screening
from boxoffice.services.pricing import PriceQuote


CLAIM_CONSTRAINT = "uq_booking_seat_screening_seat"
ACTIVE_BOOKING_STATUSES = (BookingStatus.UNCONFIRMED.value, BookingStatus.CONFIRMED.value)


async def lock_screening(db: AsyncSession, screening_id: int) -> Optional[Screening]:
    """Load the screening with a row lock so reservations for it serialize."""
    stmt = sa_select(Screening).where(Screening.id == screening_id).with_for_update()
    res = await db.execute(stmt)
    return res.scalars().first()


async def find_conflicts(db: AsyncSession, screening_id: int, seat_ids: Iterable[int]) -> List[int]:
    """Return the requested seat ids already held by an active booking for the screening."""
    stmt = (
        sa_select(BookingSeat.seat_id)
        .join(Booking, Booking.id == BookingSeat.booking_id)
        .where(BookingSeat.screening_id == screening_id)
        .where(BookingSeat.seat_id.in_(list(seat_ids)))
        .where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
    )
    res = await db.execute(stmt)
    return sorted(set(res.scalars().all()))


def claim_seats(booking: Booking, screening_id: int, quote: PriceQuote) -> List[BookingSeat]:
    """Attach one BookingSeat per quoted seat, carrying the price at booking time."""
    claims = []
    for seat_quote in sorted(quote.seats, key=lambda q: q.seat_id):
        claim = BookingSeat(
            screening_id=screening_id,
            seat_id=seat_quote.seat_id,
            seat_price=seat_quote.price,
            created_at=booking.created_at,
        )
        booking.seats.append(claim)
        claims.append(claim)
    return claims


async def release_seats(db: AsyncSession, booking_ids) -> int:
    """Drop the claims of the given bookings (a list of ids or an id subquery)."""
    res = await db.execute(
        sa_delete(BookingSeat)
        .where(BookingSeat.booking_id.in_(booking_ids))
        .execution_options(synchronize_session=False)
    )
    return res.rowcount or 0


def is_claim_conflict(exc: IntegrityError) -> bool:
    """True when the IntegrityError came from the (screening, seat) uniqueness constraint."""
    message = str(getattr(exc, "orig", exc))
    if CLAIM_CONSTRAINT in message:
        return True
    # SQLite reports the columns rather than the constraint name
    return "UNIQUE constraint failed: booking_seats.screening_id, booking_seats.seat_id" in message
