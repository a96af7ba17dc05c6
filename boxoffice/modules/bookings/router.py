from fastapi import APIRouter, Depends, status
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from boxoffice.db.session import get_session
from boxoffice.deps import get_engine
from boxoffice.http_errors import http_error, unwrap_or_raise
from boxoffice.models.models import Booking
from boxoffice.schemas.booking import BookingResponse, BookingSeatOut, ReserveRequest
from boxoffice.services.engine import BookingEngine
from boxoffice.services.errors import EngineError, ErrorKind
from boxoffice.services.reconciliation import booking_deadline

router = APIRouter()


def to_response(booking: Booking) -> BookingResponse:
    return BookingResponse(
        booking_id=booking.id,
        session_id=booking.screening_id,
        user_id=booking.user_id,
        status=booking.status,
        total_amount=booking.total_amount,
        created_at=booking.created_at,
        expires_at=booking_deadline(booking),
        seats=[BookingSeatOut(seat_id=bs.seat_id, price=bs.seat_price) for bs in sorted(booking.seats, key=lambda s: s.seat_id)],
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def reserve_seats(req: ReserveRequest, engine: BookingEngine = Depends(get_engine)):
    """Reserve seats of a session for a new Unconfirmed booking, all or nothing."""
    booking = unwrap_or_raise(await engine.reserve(req.session_id, req.user_id, req.seat_ids))
    return to_response(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, db: AsyncSession = Depends(get_session)):
    res = await db.execute(sa_select(Booking).where(Booking.id == booking_id).options(selectinload(Booking.seats)))
    booking = res.scalars().first()
    if booking is None:
        raise http_error(EngineError(ErrorKind.BOOKING_NOT_FOUND, f"Booking {booking_id} was not found"))
    return to_response(booking)
