import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.clock import as_utc, utcnow
from boxoffice.db.transaction import SessionFactory, run_atomic
from boxoffice.models.models import BookingSeat, Hall, Screening, Seat
from boxoffice.services.errors import EngineError, ErrorKind
from boxoffice.services.pricing import MINOR_UNIT

logger = logging.getLogger(__name__)


def validate_window(start_time: datetime, end_time: datetime, base_price: Decimal, promotion_percent: Optional[int], creating: bool) -> None:
    if as_utc(start_time) >= as_utc(end_time):
        raise EngineError(ErrorKind.VALIDATION, "Session must start before it ends")
    price = Decimal(base_price)
    if price < 0 or (creating and price == 0):
        raise EngineError(ErrorKind.VALIDATION, "Base price must be positive", {"base_price": str(price)})
    if price != price.quantize(MINOR_UNIT):
        raise EngineError(ErrorKind.VALIDATION, "Base price has more than two decimals", {"base_price": str(price)})
    if promotion_percent is not None and not 0 <= promotion_percent <= 100:
        raise EngineError(ErrorKind.VALIDATION, "Promotion must be within 0..100", {"promotion_percent": promotion_percent})


async def find_overlapping(db: AsyncSession, hall_id: int, start_time: datetime, end_time: datetime, exclude_id: Optional[int] = None) -> List[int]:
    """Ids of screenings in the hall whose [start, end) intersects the given window."""
    stmt = (
        sa_select(Screening.id)
        .where(Screening.hall_id == hall_id)
        .where(Screening.start_time < as_utc(end_time))
        .where(Screening.end_time > as_utc(start_time))
    )
    if exclude_id is not None:
        stmt = stmt.where(Screening.id != exclude_id)
    res = await db.execute(stmt)
    return sorted(res.scalars().all())


async def _check_hall_and_overlap(db: AsyncSession, hall_id: int, start_time: datetime, end_time: datetime, exclude_id: Optional[int] = None) -> None:
    # lock the hall so two schedulers cannot both pass the overlap check
    res = await db.execute(sa_select(Hall).where(Hall.id == hall_id).with_for_update())
    if res.scalars().first() is None:
        raise EngineError(ErrorKind.HALL_NOT_FOUND, f"Hall {hall_id} was not found")
    clashing = await find_overlapping(db, hall_id, start_time, end_time, exclude_id)
    if clashing:
        raise EngineError(ErrorKind.SESSION_OVERLAP, "Hall already has a session in this time window", {"session_ids": clashing})


async def create_screening(
    session_factory: SessionFactory,
    hall_id: int,
    movie_title: Optional[str],
    start_time: datetime,
    end_time: datetime,
    base_price: Decimal,
    promotion_percent: Optional[int] = None,
) -> Screening:
    validate_window(start_time, end_time, base_price, promotion_percent, creating=True)

    async def _work(db: AsyncSession) -> Screening:
        await _check_hall_and_overlap(db, hall_id, start_time, end_time)
        now = utcnow()
        screening = Screening(
            hall_id=hall_id,
            movie_title=movie_title,
            start_time=as_utc(start_time),
            end_time=as_utc(end_time),
            base_price=Decimal(base_price),
            promotion_percent=promotion_percent,
            created_at=now,
            updated_at=now,
        )
        db.add(screening)
        await db.flush()
        return screening

    screening = await run_atomic(session_factory, _work, name="create_screening")
    logger.info("scheduled screening %s in hall %s at %s", screening.id, hall_id, screening.start_time)
    return screening


async def update_screening(
    session_factory: SessionFactory,
    screening_id: int,
    hall_id: int,
    movie_title: Optional[str],
    start_time: datetime,
    end_time: datetime,
    base_price: Decimal,
    promotion_percent: Optional[int] = None,
) -> Screening:
    """Replace a screening's schedule and pricing.

    Once seats are booked the hall and time window are frozen; title and price
    edits still apply, to future reservations only.
    """
    validate_window(start_time, end_time, base_price, promotion_percent, creating=False)

    async def _work(db: AsyncSession) -> Screening:
        res = await db.execute(sa_select(Screening).where(Screening.id == screening_id).with_for_update())
        screening = res.scalars().first()
        if screening is None:
            raise EngineError(ErrorKind.SESSION_NOT_FOUND, f"Session {screening_id} was not found")
        booked = await db.scalar(sa_select(func.count(BookingSeat.id)).where(BookingSeat.screening_id == screening_id))
        moved = (
            hall_id != screening.hall_id
            or as_utc(start_time) != as_utc(screening.start_time)
            or as_utc(end_time) != as_utc(screening.end_time)
        )
        if booked and moved:
            raise EngineError(ErrorKind.SESSION_HAS_BOOKINGS, "Cannot move a session that already has booked seats", {"booked_seats": booked})
        await _check_hall_and_overlap(db, hall_id, start_time, end_time, exclude_id=screening_id)
        screening.hall_id = hall_id
        screening.movie_title = movie_title
        screening.start_time = as_utc(start_time)
        screening.end_time = as_utc(end_time)
        screening.base_price = Decimal(base_price)
        screening.promotion_percent = promotion_percent
        screening.updated_at = utcnow()
        await db.flush()
        return screening

    screening = await run_atomic(session_factory, _work, name="update_screening")
    logger.info("updated screening %s", screening_id)
    return screening


async def get_screening(db: AsyncSession, screening_id: int) -> Screening:
    screening = await db.get(Screening, screening_id)
    if screening is None:
        raise EngineError(ErrorKind.SESSION_NOT_FOUND, f"Session {screening_id} was not found")
    return screening


async def available_seats(db: AsyncSession, screening_id: int) -> List[Seat]:
    screening = await get_screening(db, screening_id)
    held = sa_select(BookingSeat.seat_id).where(BookingSeat.screening_id == screening_id)
    res = await db.execute(
        sa_select(Seat)
        .where(Seat.hall_id == screening.hall_id)
        .where(Seat.id.not_in(held))
        .order_by(Seat.seat_number)
    )
    return list(res.scalars().all())


async def screening_occupancy(db: AsyncSession, screening_id: int) -> Dict:
    screening = await get_screening(db, screening_id)
    total = await db.scalar(sa_select(func.count(Seat.id)).where(Seat.hall_id == screening.hall_id)) or 0
    booked = await db.scalar(sa_select(func.count(BookingSeat.id)).where(BookingSeat.screening_id == screening_id)) or 0
    percentage = round(booked / total * 100, 2) if total else 0.0
    return {
        "session_id": screening_id,
        "total_seats": total,
        "booked_seats": booked,
        "available_seats": total - booked,
        "occupancy_percentage": percentage,
    }
