import logging
import time
from typing import List, Sequence

from sqlalchemy import select as sa_select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.clock import utcnow
from boxoffice.db.transaction import SessionFactory, run_atomic
from boxoffice.metrics import RESERVATION_ATTEMPTS, RESERVATION_LATENCY
from boxoffice.models.models import Booking, BookingStatus, Seat, User
from boxoffice.services import inventory, pricing
from boxoffice.services.errors import EngineError, ErrorKind

logger = logging.getLogger(__name__)


def normalize_seat_ids(seat_ids: Sequence[int]) -> List[int]:
    if not seat_ids:
        raise EngineError(ErrorKind.VALIDATION, "At least one seat must be requested")
    normalized = []
    for seat_id in seat_ids:
        if isinstance(seat_id, bool) or not isinstance(seat_id, int) or seat_id <= 0:
            raise EngineError(ErrorKind.VALIDATION, "Seat ids must be positive integers", {"seat_id": seat_id})
        normalized.append(seat_id)
    if len(set(normalized)) != len(normalized):
        raise EngineError(ErrorKind.VALIDATION, "Seat ids must not repeat", {"seat_ids": normalized})
    return sorted(normalized)


async def reserve(session_factory: SessionFactory, screening_id: int, user_id: int, seat_ids: Sequence[int]) -> Booking:
    """Allocate ``seat_ids`` of a screening to a new Unconfirmed booking.

    Check, pricing and insert all run in one atomic unit; nothing is written
    unless every seat could be claimed.
    """
    if not isinstance(user_id, int) or user_id <= 0:
        raise EngineError(ErrorKind.VALIDATION, "user id must be a positive integer")
    requested = normalize_seat_ids(seat_ids)

    async def _work(db: AsyncSession) -> Booking:
        screening = await inventory.lock_screening(db, screening_id)
        if screening is None:
            raise EngineError(ErrorKind.SESSION_NOT_FOUND, f"Session {screening_id} was not found")
        if await db.get(User, user_id) is None:
            raise EngineError(ErrorKind.VALIDATION, f"User {user_id} does not exist", {"user_id": user_id})

        res = await db.execute(
            sa_select(Seat).where(Seat.id.in_(requested)).where(Seat.hall_id == screening.hall_id)
        )
        seats = res.scalars().all()
        if len(seats) != len(requested):
            missing = sorted(set(requested) - {s.id for s in seats})
            raise EngineError(ErrorKind.SEAT_NOT_FOUND, "One or more seats do not exist in this hall", {"seat_ids": missing})

        taken = await inventory.find_conflicts(db, screening_id, requested)
        if taken:
            raise EngineError(ErrorKind.SEAT_ALREADY_RESERVED, "One or more seats are already reserved for this session", {"seat_ids": taken})

        try:
            quote = pricing.quote(screening.base_price, screening.promotion_percent, seats)
        except ValueError as exc:
            raise EngineError(ErrorKind.VALIDATION, str(exc)) from exc
        now = utcnow()
        booking = Booking(
            user_id=user_id,
            screening_id=screening_id,
            status=BookingStatus.UNCONFIRMED.value,
            total_amount=quote.total,
            created_at=now,
            updated_at=now,
        )
        inventory.claim_seats(booking, screening_id, quote)
        db.add(booking)
        try:
            await db.flush()
        except IntegrityError as exc:
            if not inventory.is_claim_conflict(exc):
                raise
            # lost the race to a concurrent reservation
            raise EngineError(ErrorKind.SEAT_ALREADY_RESERVED, "One or more seats are already reserved for this session") from exc
        return booking

    start = time.perf_counter()
    try:
        booking = await run_atomic(session_factory, _work, name="reserve")
    except EngineError as err:
        if err.kind == ErrorKind.SEAT_ALREADY_RESERVED and "seat_ids" not in err.detail:
            async with session_factory() as db:
                err.detail["seat_ids"] = await inventory.find_conflicts(db, screening_id, requested)
        RESERVATION_ATTEMPTS.labels(result=err.kind.value).inc()
        logger.info("reservation rejected: %s screening=%s seats=%s", err.kind.value, screening_id, requested)
        raise
    RESERVATION_LATENCY.observe(time.perf_counter() - start)
    RESERVATION_ATTEMPTS.labels(result="success").inc()
    logger.info("reserved booking=%s screening=%s seats=%s total=%s", booking.id, screening_id, requested, booking.total_amount)
    return booking
