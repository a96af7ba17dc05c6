from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_session
from boxoffice.deps import get_engine
from boxoffice.http_errors import unwrap_or_raise
from boxoffice.models.models import Screening
from boxoffice.schemas.session import AvailableSeatOut, OccupancyOut, ScreeningIn, ScreeningOut
from boxoffice.services import pricing, scheduling
from boxoffice.services.engine import BookingEngine, guard

router = APIRouter()


def to_out(screening: Screening) -> ScreeningOut:
    return ScreeningOut(
        id=screening.id,
        hall_id=screening.hall_id,
        movie_title=screening.movie_title,
        start_time=screening.start_time,
        end_time=screening.end_time,
        base_price=screening.base_price,
        promotion_percent=screening.promotion_percent,
    )


@router.post("/", response_model=ScreeningOut, status_code=status.HTTP_201_CREATED)
async def create_session(req: ScreeningIn, engine: BookingEngine = Depends(get_engine)):
    screening = unwrap_or_raise(await engine.create_session(**req.model_dump()))
    return to_out(screening)


@router.put("/{session_id}", response_model=ScreeningOut)
async def update_session(session_id: int, req: ScreeningIn, engine: BookingEngine = Depends(get_engine)):
    screening = unwrap_or_raise(await engine.update_session(session_id, **req.model_dump()))
    return to_out(screening)


async def _priced_available_seats(db: AsyncSession, session_id: int) -> List[AvailableSeatOut]:
    screening = await scheduling.get_screening(db, session_id)
    seats = await scheduling.available_seats(db, session_id)
    return [
        AvailableSeatOut(
            id=s.id,
            seat_number=s.seat_number,
            seat_type=s.seat_type,
            price=pricing.seat_price(screening.base_price, s.seat_type, screening.promotion_percent),
        )
        for s in seats
    ]


@router.get("/{session_id}/seats", response_model=List[AvailableSeatOut])
async def list_available_seats(session_id: int, db: AsyncSession = Depends(get_session)):
    return unwrap_or_raise(await guard("available_seats", _priced_available_seats(db, session_id)))


@router.get("/{session_id}/occupancy", response_model=OccupancyOut)
async def session_occupancy(session_id: int, db: AsyncSession = Depends(get_session)):
    occupancy = unwrap_or_raise(await guard("session_occupancy", scheduling.screening_occupancy(db, session_id)))
    return OccupancyOut(**occupancy)
