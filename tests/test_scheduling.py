from datetime import timedelta
from decimal import Decimal

import pytest

from boxoffice.clock import utcnow
from boxoffice.services import reservation, scheduling
from boxoffice.services.errors import EngineError, ErrorKind


def window(hours_from_now, length_hours=2):
    start = utcnow().replace(microsecond=0) + timedelta(hours=hours_from_now)
    return start, start + timedelta(hours=length_hours)


@pytest.mark.asyncio
async def test_create_screening_in_free_slot(session_factory, cinema):
    start, end = window(48)
    screening = await scheduling.create_screening(session_factory, cinema.hall_id, "Dune", start, end, Decimal("8.50"), 20)
    assert screening.id != cinema.screening_id
    assert screening.promotion_percent == 20


@pytest.mark.asyncio
async def test_overlapping_screening_is_rejected(session_factory, cinema):
    # the seeded screening runs from +24h to +26h
    start, end = window(25)
    with pytest.raises(EngineError) as exc:
        await scheduling.create_screening(session_factory, cinema.hall_id, "Dune", start, end, Decimal("8.50"))
    assert exc.value.kind == ErrorKind.SESSION_OVERLAP
    assert exc.value.detail["session_ids"] == [cinema.screening_id]


@pytest.mark.asyncio
async def test_back_to_back_screenings_do_not_overlap(session_factory, cinema):
    first_start, first_end = window(72)
    await scheduling.create_screening(session_factory, cinema.hall_id, "Dune", first_start, first_end, Decimal("8"))
    second = await scheduling.create_screening(session_factory, cinema.hall_id, "Heat", first_end, first_end + timedelta(hours=3), Decimal("8"))
    assert second.start_time == first_end


@pytest.mark.asyncio
@pytest.mark.parametrize("price, promotion, length", [
    (Decimal("0"), None, 2),
    (Decimal("-5"), None, 2),
    (Decimal("8"), 120, 2),
    (Decimal("8"), None, 0),
    (Decimal("10.005"), None, 2),
])
async def test_create_screening_validation(session_factory, cinema, price, promotion, length):
    start, end = window(100, length)
    with pytest.raises(EngineError) as exc:
        await scheduling.create_screening(session_factory, cinema.hall_id, "Dune", start, end, price, promotion)
    assert exc.value.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_create_screening_unknown_hall(session_factory, cinema):
    start, end = window(48)
    with pytest.raises(EngineError) as exc:
        await scheduling.create_screening(session_factory, 999, "Dune", start, end, Decimal("8"))
    assert exc.value.kind == ErrorKind.HALL_NOT_FOUND


@pytest.mark.asyncio
async def test_update_excludes_itself_from_overlap(session_factory, cinema):
    start, end = window(48)
    screening = await scheduling.create_screening(session_factory, cinema.hall_id, "Dune", start, end, Decimal("8"))

    updated = await scheduling.update_screening(
        session_factory, screening.id, cinema.hall_id, "Dune", start + timedelta(minutes=30), end + timedelta(minutes=30), Decimal("9")
    )
    assert updated.base_price == Decimal("9")


@pytest.mark.asyncio
async def test_booked_screening_can_be_repriced_but_not_moved(session_factory, cinema):
    async with session_factory() as db:
        current = await scheduling.get_screening(db, cinema.screening_id)
        start, end = current.start_time, current.end_time
    await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A1"]])

    repriced = await scheduling.update_screening(session_factory, cinema.screening_id, cinema.hall_id, "Arrival", start, end, Decimal("12"), 10)
    assert repriced.base_price == Decimal("12")

    with pytest.raises(EngineError) as exc:
        await scheduling.update_screening(
            session_factory, cinema.screening_id, cinema.hall_id, "Arrival", start + timedelta(hours=1), end + timedelta(hours=1), Decimal("12")
        )
    assert exc.value.kind == ErrorKind.SESSION_HAS_BOOKINGS


@pytest.mark.asyncio
async def test_available_seats_and_occupancy(session_factory, cinema):
    await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A2"], cinema.seats["A4"]])

    async with session_factory() as db:
        seats = await scheduling.available_seats(db, cinema.screening_id)
        occupancy = await scheduling.screening_occupancy(db, cinema.screening_id)

    assert [s.seat_number for s in seats] == ["A1", "A3"]
    assert occupancy == {
        "session_id": cinema.screening_id,
        "total_seats": 4,
        "booked_seats": 2,
        "available_seats": 2,
        "occupancy_percentage": 50.0,
    }


@pytest.mark.asyncio
async def test_available_seats_unknown_session(session_factory):
    async with session_factory() as db:
        with pytest.raises(EngineError) as exc:
            await scheduling.available_seats(db, 999)
    assert exc.value.kind == ErrorKind.SESSION_NOT_FOUND
