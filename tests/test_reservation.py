import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from boxoffice.config import settings
from boxoffice.models import Booking, BookingSeat, BookingStatus
from boxoffice.services import reservation
from boxoffice.services.errors import EngineError, ErrorKind


async def count_claims(session_factory, screening_id):
    async with session_factory() as db:
        return await db.scalar(select(func.count(BookingSeat.id)).where(BookingSeat.screening_id == screening_id))


@pytest.mark.asyncio
async def test_reserve_prices_and_persists_booking(session_factory, cinema):
    booking = await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A3"], cinema.seats["A1"]])

    assert booking.status == BookingStatus.UNCONFIRMED.value
    assert booking.total_amount == Decimal("25.00")
    async with session_factory() as db:
        rows = (await db.execute(select(BookingSeat).where(BookingSeat.booking_id == booking.id).order_by(BookingSeat.seat_id))).scalars().all()
    assert [(r.seat_id, r.seat_price) for r in rows] == [
        (cinema.seats["A1"], Decimal("10.00")),
        (cinema.seats["A3"], Decimal("15.00")),
    ]


@pytest.mark.asyncio
async def test_reserve_unknown_session(session_factory, cinema):
    with pytest.raises(EngineError) as exc:
        await reservation.reserve(session_factory, 999, cinema.user_id, [cinema.seats["A1"]])
    assert exc.value.kind == ErrorKind.SESSION_NOT_FOUND


@pytest.mark.asyncio
async def test_reserve_seat_outside_hall(session_factory, cinema):
    with pytest.raises(EngineError) as exc:
        await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A1"], 999])
    assert exc.value.kind == ErrorKind.SEAT_NOT_FOUND
    assert exc.value.detail["seat_ids"] == [999]
    assert await count_claims(session_factory, cinema.screening_id) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("seat_ids", [[], [0], [1, 1], ["1"]])
async def test_reserve_rejects_malformed_seat_lists(session_factory, cinema, seat_ids):
    with pytest.raises(EngineError) as exc:
        await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, seat_ids)
    assert exc.value.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_reserve_unknown_user(session_factory, cinema):
    with pytest.raises(EngineError) as exc:
        await reservation.reserve(session_factory, cinema.screening_id, 999, [cinema.seats["A1"]])
    assert exc.value.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_overlapping_request_is_rejected_all_or_nothing(session_factory, cinema):
    await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A2"]])

    with pytest.raises(EngineError) as exc:
        await reservation.reserve(session_factory, cinema.screening_id, cinema.other_user_id, [cinema.seats["A1"], cinema.seats["A2"]])

    assert exc.value.kind == ErrorKind.SEAT_ALREADY_RESERVED
    assert exc.value.detail["seat_ids"] == [cinema.seats["A2"]]
    # A1 was not claimed by the rejected request
    assert await count_claims(session_factory, cinema.screening_id) == 1
    async with session_factory() as db:
        assert await db.scalar(select(func.count(Booking.id))) == 1


@pytest.mark.asyncio
async def test_concurrent_reservations_sell_a_seat_once(session_factory, cinema, monkeypatch):
    monkeypatch.setattr(settings, "TX_MAX_RETRIES", 10)
    contested = cinema.seats["A3"]
    requests = [
        [contested],
        [contested, cinema.seats["A1"]],
        [cinema.seats["A2"], contested],
        [contested, cinema.seats["A4"]],
    ]

    async def attempt(seat_ids):
        try:
            return await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, seat_ids)
        except EngineError as err:
            return err

    results = await asyncio.gather(*(attempt(ids) for ids in requests))

    winners = [r for r in results if not isinstance(r, EngineError)]
    losers = [r for r in results if isinstance(r, EngineError)]
    assert len(winners) == 1
    assert len(losers) == 3
    assert all(err.kind == ErrorKind.SEAT_ALREADY_RESERVED for err in losers)
    async with session_factory() as db:
        holders = (await db.execute(select(BookingSeat.booking_id).where(BookingSeat.seat_id == contested))).scalars().all()
    assert holders == [winners[0].id]
    assert await count_claims(session_factory, cinema.screening_id) == len(winners[0].seats)
