from datetime import timedelta

import pytest
from sqlalchemy import func, select

from boxoffice.clock import utcnow
from boxoffice.models import AuditLog, Booking, BookingSeat, Payment
from boxoffice.services import reaper, reconciliation, reservation
from boxoffice.services.payment_gateway import ProviderStatus


async def claims_of(session_factory, booking_id):
    async with session_factory() as db:
        return await db.scalar(select(func.count(BookingSeat.id)).where(BookingSeat.booking_id == booking_id))


@pytest.mark.asyncio
async def test_reaper_leaves_fresh_bookings_alone(session_factory, cinema):
    booking = await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A1"]])

    report = await reaper.reap_expired(session_factory, now=utcnow() + timedelta(minutes=14))

    assert report.bookings == 0
    assert await claims_of(session_factory, booking.id) == 1


@pytest.mark.asyncio
async def test_ttl_release_makes_seat_reservable_again(session_factory, gateway, cinema):
    seat = cinema.seats["A3"]
    stale = await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [seat, cinema.seats["A4"]])
    handle = await reconciliation.initiate(session_factory, gateway, stale.id)

    report = await reaper.reap_expired(session_factory, now=utcnow() + timedelta(minutes=15, seconds=1))

    assert report.booking_ids == [stale.id]
    assert report.seats_released == 2
    assert report.payments_expired == 1
    assert await claims_of(session_factory, stale.id) == 0
    async with session_factory() as db:
        booking = await db.get(Booking, stale.id)
        payment = await db.get(Payment, handle.payment_id)
        actions = (await db.execute(select(AuditLog.action))).scalars().all()
    assert booking.status == "Unconfirmed"
    assert payment.status == "Expired"
    assert "booking.reaped" in actions

    fresh = await reservation.reserve(session_factory, cinema.screening_id, cinema.other_user_id, [seat])
    assert await claims_of(session_factory, fresh.id) == 1


@pytest.mark.asyncio
async def test_reaper_never_touches_confirmed_bookings(session_factory, gateway, cinema):
    booking = await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A1"]])
    handle = await reconciliation.initiate(session_factory, gateway, booking.id)
    gateway.set_status(handle.intent_id, ProviderStatus.SUCCEEDED)
    await reconciliation.reconcile(session_factory, gateway, handle.intent_id)

    report = await reaper.reap_expired(session_factory, now=utcnow() + timedelta(hours=3))

    assert report.bookings == 0
    assert await claims_of(session_factory, booking.id) == 1


@pytest.mark.asyncio
async def test_reaper_is_idempotent_and_batches(session_factory, cinema):
    for label in ("A1", "A2", "A3"):
        await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats[label]])
    later = utcnow() + timedelta(minutes=30)

    first = await reaper.reap_expired(session_factory, now=later, batch_size=2)
    second = await reaper.reap_expired(session_factory, now=later, batch_size=2)

    assert first.bookings == 3
    assert first.seats_released == 3
    assert second.bookings == 0


@pytest.mark.asyncio
async def test_reconcile_after_reaper_reports_expired(session_factory, gateway, cinema):
    booking = await reservation.reserve(session_factory, cinema.screening_id, cinema.user_id, [cinema.seats["A1"]])
    handle = await reconciliation.initiate(session_factory, gateway, booking.id)
    later = utcnow() + timedelta(minutes=20)
    await reaper.reap_expired(session_factory, now=later)
    gateway.set_status(handle.intent_id, ProviderStatus.SUCCEEDED)

    outcome = await reconciliation.reconcile(session_factory, gateway, handle.intent_id, now=later)

    assert outcome.status == "Expired"
    assert not outcome.transitioned
