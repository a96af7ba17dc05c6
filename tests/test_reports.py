from datetime import datetime, timezone
from decimal import Decimal

import pytest

from boxoffice.models import Booking, Payment
from boxoffice.services import reports


@pytest.mark.asyncio
async def test_payment_method_stats_counts_paid_only(session_factory, cinema):
    at = datetime(2026, 3, 1, 18, 30, tzinfo=timezone.utc)
    async with session_factory() as db:
        async with db.begin():
            booking = Booking(user_id=cinema.user_id, screening_id=cinema.screening_id, status="Confirmed", total_amount=Decimal("20.00"), created_at=at, updated_at=at)
            db.add(booking)
            await db.flush()
            db.add_all([
                Payment(booking_id=booking.id, reference="pi_a", method="Stripe", status="Paid", amount_paid=Decimal("20.00"), currency="eur", created_at=at, updated_at=at),
                Payment(booking_id=booking.id, reference="pi_b", method="Stripe", status="Failed", amount_paid=Decimal("20.00"), currency="eur", created_at=at, updated_at=at),
                Payment(booking_id=booking.id, reference="sim_c", method="Simulated", status="Paid", amount_paid=Decimal("7.50"), currency="eur", created_at=at, updated_at=at),
            ])

    async with session_factory() as db:
        rows = await reports.payment_method_stats(db)

    assert rows == [
        {"method": "Stripe", "payments": 1, "volume": Decimal("20.00")},
        {"method": "Simulated", "payments": 1, "volume": Decimal("7.50")},
    ]


@pytest.mark.asyncio
async def test_peak_booking_hours_busiest_first(session_factory, cinema):
    hours = [20, 20, 14, 20, 14, 9]
    async with session_factory() as db:
        async with db.begin():
            for hour in hours:
                at = datetime(2026, 3, 1, hour, 5, tzinfo=timezone.utc)
                db.add(Booking(user_id=cinema.user_id, screening_id=cinema.screening_id, status="Unconfirmed", total_amount=Decimal("10.00"), created_at=at, updated_at=at))

    async with session_factory() as db:
        rows = await reports.peak_booking_hours(db)

    assert rows == [{"hour": 20, "bookings": 3}, {"hour": 14, "bookings": 2}, {"hour": 9, "bookings": 1}]
