from decimal import Decimal
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.clock import as_utc
from boxoffice.models.models import Booking, Payment, PaymentStatus


async def payment_method_stats(db: AsyncSession) -> List[Dict]:
    """Count and volume of Paid payments per method, largest volume first."""
    res = await db.execute(
        sa_select(Payment.method, func.count(Payment.id), func.coalesce(func.sum(Payment.amount_paid), 0))
        .where(Payment.status == PaymentStatus.PAID.value)
        .group_by(Payment.method)
    )
    rows = [
        {"method": method, "payments": count, "volume": Decimal(volume).quantize(Decimal("0.01"))}
        for method, count, volume in res.all()
    ]
    rows.sort(key=lambda r: r["volume"], reverse=True)
    return rows


async def peak_booking_hours(db: AsyncSession) -> List[Dict]:
    # bucketed in Python: hour extraction differs between PostgreSQL and SQLite
    res = await db.execute(sa_select(Booking.created_at))
    buckets: Dict[int, int] = {}
    for (created_at,) in res.all():
        hour = as_utc(created_at).hour
        buckets[hour] = buckets.get(hour, 0) + 1
    return [
        {"hour": hour, "bookings": count}
        for hour, count in sorted(buckets.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
