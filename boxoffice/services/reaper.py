import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import exists, or_
from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.clock import utcnow
from boxoffice.config import settings
from boxoffice.db.transaction import SessionFactory, run_atomic
from boxoffice.metrics import PAYMENT_TRANSITIONS, REAPER_BOOKINGS, REAPER_SEATS
from boxoffice.models.models import Booking, BookingSeat, BookingStatus, Payment, PaymentStatus
from boxoffice.services import inventory
from boxoffice.services.audit import log_audit

logger = logging.getLogger(__name__)


@dataclass
class ReapReport:
    cutoff: datetime
    bookings: int = 0
    seats_released: int = 0
    payments_expired: int = 0
    booking_ids: List[int] = field(default_factory=list)


async def _reap_batch(db: AsyncSession, cutoff: datetime, now: datetime, after_id: int, batch_size: int):
    has_claims = exists().where(BookingSeat.booking_id == Booking.id)
    has_pending = exists().where(Payment.booking_id == Booking.id).where(Payment.status == PaymentStatus.PENDING.value)
    res = await db.execute(
        sa_select(Booking.id)
        .where(Booking.status == BookingStatus.UNCONFIRMED.value)
        .where(Booking.created_at <= cutoff)
        .where(Booking.id > after_id)
        .where(or_(has_claims, has_pending))
        .order_by(Booking.id)
        .limit(batch_size)
        .with_for_update(skip_locked=True)
    )
    candidates = list(res.scalars().all())
    if not candidates:
        return [], 0, 0

    # re-check the status at write time; a booking confirmed meanwhile keeps its seats
    await db.execute(
        sa_update(Booking)
        .where(Booking.id.in_(candidates))
        .where(Booking.status == BookingStatus.UNCONFIRMED.value)
        .values(updated_at=now)
        .execution_options(synchronize_session=False)
    )
    still_unconfirmed = (
        sa_select(Booking.id)
        .where(Booking.id.in_(candidates))
        .where(Booking.status == BookingStatus.UNCONFIRMED.value)
    )
    expired = await db.execute(
        sa_update(Payment)
        .where(Payment.booking_id.in_(still_unconfirmed))
        .where(Payment.status == PaymentStatus.PENDING.value)
        .values(status=PaymentStatus.EXPIRED.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    released = await inventory.release_seats(db, still_unconfirmed)
    log_audit(db, "booking.reaped", "booking", None, {
        "booking_ids": candidates,
        "seats_released": released,
        "payments_expired": expired.rowcount,
    })
    return candidates, released, expired.rowcount


async def reap_expired(
    session_factory: SessionFactory,
    now: Optional[datetime] = None,
    ttl_minutes: Optional[int] = None,
    batch_size: int = 500,
) -> ReapReport:
    """Return the seats of Unconfirmed bookings older than the TTL to the pool.

    Pending payments of those bookings become Expired; the booking rows stay
    (still Unconfirmed) for audit. Works in batches, one transaction each.
    """
    now = now or utcnow()
    ttl = settings.BOOKING_TTL_MINUTES if ttl_minutes is None else ttl_minutes
    report = ReapReport(cutoff=now - timedelta(minutes=ttl))
    after_id = 0
    while True:
        async def _work(db: AsyncSession):
            return await _reap_batch(db, report.cutoff, now, after_id, batch_size)

        ids, seats, payments = await run_atomic(session_factory, _work, name="reaper")
        if not ids:
            break
        report.booking_ids.extend(ids)
        report.bookings += len(ids)
        report.seats_released += seats
        report.payments_expired += payments
        REAPER_BOOKINGS.inc(len(ids))
        REAPER_SEATS.inc(seats)
        if payments:
            PAYMENT_TRANSITIONS.labels(status=PaymentStatus.EXPIRED.value).inc(payments)
        if len(ids) < batch_size:
            break
        after_id = ids[-1]

    if report.bookings:
        logger.info("reaper swept %d bookings, released %d seats, expired %d payments (cutoff %s)",
                    report.bookings, report.seats_released, report.payments_expired, report.cutoff.isoformat())
    else:
        logger.debug("reaper found nothing older than %s", report.cutoff.isoformat())
    return report
