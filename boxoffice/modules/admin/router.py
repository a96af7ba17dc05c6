from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.db.session import get_session
from boxoffice.deps import get_engine
from boxoffice.http_errors import unwrap_or_raise
from boxoffice.services import reports
from boxoffice.services.engine import BookingEngine, guard

router = APIRouter()


@router.post("/reaper/run")
async def run_reaper(engine: BookingEngine = Depends(get_engine)):
    """Sweep expired unpaid bookings now instead of waiting for the beat schedule."""
    report = unwrap_or_raise(await engine.run_reaper())
    return {
        "cutoff": report.cutoff.isoformat(),
        "bookings": report.bookings,
        "seats_released": report.seats_released,
        "payments_expired": report.payments_expired,
        "booking_ids": report.booking_ids,
    }


@router.get("/reports/payment-methods")
async def payment_method_report(db: AsyncSession = Depends(get_session)):
    return unwrap_or_raise(await guard("payment_method_stats", reports.payment_method_stats(db)))


@router.get("/reports/peak-hours")
async def peak_hours_report(db: AsyncSession = Depends(get_session)):
    return unwrap_or_raise(await guard("peak_booking_hours", reports.peak_booking_hours(db)))
