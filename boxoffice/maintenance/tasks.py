import asyncio

from celery.utils.log import get_task_logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from boxoffice.celery_app import celery_app
from boxoffice.config import settings
from boxoffice.services.reaper import reap_expired

logger = get_task_logger(__name__)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=10)
def reap_expired_bookings_task(self):
    """Periodic sweep returning seats of expired unpaid bookings to the pool."""

    async def _run():
        # a fresh engine per run: the pool must belong to this asyncio.run loop
        engine = create_async_engine(str(settings.DATABASE_URL), future=True)
        session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        try:
            return await reap_expired(session_factory)
        finally:
            await engine.dispose()

    try:
        report = asyncio.run(_run())
    except SQLAlchemyError as exc:
        logger.exception("reaper run failed: %s", exc)
        raise self.retry(exc=exc)
    logger.info("reaper run done: %d bookings, %d seats released", report.bookings, report.seats_released)
    return {
        "bookings": report.bookings,
        "seats_released": report.seats_released,
        "payments_expired": report.payments_expired,
    }
