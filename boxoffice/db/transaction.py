"""Single transactional boundary used by every state-changing engine operation.

``run_atomic`` opens a fresh session, runs ``work`` inside ``session.begin()`` and
commits on return. Serialization failures, deadlocks and SQLite lock timeouts are
expected under contention, so the whole unit is replayed a bounded number of
times before the database error is surfaced. Any other exception (including
``EngineError``) rolls the unit back and propagates immediately.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boxoffice.config import settings
from boxoffice.metrics import TX_RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")

SessionFactory = async_sessionmaker

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_retryable(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in RETRYABLE_SQLSTATES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(exc).lower()


async def run_atomic(
    session_factory: SessionFactory,
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    name: str = "unit",
    retries: Optional[int] = None,
) -> T:
    max_retries = settings.TX_MAX_RETRIES if retries is None else retries
    attempt = 0
    while True:
        try:
            async with session_factory() as db:
                async with db.begin():
                    return await work(db)
        except DBAPIError as exc:
            if attempt >= max_retries or not is_retryable(exc):
                raise
            attempt += 1
            TX_RETRIES.labels(unit=name).inc()
            logger.warning("retrying %s after transient database error (attempt %d/%d): %s", name, attempt, max_retries, exc.__class__.__name__)
            await asyncio.sleep(0.02 * (2 ** attempt))
