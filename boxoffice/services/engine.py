"""Public facade over the booking, payment, scheduling and voucher services.

Every method returns a ``Result``; named failures never escape as exceptions.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Optional, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from boxoffice.db.transaction import SessionFactory
from boxoffice.models.models import Booking, Screening, Voucher
from boxoffice.services import reaper, reconciliation, reservation, scheduling, vouchers
from boxoffice.services.confirmation import BookingNotifier
from boxoffice.services.errors import EngineError, ErrorKind
from boxoffice.services.payment_gateway import BaseAdapter
from boxoffice.services.results import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def guard(operation: str, call: Awaitable[T]) -> Result[T]:
    """Await ``call`` and fold named failures and store errors into a Result."""
    try:
        return Result.success(await call)
    except EngineError as err:
        return Result.failure(err)
    except SQLAlchemyError as exc:
        logger.exception("%s failed in the store", operation)
        return Result.failure(EngineError(ErrorKind.PERSISTENCE_ERROR, f"{operation} could not be committed", {"cause": exc.__class__.__name__}))


class BookingEngine:
    def __init__(self, session_factory: SessionFactory, gateway: BaseAdapter, notifier: Optional[BookingNotifier] = None):
        self.session_factory = session_factory
        self.gateway = gateway
        self.notifier = notifier

    async def _guard(self, operation: str, call: Awaitable[T]) -> Result[T]:
        return await guard(operation, call)

    async def reserve(self, screening_id: int, user_id: int, seat_ids: Sequence[int]) -> Result[Booking]:
        return await self._guard("reserve", reservation.reserve(self.session_factory, screening_id, user_id, seat_ids))

    async def initiate_payment(self, booking_id: int, voucher_code: Optional[str] = None, now: Optional[datetime] = None) -> Result[reconciliation.PaymentIntentHandle]:
        return await self._guard(
            "initiate_payment",
            reconciliation.initiate(self.session_factory, self.gateway, booking_id, voucher_code, now=now),
        )

    async def reconcile_payment(self, intent_id: str, now: Optional[datetime] = None) -> Result[reconciliation.ReconcileOutcome]:
        return await self._guard(
            "reconcile_payment",
            reconciliation.reconcile(self.session_factory, self.gateway, intent_id, now=now, notifier=self.notifier),
        )

    async def run_reaper(self, now: Optional[datetime] = None) -> Result[reaper.ReapReport]:
        return await self._guard("run_reaper", reaper.reap_expired(self.session_factory, now=now))

    async def create_session(
        self,
        hall_id: int,
        movie_title: Optional[str],
        start_time: datetime,
        end_time: datetime,
        base_price: Decimal,
        promotion_percent: Optional[int] = None,
    ) -> Result[Screening]:
        return await self._guard(
            "create_session",
            scheduling.create_screening(self.session_factory, hall_id, movie_title, start_time, end_time, base_price, promotion_percent),
        )

    async def update_session(
        self,
        session_id: int,
        hall_id: int,
        movie_title: Optional[str],
        start_time: datetime,
        end_time: datetime,
        base_price: Decimal,
        promotion_percent: Optional[int] = None,
    ) -> Result[Screening]:
        return await self._guard(
            "update_session",
            scheduling.update_screening(self.session_factory, session_id, hall_id, movie_title, start_time, end_time, base_price, promotion_percent),
        )

    async def create_voucher(self, code: str, value: Decimal, valid_until: datetime, max_usages: int) -> Result[Voucher]:
        return await self._guard("create_voucher", vouchers.create_voucher(self.session_factory, code, value, valid_until, max_usages))

    async def generate_voucher(self) -> Result[Voucher]:
        return await self._guard("generate_voucher", vouchers.generate_voucher(self.session_factory))
