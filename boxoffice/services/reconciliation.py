"""Payment lifecycle: opening a charge intent and folding provider state back in.

Every transition is a conditional UPDATE guarded on the current status, so a
replayed webhook, a status poll and a late reaper run can interleave freely:
exactly one of them applies a given transition and the others become no-ops.
Payments only ever leave Pending; Paid, Failed and Expired are final.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from boxoffice.clock import as_utc, utcnow
from boxoffice.config import settings
from boxoffice.db.transaction import SessionFactory, run_atomic
from boxoffice.metrics import PAYMENT_INTENTS, PAYMENT_TRANSITIONS
from boxoffice.models.models import (
    Booking,
    BookingSeat,
    BookingStatus,
    Payment,
    PaymentStatus,
    Screening,
    TERMINAL_PAYMENT_STATUSES,
)
from boxoffice.services import vouchers
from boxoffice.services.audit import log_audit
from boxoffice.services.confirmation import BookingNotifier, InvoiceSummary, build_invoice, publish_confirmation
from boxoffice.services.errors import EngineError, ErrorKind
from boxoffice.services.payment_gateway import BaseAdapter, ProviderStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntentHandle:
    booking_id: int
    payment_id: int
    intent_id: str
    client_secret: str
    amount: Decimal
    currency: str
    voucher_code: Optional[str] = None


@dataclass(frozen=True)
class ReconcileOutcome:
    intent_id: str
    payment_id: int
    booking_id: int
    status: str
    provider_status: Optional[str]
    transitioned: bool
    booking_confirmed: bool


def booking_deadline(booking: Booking, ttl_minutes: Optional[int] = None) -> datetime:
    ttl = settings.BOOKING_TTL_MINUTES if ttl_minutes is None else ttl_minutes
    return as_utc(booking.created_at) + timedelta(minutes=ttl)


def is_expired(booking: Booking, now: datetime, ttl_minutes: Optional[int] = None) -> bool:
    return now > booking_deadline(booking, ttl_minutes)


async def initiate(
    session_factory: SessionFactory,
    gateway: BaseAdapter,
    booking_id: int,
    voucher_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PaymentIntentHandle:
    """Open a provider charge intent for an Unconfirmed booking and record it as Pending.

    The voucher is only priced here; its usage is consumed when the payment
    is reconciled into Paid.
    """
    now = now or utcnow()
    voucher_id = None
    applied_code = None
    async with session_factory() as db:
        booking = await db.get(Booking, booking_id)
        if booking is None:
            raise EngineError(ErrorKind.BOOKING_NOT_FOUND, f"Booking {booking_id} was not found")
        if booking.status == BookingStatus.CONFIRMED.value:
            raise EngineError(ErrorKind.BOOKING_ALREADY_CONFIRMED, "Booking is already paid", {"booking_id": booking_id})
        if is_expired(booking, now):
            raise EngineError(ErrorKind.BOOKING_EXPIRED, "Booking reservation window has elapsed", {"booking_id": booking_id})
        amount = Decimal(booking.total_amount)
        if voucher_code:
            application = await vouchers.apply_voucher(db, amount, voucher_code, now)
            amount = application.discounted_amount
            voucher_id = application.voucher_id
            applied_code = application.code

    if amount <= 0:
        raise EngineError(ErrorKind.INVALID_AMOUNT, "Amount to charge must be positive", {"amount": str(amount)})

    # provider call happens outside any transaction or row lock
    handle = await gateway.create_intent(amount, settings.CURRENCY, {"bookingId": str(booking_id)})
    PAYMENT_INTENTS.labels(provider=gateway.provider_name).inc()

    async def _persist(db: AsyncSession) -> Payment:
        payment = Payment(
            booking_id=booking_id,
            voucher_id=voucher_id,
            reference=handle.intent_id,
            method=gateway.method_name,
            status=PaymentStatus.PENDING.value,
            amount_paid=amount,
            currency=settings.CURRENCY,
            created_at=now,
            updated_at=now,
        )
        db.add(payment)
        await db.flush()
        log_audit(db, "payment.initiated", "payment", str(payment.id), {"booking_id": booking_id, "intent_id": handle.intent_id, "amount": str(amount)})
        return payment

    payment = await run_atomic(session_factory, _persist, name="initiate_payment")
    logger.info("opened intent %s for booking=%s amount=%s voucher=%s", handle.intent_id, booking_id, amount, applied_code)
    return PaymentIntentHandle(
        booking_id=booking_id,
        payment_id=payment.id,
        intent_id=handle.intent_id,
        client_secret=handle.client_secret,
        amount=amount,
        currency=settings.CURRENCY,
        voucher_code=applied_code,
    )


async def _move_payment(db: AsyncSession, payment_id: int, target: PaymentStatus, sources: Iterable[PaymentStatus], now: datetime) -> bool:
    values = {"status": target.value, "updated_at": now}
    if target == PaymentStatus.PAID:
        values["paid_at"] = now
    stmt = (
        sa_update(Payment)
        .where(Payment.id == payment_id)
        .where(Payment.status.in_([s.value for s in sources]))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    moved = res.rowcount == 1
    if moved:
        PAYMENT_TRANSITIONS.labels(status=target.value).inc()
    return moved


async def _confirm_booking(db: AsyncSession, booking_id: int, now: datetime) -> bool:
    stmt = (
        sa_update(Booking)
        .where(Booking.id == booking_id)
        .where(Booking.status == BookingStatus.UNCONFIRMED.value)
        .values(status=BookingStatus.CONFIRMED.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount == 1


async def _load_invoice(db: AsyncSession, booking_id: int, payment_id: int) -> InvoiceSummary:
    res = await db.execute(
        sa_select(Booking)
        .where(Booking.id == booking_id)
        .options(
            selectinload(Booking.user),
            selectinload(Booking.screening).selectinload(Screening.hall),
            selectinload(Booking.seats).selectinload(BookingSeat.seat),
        )
        .execution_options(populate_existing=True)
    )
    booking = res.scalars().one()
    payment = await db.get(Payment, payment_id, populate_existing=True)
    return build_invoice(booking, payment)


async def _apply_succeeded(db: AsyncSession, payment: Payment, now: datetime) -> Tuple[bool, bool, Optional[InvoiceSummary]]:
    # serialize competing attempts for the same booking
    await db.execute(sa_select(Booking.id).where(Booking.id == payment.booking_id).with_for_update())
    res = await db.execute(
        sa_select(Payment.id)
        .where(Payment.booking_id == payment.booking_id)
        .where(Payment.status == PaymentStatus.PAID.value)
        .where(Payment.id != payment.id)
    )
    other_paid = res.scalars().first()
    if other_paid is not None:
        moved = await _move_payment(db, payment.id, PaymentStatus.FAILED, (PaymentStatus.PENDING,), now)
        if moved:
            logger.error("booking %s already paid by payment %s; intent %s needs a refund", payment.booking_id, other_paid, payment.reference)
            log_audit(db, "payment.duplicate_charge", "payment", str(payment.id), {"booking_id": payment.booking_id, "paid_by": other_paid})
        return moved, False, None

    moved = await _move_payment(db, payment.id, PaymentStatus.PAID, (PaymentStatus.PENDING,), now)
    if not moved:
        return False, False, None
    confirmed = await _confirm_booking(db, payment.booking_id, now)
    if payment.voucher_id is not None:
        await vouchers.confirm_usage(db, payment.voucher_id)
    log_audit(db, "payment.paid", "payment", str(payment.id), {"booking_id": payment.booking_id, "intent_id": payment.reference})
    invoice = await _load_invoice(db, payment.booking_id, payment.id) if confirmed else None
    return True, confirmed, invoice


async def reconcile(
    session_factory: SessionFactory,
    gateway: BaseAdapter,
    intent_id: str,
    now: Optional[datetime] = None,
    notifier: Optional[BookingNotifier] = None,
) -> ReconcileOutcome:
    """Fold the provider's view of ``intent_id`` into payment and booking state.

    Safe to call any number of times for the same intent. Confirmation side
    effects are published after commit, only on the call that confirmed the booking.
    """
    if not intent_id or not intent_id.strip():
        raise EngineError(ErrorKind.VALIDATION, "Intent id is required")
    now = now or utcnow()

    async with session_factory() as db:
        res = await db.execute(sa_select(Payment).where(Payment.reference == intent_id))
        payment = res.scalars().first()
        if payment is None:
            raise EngineError(ErrorKind.PAYMENT_NOT_FOUND, f"No payment for intent {intent_id}")
        booking = await db.get(Booking, payment.booking_id)
        if booking is None:
            raise EngineError(ErrorKind.BOOKING_NOT_FOUND, f"Booking {payment.booking_id} was not found")
        expired = is_expired(booking, now)
        payment_id, booking_id, current = payment.id, booking.id, payment.status

    provider_status = None
    if not expired and current not in TERMINAL_PAYMENT_STATUSES:
        provider_status = await gateway.get_intent_status(intent_id)

    async def _work(db: AsyncSession):
        payment = await db.get(Payment, payment_id)
        invoice = None
        confirmed = False
        if expired:
            moved = await _move_payment(db, payment_id, PaymentStatus.EXPIRED, (PaymentStatus.PENDING,), now)
            if moved:
                log_audit(db, "payment.expired", "payment", str(payment_id), {"booking_id": booking_id})
        elif provider_status == ProviderStatus.SUCCEEDED:
            moved, confirmed, invoice = await _apply_succeeded(db, payment, now)
        elif provider_status in ProviderStatus.FAILED:
            moved = await _move_payment(db, payment_id, PaymentStatus.FAILED, (PaymentStatus.PENDING,), now)
            if moved:
                log_audit(db, "payment.failed", "payment", str(payment_id), {"booking_id": booking_id, "provider_status": provider_status})
        else:
            # processing / requires_action: still in flight
            moved = False
        status = await db.scalar(sa_select(Payment.status).where(Payment.id == payment_id))
        return status, moved, confirmed, invoice

    status, moved, confirmed, invoice = await run_atomic(session_factory, _work, name="reconcile")
    if moved:
        logger.info("payment %s (intent %s) moved to %s provider_status=%s", payment_id, intent_id, status, provider_status)
    if invoice is not None:
        await publish_confirmation(notifier, invoice)
    return ReconcileOutcome(
        intent_id=intent_id,
        payment_id=payment_id,
        booking_id=booking_id,
        status=status,
        provider_status=provider_status,
        transitioned=moved,
        booking_confirmed=confirmed,
    )
