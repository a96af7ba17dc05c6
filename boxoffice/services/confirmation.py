"""Side effects of a booking moving into Confirmed.

Built inside the reconciliation transaction as plain values, handed to a
notifier only after commit. Notification failures never affect payment state.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol

from boxoffice.config import settings
from boxoffice.models.models import Booking, Payment
from boxoffice.services.pricing import round_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvoiceSummary:
    booking_id: int
    reference: str
    payment_method: str
    amount_paid: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    currency: str
    paid_at: Optional[datetime]
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    movie_title: Optional[str] = None
    hall_name: Optional[str] = None
    cinema_name: Optional[str] = None
    session_start: Optional[datetime] = None
    seats: List[str] = field(default_factory=list)

    def as_context(self) -> dict:
        ctx = asdict(self)
        for key in ("amount_paid", "tax_amount", "grand_total"):
            ctx[key] = str(ctx[key])
        for key in ("paid_at", "session_start"):
            ctx[key] = ctx[key].isoformat() if ctx[key] else None
        return ctx


def build_invoice(booking: Booking, payment: Payment, tax_rate: Optional[Decimal] = None) -> InvoiceSummary:
    """Expects booking.user, booking.screening.hall and booking.seats[*].seat loaded."""
    rate = settings.INVOICE_TAX_RATE if tax_rate is None else tax_rate
    amount = Decimal(payment.amount_paid)
    screening = booking.screening
    hall = screening.hall if screening is not None else None
    user = booking.user
    return InvoiceSummary(
        booking_id=booking.id,
        reference=payment.reference,
        payment_method=payment.method,
        amount_paid=amount,
        tax_amount=round_money(amount * rate),
        grand_total=round_money(amount * (1 + rate)),
        currency=payment.currency,
        paid_at=payment.paid_at,
        user_email=user.email if user is not None else None,
        user_name=user.full_name if user is not None else None,
        movie_title=screening.movie_title if screening is not None else None,
        hall_name=hall.name if hall is not None else None,
        cinema_name=hall.cinema_name if hall is not None else None,
        session_start=screening.start_time if screening is not None else None,
        seats=sorted(bs.seat.seat_number for bs in booking.seats if bs.seat is not None),
    )


class BookingNotifier(Protocol):
    async def booking_confirmed(self, invoice: InvoiceSummary) -> None:
        ...


class CeleryNotifier:
    """Publishes confirmation emails through the notification Celery task."""

    template_name = "booking_confirmed.txt"

    async def booking_confirmed(self, invoice: InvoiceSummary) -> None:
        if not invoice.user_email:
            logger.info("booking %s confirmed without a contact email; skipping notification", invoice.booking_id)
            return
        from boxoffice.notifications.tasks import send_notification_task

        context = invoice.as_context()
        context["subject"] = f"Your tickets for booking #{invoice.booking_id}"
        send_notification_task.delay("email", invoice.user_email, self.template_name, context)


async def publish_confirmation(notifier: Optional[BookingNotifier], invoice: InvoiceSummary) -> None:
    """Fire-and-forget: failures are logged, never raised to the payment flow."""
    if notifier is None:
        return
    try:
        await notifier.booking_confirmed(invoice)
    except Exception:
        logger.exception("confirmation side effects failed for booking %s", invoice.booking_id)
