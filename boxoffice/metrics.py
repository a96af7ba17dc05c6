from prometheus_client import Counter, Gauge, Histogram
from boxoffice.redis_client import redis_client
from typing import List
import asyncio

# Notification DLQ depth
NOTIF_DLQ_DEPTH = Gauge("boxoffice_notification_dlq_depth", "Redis DLQ list length for notifications")

# Reservation metrics
RESERVATION_ATTEMPTS = Counter("boxoffice_reservation_attempts_total", "Seat reservation attempts", ["result"])
RESERVATION_LATENCY = Histogram("boxoffice_reservation_latency_seconds", "Latency of the reservation unit")
TX_RETRIES = Counter("boxoffice_transaction_retries_total", "Atomic units replayed after transient database errors", ["unit"])

# Payment metrics
PAYMENT_INTENTS = Counter("boxoffice_payment_intents_total", "Charge intents opened", ["provider"])
PAYMENT_TRANSITIONS = Counter("boxoffice_payment_transitions_total", "Payment status transitions applied by reconciliation", ["status"])
PAYMENT_PROVIDER_ERRORS = Counter("boxoffice_payment_provider_errors_total", "Failed calls to the payment provider", ["provider", "operation"])
VOUCHER_USAGES = Counter("boxoffice_voucher_usages_total", "Voucher usages confirmed", ["result"])

# Reaper metrics
REAPER_BOOKINGS = Counter("boxoffice_reaper_bookings_total", "Expired bookings swept by the reaper")
REAPER_SEATS = Counter("boxoffice_reaper_seats_released_total", "Seats returned to inventory by the reaper")


async def update_queue_depth(keys: List[str] = None):
    """Update queue depth gauges by measuring Redis list lengths for configured keys."""
    keys = keys or ["notification_dlq"]
    async def _get_len(k):
        try:
            return await redis_client.llen(k)
        except Exception:
            return 0

    results = await asyncio.gather(*[_get_len(k) for k in keys])
    # currently map first key to NOTIF_DLQ_DEPTH
    if results:
        NOTIF_DLQ_DEPTH.set(results[0])
