import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from boxoffice.deps import get_engine
from boxoffice.http_errors import TRANSIENT_KINDS, http_error, unwrap_or_raise
from boxoffice.schemas.payment import PaymentInitiateRequest, PaymentInitiateResponse, PaymentStatusResponse, WebhookAck
from boxoffice.services.engine import BookingEngine
from boxoffice.services.payment_gateway import forget_event, mark_event_processed

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/initiate", response_model=PaymentInitiateResponse)
async def initiate_payment(req: PaymentInitiateRequest, engine: BookingEngine = Depends(get_engine)):
    handle = unwrap_or_raise(await engine.initiate_payment(req.booking_id, req.voucher_code))
    return PaymentInitiateResponse(
        booking_id=handle.booking_id,
        payment_id=handle.payment_id,
        intent_id=handle.intent_id,
        client_secret=handle.client_secret,
        amount=handle.amount,
        currency=handle.currency,
        voucher_code=handle.voucher_code,
    )


@router.get("/{intent_id}/status", response_model=PaymentStatusResponse)
async def payment_status(intent_id: str, engine: BookingEngine = Depends(get_engine)):
    """Polling counterpart of the webhook: reconciles the intent and reports where it stands."""
    outcome = unwrap_or_raise(await engine.reconcile_payment(intent_id))
    return PaymentStatusResponse(
        intent_id=outcome.intent_id,
        booking_id=outcome.booking_id,
        status=outcome.status,
        provider_status=outcome.provider_status,
        booking_confirmed=outcome.booking_confirmed,
    )


def extract_intent_id(payload: dict):
    # Stripe events carry the intent under data.object; simulated events send it flat
    data = payload.get("data") or {}
    obj = data.get("object") if isinstance(data, dict) else None
    if isinstance(obj, dict) and obj.get("id"):
        return obj["id"]
    return payload.get("intent_id")


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(request: Request, engine: BookingEngine = Depends(get_engine)):
    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}
    gateway = engine.gateway

    if not gateway.verify_signature(headers, body):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed payload") from None
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed payload")

    event_id = payload.get("id") or payload.get("event_id")
    if not event_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing event id for idempotency")

    event_type = payload.get("type") or ""
    if event_type and not event_type.startswith("payment_intent."):
        logger.debug("ignoring %s event %s", event_type, event_id)
        return WebhookAck(received=True)

    intent_id = extract_intent_id(payload)
    if not intent_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing payment intent id")

    added = await mark_event_processed(gateway.provider_name, str(event_id))
    if not added:
        # duplicate delivery
        return WebhookAck(received=True)

    result = await engine.reconcile_payment(intent_id)
    if not result.ok:
        if result.kind in TRANSIENT_KINDS:
            # let the provider redeliver this event
            await forget_event(gateway.provider_name, str(event_id))
            raise http_error(result.error)
        logger.warning("webhook event %s for intent %s rejected: %s", event_id, intent_id, result.kind.value)
        return WebhookAck(received=True)
    return WebhookAck(received=True, status=result.value.status)
