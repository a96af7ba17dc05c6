import hmac
import hashlib
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional
from uuid import uuid4

import httpx

from boxoffice.config import settings
from boxoffice.metrics import PAYMENT_PROVIDER_ERRORS
from boxoffice.redis_client import redis_client
from boxoffice.services.errors import EngineError, ErrorKind
from boxoffice.services.pricing import round_money

logger = logging.getLogger(__name__)


class ProviderStatus:
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"

    FAILED = (CANCELED, REQUIRES_PAYMENT_METHOD)


@dataclass(frozen=True)
class IntentHandle:
    intent_id: str
    client_secret: str


def to_minor_units(amount: Decimal) -> int:
    return int(round_money(Decimal(amount)) * 100)


class BaseAdapter:
    provider_name: str = "base"
    method_name: str = "base"

    async def create_intent(self, amount: Decimal, currency: str, metadata: Dict[str, str]) -> IntentHandle:
        raise NotImplementedError()

    async def get_intent_status(self, intent_id: str) -> str:
        raise NotImplementedError()

    def verify_signature(self, headers: Dict[str, str], body: bytes) -> bool:
        # default: hex HMAC-SHA256 of the raw body using the provider secret
        secret = self.get_secret()
        if not secret:
            return False
        sig_header = headers.get("x-signature") or ""
        computed = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(computed, sig_header)

    def get_secret(self) -> Optional[str]:
        return ""

    def _provider_error(self, operation: str, message: str, exc: Optional[Exception] = None) -> EngineError:
        PAYMENT_PROVIDER_ERRORS.labels(provider=self.provider_name, operation=operation).inc()
        logger.error("%s %s failed: %s", self.provider_name, operation, message)
        return EngineError(ErrorKind.PAYMENT_PROVIDER_ERROR, message, {"provider": self.provider_name, "operation": operation})


class StripeAdapter(BaseAdapter):
    """PaymentIntents over the Stripe REST API."""

    provider_name = "stripe"
    method_name = "Stripe"
    SIGNATURE_TOLERANCE_SECONDS = 300

    def __init__(self, api_key: Optional[str] = None, api_base: Optional[str] = None, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.api_base = api_base or settings.STRIPE_API_BASE
        self.timeout = timeout or settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    def get_secret(self) -> Optional[str]:
        return settings.STRIPE_WEBHOOK_SECRET

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self.transport,
        )

    async def _call(self, operation: str, method: str, path: str, data: Optional[Dict[str, str]] = None) -> Dict:
        try:
            async with self._client() as client:
                resp = await client.request(method, path, data=data)
        except httpx.HTTPError as exc:
            raise self._provider_error(operation, f"Stripe request failed: {exc.__class__.__name__}") from exc
        if resp.status_code >= 400:
            try:
                message = resp.json().get("error", {}).get("message") or resp.text
            except ValueError:
                message = resp.text
            raise self._provider_error(operation, f"Stripe returned {resp.status_code}: {message}")
        return resp.json()

    async def create_intent(self, amount: Decimal, currency: str, metadata: Dict[str, str]) -> IntentHandle:
        form = {
            "amount": str(to_minor_units(amount)),
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)
        payload = await self._call("create_intent", "POST", "/payment_intents", data=form)
        intent_id = payload.get("id")
        client_secret = payload.get("client_secret")
        if not intent_id or not client_secret:
            raise self._provider_error("create_intent", "Stripe response is missing id or client_secret")
        return IntentHandle(intent_id=intent_id, client_secret=client_secret)

    async def get_intent_status(self, intent_id: str) -> str:
        payload = await self._call("get_intent_status", "GET", f"/payment_intents/{intent_id}")
        status = payload.get("status")
        if not status:
            raise self._provider_error("get_intent_status", "Stripe response is missing status")
        return status

    def verify_signature(self, headers: Dict[str, str], body: bytes) -> bool:
        # Stripe-Signature: t=<unix>,v1=<hex hmac of "t.body">
        secret = self.get_secret()
        header = headers.get("stripe-signature") or ""
        if not secret or not header:
            return False
        parts = dict(item.split("=", 1) for item in header.split(",") if "=" in item)
        timestamp = parts.get("t")
        signature = parts.get("v1")
        if not timestamp or not signature or not timestamp.isdigit():
            return False
        if abs(time.time() - int(timestamp)) > self.SIGNATURE_TOLERANCE_SECONDS:
            return False
        signed = timestamp.encode() + b"." + body
        computed = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
        return hmac.compare_digest(computed, signature)


class SimulatedAdapter(BaseAdapter):
    """In-process provider for local development; intents start in requires_payment_method."""

    provider_name = "simulated"
    method_name = "Simulated"

    def __init__(self, secret: str = "simulated-secret"):
        self.secret = secret
        self.intents: Dict[str, Dict] = {}

    def get_secret(self) -> Optional[str]:
        return self.secret

    async def create_intent(self, amount: Decimal, currency: str, metadata: Dict[str, str]) -> IntentHandle:
        intent_id = f"sim_{uuid4().hex}"
        client_secret = f"{intent_id}_secret_{uuid4().hex[:12]}"
        self.intents[intent_id] = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "metadata": dict(metadata),
            "status": ProviderStatus.REQUIRES_PAYMENT_METHOD,
        }
        return IntentHandle(intent_id=intent_id, client_secret=client_secret)

    async def get_intent_status(self, intent_id: str) -> str:
        intent = self.intents.get(intent_id)
        if intent is None:
            raise self._provider_error("get_intent_status", f"Unknown intent {intent_id}")
        return intent["status"]

    def set_status(self, intent_id: str, status: str) -> None:
        self.intents[intent_id]["status"] = status


ADAPTERS = {
    "stripe": StripeAdapter,
    "simulated": SimulatedAdapter,
}

_instances: Dict[str, BaseAdapter] = {}


def get_adapter(name: str) -> BaseAdapter:
    key = name.lower()
    if key not in ADAPTERS:
        raise EngineError(ErrorKind.PAYMENT_PROVIDER_ERROR, f"Unknown provider: {name}")
    if key not in _instances:
        _instances[key] = ADAPTERS[key]()
    return _instances[key]


IDEMPOTENCY_KEY_TPL = "payment_webhook:{provider}:{event_id}"


async def mark_event_processed(provider: str, event_id: str, ttl: int = 60 * 60 * 24) -> bool:
    key = IDEMPOTENCY_KEY_TPL.format(provider=provider, event_id=event_id)
    # set NX to ensure we only process once
    added = await redis_client.set(key, "1", ex=ttl, nx=True)
    return bool(added)


async def forget_event(provider: str, event_id: str) -> None:
    """Drop the de-duplication key so the provider's redelivery is processed again."""
    key = IDEMPOTENCY_KEY_TPL.format(provider=provider, event_id=event_id)
    await redis_client.delete(key)
