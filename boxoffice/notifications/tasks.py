import asyncio
import json

from celery.utils.log import get_task_logger
from redis.asyncio import Redis

from boxoffice.celery_app import celery_app
from boxoffice.config import settings
from boxoffice.services.notification_providers import get_provider
from boxoffice.services.notification_service import NOTIF_COUNTER_RETRIED, NotificationService

logger = get_task_logger(__name__)

DLQ_KEY = "notification_dlq"


@celery_app.task(bind=True, retry_backoff=True, retry_backoff_max=600, retry_jitter=True, max_retries=3)
def send_notification_task(self, channel: str, to: str, template_name: str, context: dict = None, locale: str = "en"):
    """Deliver a booking email; retried with backoff, parked in the Redis DLQ when retries are exhausted."""
    context = context or {}
    provider_name = settings.NOTIFICATION_PROVIDER

    async def _do():
        svc = NotificationService(provider=get_provider(provider_name))
        if channel != "email":
            raise ValueError(f"Unsupported channel: {channel}")
        await svc.send_email(
            to=to,
            subject=context.get("subject", ""),
            template_name=template_name,
            context=context,
            locale=locale,
            meta={"from": settings.NOTIFICATION_SENDER},
        )

    async def _dead_letter():
        entry = {"channel": channel, "to": to, "template": template_name, "context": context, "locale": locale}
        # fresh client: each asyncio.run gets its own event loop
        client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        try:
            await client.rpush(DLQ_KEY, json.dumps(entry, default=str))
        finally:
            await client.aclose()

    try:
        asyncio.run(_do())
    except Exception as exc:
        if self.request.retries >= self.max_retries:
            logger.error("Max retries exceeded for notification to %s; sending to DLQ", to)
            asyncio.run(_dead_letter())
            raise
        NOTIF_COUNTER_RETRIED.labels(channel=channel, provider=provider_name).inc()
        logger.exception("Error sending notification: %s", exc)
        raise self.retry(exc=exc)
