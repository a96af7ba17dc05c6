from celery import Celery
from boxoffice.config import settings


celery_app = Celery(
    "boxoffice_tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["boxoffice.notifications.tasks", "boxoffice.maintenance.tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    beat_schedule={
        "reap-expired-bookings": {
            "task": "boxoffice.maintenance.tasks.reap_expired_bookings_task",
            "schedule": float(settings.REAPER_INTERVAL_SECONDS),
        },
    },
)
