from __future__ import annotations

from celery import Celery
from kombu import Queue

from fileshare.config import settings

MAINTENANCE_Q = "maintenance"

celery = Celery("fileshare", broker=settings.redis_dsn, backend=settings.redis_dsn)
celery.conf.task_serializer = "json"
celery.conf.result_serializer = "json"
celery.conf.accept_content = ["json"]
celery.conf.task_queues = (Queue(MAINTENANCE_Q),)
celery.conf.task_default_queue = MAINTENANCE_Q
celery.conf.imports = ("fileshare.tasks.purge",)

celery.conf.beat_schedule = {
    "purge-expired-grants": {
        "task": "grants.purge_expired",
        "schedule": settings.grant_purge_interval_min * 60.0,
        "args": (),
        "options": {"queue": MAINTENANCE_Q},
    },
}
