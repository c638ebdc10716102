"""Celery application configuration."""
from __future__ import annotations

from celery import Celery

from ..core.config import settings

celery_app = Celery(
    "mindpocket",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["backend.mindpocket.workers.tasks"],
)

celery_app.conf.update(
    task_default_queue="default",
    task_acks_late=True,
    beat_schedule={
        "reconcile-stale-ingests": {
            "task": "workers.reconcile_stale_ingests",
            "schedule": settings.INGEST_RECONCILE_INTERVAL_SECONDS,
        },
    },
)
