"""Celery application configuration."""

from celery import Celery

from pushbeacon.config import get_settings

settings = get_settings()

app = Celery(
    "pushbeacon",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["pushbeacon.tasks.campaigns"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=900,  # large campaigns with retry backoff
    task_soft_time_limit=840,
    beat_schedule={
        "process-scheduled-campaigns": {
            "task": "pushbeacon.tasks.campaigns.process_scheduled_campaigns",
            "schedule": 60.0,
        },
    },
)
