from celery import Celery
from celery.schedules import crontab

from .config import get_settings
from .logging import configure_logging

settings = get_settings()
configure_logging()

celery_app = Celery(
    "cx_navigator",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_routes={
        "app.services.orchestrator.run_discovery_job": {"queue": "discovery"},
        "app.services.orchestrator.continue_discovery_job": {"queue": "discovery"},
    },
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    imports=("app.services.orchestrator", "app.services.retention"),
    beat_schedule={
        # Daily cleanup of finished discovery jobs based on DISCOVERY_RETENTION_DAYS
        "cleanup-expired-discovery-jobs": {
            "task": "app.services.retention.cleanup_expired",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
