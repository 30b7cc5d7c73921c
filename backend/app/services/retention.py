from __future__ import annotations

from datetime import datetime, timedelta
import logging

from sqlalchemy.orm import Session

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import SessionLocal
from ..models.discovery_job import DiscoveryJob
from ..models.discovery_log import DiscoveryLog
from .discovery_store import TERMINAL_STATUSES

logger = logging.getLogger(__name__)
settings = get_settings()


def delete_expired_jobs(db: Session, retention_days: int) -> int:
    """
    Delete finished DiscoveryJob records (and their logs) older than the
    retention window, based on DiscoveryJob.start_time.

    Jobs that are still running or waiting for input are kept regardless of
    age. IVR nodes belong to the project and are replaced by the next
    discovery run, so they are not touched here.
    """
    cutoff = datetime.utcnow() - timedelta(days=retention_days)
    old_jobs = (
        db.query(DiscoveryJob)
        .filter(DiscoveryJob.start_time < cutoff)
        .filter(DiscoveryJob.status.in_(TERMINAL_STATUSES))
        .all()
    )
    job_ids = [j.id for j in old_jobs]

    if not job_ids:
        return 0

    db.query(DiscoveryLog).filter(DiscoveryLog.job_id.in_(job_ids)).delete(
        synchronize_session=False
    )
    deleted_jobs = (
        db.query(DiscoveryJob)
        .filter(DiscoveryJob.id.in_(job_ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted_jobs


@celery_app.task(name="app.services.retention.cleanup_expired")
def cleanup_expired() -> int:
    """Periodic task enforcing DISCOVERY_RETENTION_DAYS."""
    db: Session = SessionLocal()
    try:
        deleted_jobs = delete_expired_jobs(db, settings.DISCOVERY_RETENTION_DAYS)
        if not deleted_jobs:
            logger.info(
                "No expired discovery jobs found for cleanup",
                extra={"step": "retention"},
            )
            return 0

        logger.info(
            "Deleted expired discovery jobs",
            extra={"step": "retention", "deleted_jobs": deleted_jobs},
        )
        return deleted_jobs
    except Exception:
        db.rollback()
        logger.exception(
            "Error during cleanup_expired",
            extra={"step": "retention"},
        )
        raise
    finally:
        db.close()
