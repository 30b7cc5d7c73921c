from __future__ import annotations

from uuid import UUID
import logging

from sqlalchemy.orm import Session

from ..core.celery_app import celery_app
from ..core.db import SessionLocal
from .crawler import resume_discovery, run_discovery
from .discovery_store import DiscoveryStateError

logger = logging.getLogger(__name__)


@celery_app.task(name="app.services.orchestrator.run_discovery_job", bind=True, queue="discovery")
def run_discovery_job(self, job_id: str) -> str | None:
    db: Session = SessionLocal()
    try:
        logger.info(
            "Starting discovery job",
            extra={"job_id": job_id, "step": "start"},
        )
        job = run_discovery(db, UUID(job_id))
        logger.info(
            "Discovery job finished with status %s",
            job.status.value,
            extra={"job_id": job_id, "step": "finished"},
        )
        return job.status.value
    except (LookupError, DiscoveryStateError) as e:
        # Stale or duplicate delivery: nothing to run
        logger.warning(
            "Skipping discovery job: %s",
            e,
            extra={"job_id": job_id, "step": "skipped"},
        )
        return None
    except Exception:
        db.rollback()
        logger.exception(
            "Discovery job crashed",
            extra={"job_id": job_id, "step": "failed"},
        )
        raise
    finally:
        db.close()


@celery_app.task(name="app.services.orchestrator.continue_discovery_job", bind=True, queue="discovery")
def continue_discovery_job(self, job_id: str, user_input: str) -> str | None:
    db: Session = SessionLocal()
    try:
        logger.info(
            "Resuming discovery job",
            extra={"job_id": job_id, "step": "resume"},
        )
        job = resume_discovery(db, UUID(job_id), user_input)
        logger.info(
            "Discovery job finished with status %s",
            job.status.value,
            extra={"job_id": job_id, "step": "finished"},
        )
        return job.status.value
    except (LookupError, DiscoveryStateError) as e:
        logger.warning(
            "Skipping discovery resume: %s",
            e,
            extra={"job_id": job_id, "step": "skipped"},
        )
        return None
    except Exception:
        db.rollback()
        logger.exception(
            "Discovery resume crashed",
            extra={"job_id": job_id, "step": "failed"},
        )
        raise
    finally:
        db.close()
