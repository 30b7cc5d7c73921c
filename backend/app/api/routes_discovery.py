from uuid import UUID, uuid4
import logging

from fastapi import APIRouter, Depends, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.discovery import (
    DiscoveryRequest,
    DiscoveryJobOut,
    DiscoveryLogOut,
    ResumeRequest,
)
from ..models.discovery_job import DiscoveryStatus
from ..models.project import Project
from ..services import discovery_store
from ..core.celery_app import celery_app
from ..core.config import get_settings

router = APIRouter(tags=["discovery"])

settings = get_settings()
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
logger = logging.getLogger(__name__)


def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    """
    Simple header-based API key authentication.

    - In dev, if API_AUTH_KEY is not set, auth is skipped.
    - Otherwise, require X-API-Key == API_AUTH_KEY.
    """
    expected = settings.API_AUTH_KEY

    # In dev with no configured key, skip auth for convenience
    if settings.ENV == "dev" and not expected:
        return

    if not expected:
        # In non-dev environments, missing config is treated as misconfiguration
        raise HTTPException(status_code=401, detail="API key not configured")

    if api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")


@router.post(
    "/projects/{project_id}/discovery",
    response_model=DiscoveryJobOut,
    status_code=202,
)
def start_discovery(
    project_id: UUID,
    payload: DiscoveryRequest,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    # Correlation ID so the crawl can be traced end-to-end
    request_id = str(uuid4())

    # A new run wipes the project's nodes; never while another run still needs them
    try:
        job = discovery_store.create_job(
            db,
            project_id=project.id,
            entry_point=payload.entry_point,
            input_type=payload.input_type,
        )
    except discovery_store.DiscoveryStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        "Discovery job queued",
        extra={
            "job_id": str(job.id),
            "project_id": str(project.id),
            "request_id": request_id,
            "step": "job_queued",
        },
    )

    celery_app.send_task(
        "app.services.orchestrator.run_discovery_job",
        args=[str(job.id)],
        queue="discovery",
    )

    return job


@router.get("/discovery/{job_id}")
def get_discovery_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    job = discovery_store.get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    logs = discovery_store.get_logs(db, job.id)

    return {
        "job": DiscoveryJobOut.model_validate(job).model_dump(mode="json"),
        "logs": [DiscoveryLogOut.model_validate(e).model_dump(mode="json") for e in logs],
    }


@router.post(
    "/discovery/{job_id}/resume",
    response_model=DiscoveryJobOut,
    status_code=202,
)
def resume_discovery_job(
    job_id: UUID,
    payload: ResumeRequest,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    """
    Supply the value a paused crawl asked for (e.g. a PIN).

    The worker appends it to the path of the frame that paused and continues
    the same traversal.
    """
    job = discovery_store.get_job(db, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if job.status != DiscoveryStatus.WAITING_FOR_INPUT:
        raise HTTPException(
            status_code=409,
            detail=f"Job is {job.status.value}; only jobs waiting for input can be resumed.",
        )

    logger.info(
        "Discovery resume requested",
        extra={"job_id": str(job.id), "project_id": str(job.project_id), "step": "resume_queued"},
    )

    celery_app.send_task(
        "app.services.orchestrator.continue_discovery_job",
        args=[str(job.id), payload.input],
        queue="discovery",
    )

    return job
