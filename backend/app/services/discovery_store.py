"""
Durable record of a discovery crawl: job lifecycle, append-only log stream,
and the incrementally built IVR node tree.

All helpers take the caller's SQLAlchemy session and commit immediately so
logs and nodes become visible to readers while a crawl is still running.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from ..models.discovery_job import DiscoveryJob, DiscoveryStatus
from ..models.discovery_log import DiscoveryLog
from ..models.ivr_node import IvrNode
from ..models.project import Project
from ..models.test_case import TestCase

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

TERMINAL_STATUSES = (DiscoveryStatus.COMPLETED, DiscoveryStatus.FAILED)
ACTIVE_STATUSES = (
    DiscoveryStatus.QUEUED,
    DiscoveryStatus.RUNNING,
    DiscoveryStatus.WAITING_FOR_INPUT,
)


class DiscoveryStateError(ValueError):
    """Requested job transition is not valid from the job's current status."""


def get_job(db: Session, job_id: UUID, *, for_update: bool = False) -> Optional[DiscoveryJob]:
    query = db.query(DiscoveryJob).filter(DiscoveryJob.id == job_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_active_job(
    db: Session,
    project_id: UUID,
    statuses=ACTIVE_STATUSES,
) -> Optional[DiscoveryJob]:
    """Most recent job of the project that has not reached a terminal status."""
    return (
        db.query(DiscoveryJob)
        .filter(DiscoveryJob.project_id == project_id)
        .filter(DiscoveryJob.status.in_(statuses))
        .order_by(DiscoveryJob.start_time.desc())
        .first()
    )


def clear_project_nodes(db: Session, project_id: UUID) -> int:
    """Delete every IVR node of a project, plus the test cases that targeted them."""
    node_ids = [row.id for row in db.query(IvrNode.id).filter(IvrNode.project_id == project_id)]
    if not node_ids:
        return 0

    db.query(TestCase).filter(TestCase.target_node_id.in_(node_ids)).delete(
        synchronize_session=False
    )
    # Drop tree/back edges first so the bulk delete never trips FK ordering
    db.query(IvrNode).filter(IvrNode.project_id == project_id).update(
        {IvrNode.parent_id: None, IvrNode.linked_node_id: None},
        synchronize_session=False,
    )
    deleted = (
        db.query(IvrNode)
        .filter(IvrNode.project_id == project_id)
        .delete(synchronize_session=False)
    )
    return deleted


def delete_project(db: Session, project: Project) -> None:
    """
    Remove a project with its jobs, logs, nodes and test cases.

    Rows are deleted explicitly, children first, so the cascade holds even
    where the database does not enforce foreign keys.
    """
    project_id = project.id
    if get_active_job(db, project_id, (DiscoveryStatus.QUEUED, DiscoveryStatus.RUNNING)):
        raise DiscoveryStateError(f"Project {project_id} has a discovery job in progress")

    db.query(TestCase).filter(TestCase.project_id == project_id).delete(
        synchronize_session=False
    )
    clear_project_nodes(db, project_id)

    job_ids = [row.id for row in db.query(DiscoveryJob.id).filter(DiscoveryJob.project_id == project_id)]
    if job_ids:
        db.query(DiscoveryLog).filter(DiscoveryLog.job_id.in_(job_ids)).delete(
            synchronize_session=False
        )
        db.query(DiscoveryJob).filter(DiscoveryJob.id.in_(job_ids)).delete(
            synchronize_session=False
        )

    db.delete(project)
    db.commit()

    logger.info(
        "Project deleted",
        extra={"project_id": str(project_id), "step": "project_deleted", "deleted_jobs": len(job_ids)},
    )


def create_job(
    db: Session,
    project_id: UUID,
    entry_point: str,
    input_type: Optional[str] = None,
) -> DiscoveryJob:
    """
    Start a fresh discovery job. Destructive: all nodes previously
    discovered for the project are removed before the job exists.

    Refused while another job of the project is queued, running or waiting
    for input: its saved stack references the nodes this would delete.
    """
    active = get_active_job(db, project_id)
    if active is not None:
        raise DiscoveryStateError(
            f"Project {project_id} already has a {active.status.value} discovery job ({active.id})"
        )

    cleared = clear_project_nodes(db, project_id)

    job = DiscoveryJob(
        project_id=project_id,
        entry_point=entry_point,
        input_type=input_type,
        status=DiscoveryStatus.QUEUED,
        start_time=datetime.utcnow(),
    )
    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(
        "Discovery job created",
        extra={
            "job_id": str(job.id),
            "project_id": str(project_id),
            "step": "job_created",
            "cleared_nodes": cleared,
        },
    )
    return job


def write_log(db: Session, job_id: UUID, message: str, level: str = "info") -> DiscoveryLog:
    entry = DiscoveryLog(
        job_id=job_id,
        message=message,
        level=level,
        created_at=datetime.utcnow(),
    )
    db.add(entry)
    db.commit()

    logger.log(
        LOG_LEVELS.get(level, logging.INFO),
        message,
        extra={"job_id": str(job_id), "step": "discovery_log"},
    )
    return entry


def insert_node(
    db: Session,
    *,
    project_id: UUID,
    parent_id: Optional[int],
    type: str,
    label: str,
    content: str,
    meta: Dict[str, Any],
    fingerprint: str,
    is_loop: bool = False,
    linked_node_id: Optional[int] = None,
) -> IvrNode:
    node = IvrNode(
        project_id=project_id,
        parent_id=parent_id,
        type=type,
        label=label,
        content=content,
        meta=meta,
        fingerprint=fingerprint,
        is_loop=is_loop,
        linked_node_id=linked_node_id if is_loop else None,
        created_at=datetime.utcnow(),
    )
    db.add(node)
    db.commit()
    db.refresh(node)
    return node


def mark_running(db: Session, job: DiscoveryJob) -> None:
    if job.status in TERMINAL_STATUSES:
        raise DiscoveryStateError(f"Job {job.id} is already {job.status.value}")
    job.status = DiscoveryStatus.RUNNING
    db.commit()


def set_waiting(
    db: Session,
    job: DiscoveryJob,
    waiting_for: str,
    resume_state: List[Dict[str, Any]],
) -> None:
    job.status = DiscoveryStatus.WAITING_FOR_INPUT
    job.waiting_for = waiting_for
    job.resume_state = resume_state
    db.commit()


def resume_job(db: Session, job: DiscoveryJob) -> List[Dict[str, Any]]:
    """
    Take the saved traversal stack off a waiting job and mark it running.
    Only one caller can win this: the stack is cleared as it is handed out.
    """
    if job.status != DiscoveryStatus.WAITING_FOR_INPUT or job.resume_state is None:
        raise DiscoveryStateError(
            f"Job {job.id} is {job.status.value}; only waiting_for_input jobs can be resumed"
        )

    stack = list(job.resume_state)
    job.status = DiscoveryStatus.RUNNING
    job.waiting_for = None
    job.resume_state = None
    db.commit()
    return stack


def complete_job(
    db: Session,
    job: DiscoveryJob,
    *,
    status: DiscoveryStatus,
    platform: str,
    artifacts: Optional[Dict[str, Any]] = None,
) -> None:
    if status not in TERMINAL_STATUSES:
        raise DiscoveryStateError(f"{status.value} is not a terminal status")

    job.status = status
    job.platform = platform
    job.end_time = datetime.utcnow()
    job.waiting_for = None
    job.resume_state = None
    if artifacts is not None:
        job.artifacts = artifacts

    if status == DiscoveryStatus.COMPLETED:
        project = db.query(Project).filter(Project.id == job.project_id).first()
        if project:
            project.platform = platform

    db.commit()


def get_logs(db: Session, job_id: UUID) -> List[DiscoveryLog]:
    return (
        db.query(DiscoveryLog)
        .filter(DiscoveryLog.job_id == job_id)
        .order_by(DiscoveryLog.created_at.asc(), DiscoveryLog.id.asc())
        .all()
    )


def get_nodes(db: Session, project_id: UUID) -> List[IvrNode]:
    return (
        db.query(IvrNode)
        .filter(IvrNode.project_id == project_id)
        .order_by(IvrNode.id.asc())
        .all()
    )


def visited_fingerprints(db: Session, project_id: UUID) -> Dict[str, int]:
    """fingerprint -> id of the first non-loop node carrying it."""
    visited: Dict[str, int] = {}
    for node in get_nodes(db, project_id):
        if node.is_loop or not node.fingerprint:
            continue
        visited.setdefault(node.fingerprint, node.id)
    return visited


def node_to_dict(node: IvrNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "project_id": str(node.project_id),
        "parent_id": node.parent_id,
        "type": node.type,
        "label": node.label,
        "content": node.content,
        "metadata": node.meta or {},
        "fingerprint": node.fingerprint,
        "is_loop": node.is_loop,
        "linked_node_id": node.linked_node_id,
        "created_at": node.created_at.isoformat() if node.created_at else None,
    }
