from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..models.project import Project
from ..models.test_case import TestCase
from ..schemas.discovery import (
    IvrNodeOut,
    ProjectCreate,
    ProjectOut,
    TestCaseOut,
    TestCaseStatusUpdate,
)
from ..services import discovery_store
from .routes_discovery import verify_api_key

router = APIRouter(tags=["projects"])


def _get_project_or_404(db: Session, project_id: UUID) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.post("/projects", response_model=ProjectOut, status_code=201)
def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    project = Project(name=payload.name, description=payload.description)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@router.get("/projects", response_model=list[ProjectOut])
def list_projects(
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    # Hard cap to avoid unbounded scans
    safe_limit = max(1, min(limit, 100))

    return (
        db.query(Project)
        .order_by(Project.created_at.desc())
        .offset(max(0, offset))
        .limit(safe_limit)
        .all()
    )


@router.get("/projects/{project_id}", response_model=ProjectOut)
def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    return _get_project_or_404(db, project_id)


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    """
    Delete a project with its discovery jobs, logs, nodes and test cases.

    Refused with 409 while a crawl of the project is queued or running.
    """
    project = _get_project_or_404(db, project_id)
    try:
        discovery_store.delete_project(db, project)
    except discovery_store.DiscoveryStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return Response(status_code=204)


@router.get("/projects/{project_id}/nodes", response_model=list[IvrNodeOut])
def list_project_nodes(
    project_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    """
    Nodes discovered so far, in discovery order.

    While a crawl is running this is a partial tree; nodes appear as they are
    reached.
    """
    project = _get_project_or_404(db, project_id)
    return discovery_store.get_nodes(db, project.id)


@router.get("/projects/{project_id}/test-cases", response_model=list[TestCaseOut])
def list_project_test_cases(
    project_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    project = _get_project_or_404(db, project_id)
    return (
        db.query(TestCase)
        .filter(TestCase.project_id == project.id)
        .order_by(TestCase.id.asc())
        .all()
    )


@router.patch("/test-cases/{test_case_id}", response_model=TestCaseOut)
def update_test_case_status(
    test_case_id: int,
    payload: TestCaseStatusUpdate,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    tc = db.query(TestCase).filter(TestCase.id == test_case_id).first()
    if not tc:
        raise HTTPException(status_code=404, detail="Test case not found")

    tc.status = payload.status
    db.commit()
    db.refresh(tc)
    return tc
