from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from duplicate_detector.api.dependencies import get_current_user
from duplicate_detector.api.responses import success
from duplicate_detector.core.database import get_db
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.users import User
from duplicate_detector.schemas.pattern_schema import PatternBatch, PatternResponse
from duplicate_detector.schemas.project_schema import (
    ProjectFields, ProjectPage, ProjectResponse, ProjectStats, ProjectSyncRequest
)
from duplicate_detector.services import patterns as pattern_service
from duplicate_detector.services import projects as project_service
from duplicate_detector.services.stats import compute_stats

router = APIRouter()
logger = get_logger(__name__)

# Endpoints:
#   GET    /api/v1/projects                         -> paginated project list
#   GET    /api/v1/projects/stats                   -> dashboard counters
#   POST   /api/v1/projects/sync                    -> mirror the provider's project list
#   PUT    /api/v1/projects/{external_ref}          -> upsert one cached project
#   DELETE /api/v1/projects/{project_id}            -> delete project and its patterns
#   GET    /api/v1/projects/{project_id}/patterns   -> current patterns
#   PUT    /api/v1/projects/{project_id}/patterns   -> replace patterns (extraction sink)


@router.get("", status_code=status.HTTP_200_OK)
def read_projects(
    limit: int = Query(default=20, description="Page size, 1-100"),
    offset: int = Query(default=0, description="Rows to skip"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Projects of the authenticated user, most recently updated first.
    Range checks happen in the service so violations use the error envelope.
    """
    items, has_more = project_service.list_projects(db, current_user.id, limit, offset)
    page = ProjectPage(
        items=[ProjectResponse.model_validate(p) for p in items],
        limit=limit,
        offset=offset,
        has_more=has_more,
    )
    return success(page)


@router.get("/stats", status_code=status.HTTP_200_OK)
def read_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """Totals shown on the dashboard header cards."""
    return success(ProjectStats(**compute_stats(db, current_user.id)))


@router.post("/sync", status_code=status.HTTP_200_OK)
def sync_projects(
    body: ProjectSyncRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Replaces the cached project list with the one reported by the hosting
    provider. Projects missing from the list are removed when `prune` is set.
    """
    synced = project_service.sync_projects(db, current_user.id, body.projects, prune=body.prune)
    return success([ProjectResponse.model_validate(p) for p in synced])


@router.put("/{external_ref}", status_code=status.HTTP_200_OK)
def upsert_project(
    external_ref: str,
    fields: ProjectFields,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """Creates or refreshes the cached copy of one remote project."""
    project = project_service.upsert_project(db, current_user.id, external_ref, fields)
    return success(ProjectResponse.model_validate(project))


@router.delete("/{project_id}", status_code=status.HTTP_200_OK)
def delete_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Deletes the project together with its code patterns and their
    duplicate group memberships.
    """
    project_service.delete_project(db, current_user.id, project_id)
    return success({"deleted": project_id})


@router.get("/{project_id}/patterns", status_code=status.HTTP_200_OK)
def read_patterns(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    rows = pattern_service.list_patterns(db, current_user.id, project_id)
    return success([PatternResponse.model_validate(p) for p in rows])


@router.put("/{project_id}/patterns", status_code=status.HTTP_200_OK)
def record_patterns(
    project_id: int,
    batch: PatternBatch,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Extraction sink: atomically replaces every pattern of the project with
    the posted list. One invalid entry rejects the whole batch.
    """
    created = pattern_service.record_patterns(db, current_user.id, project_id, batch.patterns)
    return success([PatternResponse.model_validate(p) for p in created])
