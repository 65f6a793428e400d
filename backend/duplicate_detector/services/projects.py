from datetime import datetime, timezone
from typing import Any, Iterable, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from duplicate_detector.core.config import settings
from duplicate_detector.core.exceptions import ConflictError, NotFoundError, ValidationError
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.patterns import CodePattern
from duplicate_detector.models.projects import Project
from duplicate_detector.schemas.project_schema import ProjectFields, RemoteProject
from duplicate_detector.services.duplicates import detach_patterns
from duplicate_detector.services.users import get_user, lock_owner
from duplicate_detector.utils.validation import check_page, parse_items, parse_model

logger = get_logger(__name__)


def get_project(db: Session, user_id: str, project_id: int, for_update: bool = False) -> Project:
    """
    Ownership-checked lookup.

    Args:
        for_update: Take a row lock (SELECT ... FOR UPDATE) so concurrent
                    writers on the same project are serialized.

    Raises:
        NotFoundError: If the project does not exist or belongs to another user.
    """
    query = (
        db.query(Project)
        .filter(Project.id == project_id)
        .filter(Project.user_id == user_id)
    )
    if for_update:
        query = query.with_for_update()
    project = query.first()
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def list_projects(
    db: Session,
    user_id: str,
    limit: int = 20,
    offset: int = 0
) -> tuple[list[Project], bool]:
    """
    One page of the user's projects, most recently updated first.

    Returns:
        (projects, has_more) where has_more tells whether a further page exists.

    Raises:
        ValidationError: If limit is outside 1..PROJECTS_PAGE_MAX or offset is negative.
    """
    check_page(limit, offset, settings.PROJECTS_PAGE_MAX)

    rows = (
        db.query(Project)
        .filter(Project.user_id == user_id)
        .order_by(Project.last_updated.desc(), Project.id.desc())
        .offset(offset)
        .limit(limit + 1)
        .all()
    )
    return rows[:limit], len(rows) > limit


def upsert_project(
    db: Session,
    user_id: str,
    external_ref: str,
    fields: Union[ProjectFields, dict[str, Any]]
) -> Project:
    """
    Inserts or refreshes the cached copy of one remote project, keyed by
    (user_id, external_ref).

    Raises:
        ValidationError: If the fields are malformed.
        NotFoundError: If the user does not exist.
        ConflictError: If a concurrent writer cached the same project first.
    """
    fields = parse_model(ProjectFields, fields)
    if not external_ref:
        raise ValidationError("external_ref must not be empty")
    get_user(db, user_id)

    try:
        project = _apply(db, user_id, external_ref, fields)
        db.commit()
    except IntegrityError:
        # Concurrent upsert cached the same remote project first
        db.rollback()
        raise ConflictError(f"Project '{external_ref}' was cached concurrently, retry the request")
    except Exception:
        db.rollback()
        raise

    db.refresh(project)
    return project


def delete_project(db: Session, user_id: str, project_id: int) -> None:
    """
    Deletes the project with its code patterns and their group links.
    Duplicate groups left with fewer than two members are dropped too.

    Raises:
        NotFoundError: If the project does not belong to user_id.
    """
    try:
        # Owner first, then project: the lock order shared by every writer
        lock_owner(db, user_id)
        project = get_project(db, user_id, project_id, for_update=True)
        _remove(db, user_id, project)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Deleted project {project_id}.", extra={"user_id": user_id})


def sync_projects(
    db: Session,
    user_id: str,
    remote_projects: Iterable[Union[RemoteProject, dict[str, Any]]],
    prune: bool = True
) -> list[Project]:
    """
    Mirrors the provider's full project list for a user in one transaction.

    Every listed project is upserted. With `prune`, cached projects the
    provider no longer lists are deleted with the same cascade as
    delete_project.

    Returns:
        The synced projects, in input order.

    Raises:
        ValidationError: If any entry is malformed.
        NotFoundError: If the user does not exist.
        ConflictError: If a concurrent writer touched the same projects.
    """
    remote = parse_items(RemoteProject, remote_projects)

    seen = {}
    for item in remote:
        # Last occurrence wins when the provider lists a project twice
        seen[item.external_id] = item

    try:
        lock_owner(db, user_id)
        synced = [
            _apply(db, user_id, external_id, item)
            for external_id, item in seen.items()
        ]

        removed = 0
        if prune:
            stale = (
                db.query(Project)
                .filter(Project.user_id == user_id)
                .filter(Project.external_id.notin_(list(seen)))
                .all()
            )
            for project in stale:
                _remove(db, user_id, project)
            removed = len(stale)

        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Project list changed concurrently, retry the sync")
    except Exception:
        db.rollback()
        raise

    for project in synced:
        db.refresh(project)

    logger.info(
        f"Synced {len(synced)} projects, removed {removed}.",
        extra={"user_id": user_id}
    )
    return synced


def _apply(db: Session, user_id: str, external_ref: str, fields: ProjectFields) -> Project:
    values = fields.model_dump()
    if values["last_updated"] is None:
        values["last_updated"] = datetime.now(timezone.utc)

    project = (
        db.query(Project)
        .filter(Project.user_id == user_id)
        .filter(Project.external_id == external_ref)
        .first()
    )
    if project is None:
        project = Project(user_id=user_id, external_id=external_ref, **values)
        db.add(project)
    else:
        for field, value in values.items():
            setattr(project, field, value)
        project.updated_at = datetime.now(timezone.utc)

    db.flush()
    return project


def _remove(db: Session, user_id: str, project: Project) -> None:
    pattern_ids = [
        pid for (pid,) in db.query(CodePattern.id).filter(CodePattern.project_id == project.id)
    ]
    detach_patterns(db, user_id, pattern_ids)
    db.query(CodePattern).filter(
        CodePattern.project_id == project.id
    ).delete(synchronize_session="fetch")
    db.delete(project)
    db.flush()
