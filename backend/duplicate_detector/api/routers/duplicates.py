from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from duplicate_detector.api.dependencies import get_current_user
from duplicate_detector.api.responses import success
from duplicate_detector.core.database import get_db
from duplicate_detector.models.duplicates import DuplicateGroup
from duplicate_detector.models.users import User
from duplicate_detector.schemas.duplicate_schema import (
    DuplicateGroupBatch, DuplicateGroupDetail, DuplicateGroupResponse
)
from duplicate_detector.schemas.pattern_schema import PatternResponse
from duplicate_detector.services import duplicates as duplicate_service

router = APIRouter()


def _summary(group: DuplicateGroup) -> DuplicateGroupResponse:
    view = DuplicateGroupResponse.model_validate(group)
    view.member_count = len(group.members)
    view.duplicate_status = duplicate_service.duplicate_status(view.member_count)
    return view


def _detail(group: DuplicateGroup) -> DuplicateGroupDetail:
    summary = _summary(group)
    return DuplicateGroupDetail(
        **summary.model_dump(),
        members=[PatternResponse.model_validate(m) for m in group.members],
    )


@router.put("", status_code=status.HTTP_200_OK)
def record_groups(
    batch: DuplicateGroupBatch,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Clustering sink: atomically replaces every duplicate group of the user.
    """
    groups = duplicate_service.record_duplicate_groups(db, current_user.id, batch.groups)
    return success([_summary(g) for g in groups])


@router.get("", status_code=status.HTTP_200_OK)
def read_groups(
    min_similarity: int = Query(default=0, description="Minimum score, 0-100"),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """Groups at or above `min_similarity`, best matches first."""
    groups = duplicate_service.list_duplicate_groups(
        db, current_user.id, min_similarity, limit=limit, offset=offset
    )
    return success([_detail(g) for g in groups])


@router.get("/{group_id}", status_code=status.HTTP_200_OK)
def read_group(
    group_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    group = duplicate_service.get_duplicate_group(db, current_user.id, group_id)
    return success(_detail(group))
