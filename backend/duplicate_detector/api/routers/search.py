from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from duplicate_detector.api.dependencies import get_current_user
from duplicate_detector.api.responses import success
from duplicate_detector.core.database import get_db
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.users import User
from duplicate_detector.schemas.pattern_schema import PatternResponse, PatternSearch
from duplicate_detector.services.patterns import search_patterns

router = APIRouter()
logger = get_logger(__name__)


@router.post("", status_code=status.HTTP_200_OK)
def search(
    body: PatternSearch,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Searches the user's code patterns by snippet text, optionally narrowed
    by file extension and pattern type.
    """
    logger.info(
        f"Pattern search '{body.query}'.",
        extra={"user_id": current_user.id, "endpoint": "/api/v1/search"}
    )
    rows = search_patterns(
        db,
        current_user.id,
        body.query,
        language=body.language,
        pattern_type=body.pattern_type,
        limit=body.limit,
        offset=body.offset,
    )
    return success({
        "results": [PatternResponse.model_validate(p) for p in rows],
        "total": len(rows),
        "query": body.query,
    })
