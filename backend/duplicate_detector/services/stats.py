from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.duplicates import DuplicateGroup, PatternGroup
from duplicate_detector.models.projects import Project

logger = get_logger(__name__)

UNKNOWN_LANGUAGE = "unknown"


def compute_stats(db: Session, user_id: str) -> dict:
    """
    Dashboard counters for one user. Read only; a user without rows gets
    zeros and an empty language map.

    Returns:
        dict containing:
            total_projects:   number of cached projects.
            duplicates_found: number of duplicate groups.
            similar_patterns: distinct code patterns referenced by any group.
            languages:        language -> project count ('unknown' when unset).
    """
    total_projects = (
        db.query(func.count(Project.id))
        .filter(Project.user_id == user_id)
        .scalar()
    )

    duplicates_found = (
        db.query(func.count(DuplicateGroup.id))
        .filter(DuplicateGroup.user_id == user_id)
        .scalar()
    )

    similar_patterns = (
        db.query(func.count(distinct(PatternGroup.code_pattern_id)))
        .join(DuplicateGroup, DuplicateGroup.id == PatternGroup.duplicate_group_id)
        .filter(DuplicateGroup.user_id == user_id)
        .scalar()
    )

    languages: dict[str, int] = {}
    rows = (
        db.query(Project.language, func.count(Project.id))
        .filter(Project.user_id == user_id)
        .group_by(Project.language)
        .all()
    )
    for language, count in rows:
        key = language or UNKNOWN_LANGUAGE
        languages[key] = languages.get(key, 0) + count

    logger.debug(
        f"Stats computed: projects={total_projects} groups={duplicates_found}",
        extra={"user_id": user_id}
    )

    return {
        "total_projects"  : total_projects or 0,
        "duplicates_found": duplicates_found or 0,
        "similar_patterns": similar_patterns or 0,
        "languages"       : languages,
    }
