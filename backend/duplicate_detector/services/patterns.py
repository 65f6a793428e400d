from typing import Any, Iterable, Optional, Union

from sqlalchemy.orm import Session

from duplicate_detector.core.exceptions import ValidationError
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.patterns import CodePattern, PatternType
from duplicate_detector.schemas.pattern_schema import PatternIn
from duplicate_detector.services.duplicates import detach_patterns
from duplicate_detector.services.hashing import pattern_hash
from duplicate_detector.services.projects import get_project
from duplicate_detector.services.users import lock_owner
from duplicate_detector.utils.validation import check_page, parse_items

logger = get_logger(__name__)

SEARCH_PAGE_MAX = 100


def record_patterns(
    db: Session,
    user_id: str,
    project_id: int,
    patterns: Iterable[Union[PatternIn, dict[str, Any]]]
) -> list[CodePattern]:
    """
    Replaces every code pattern of a project with `patterns`.

    Extraction is a full re-derivation, so the previous set is dropped
    rather than diffed. All entries are validated before the transaction
    starts; one bad entry rejects the whole call and nothing is written.
    The owner row and then the project row are locked for the duration, so
    concurrent calls for the same project apply one after the other and
    never interleave with a clustering of the same user.

    Args:
        db: Active SQLAlchemy session.
        user_id: Owner of the project.
        project_id: Project being re-analyzed.
        patterns: Fragments reported by the extraction pass.

    Returns:
        The created patterns, in input order.

    Raises:
        ValidationError: If any entry is malformed.
        NotFoundError: If the project does not belong to user_id.
    """
    parsed = parse_items(PatternIn, patterns)

    try:
        lock_owner(db, user_id)
        project = get_project(db, user_id, project_id, for_update=True)

        previous = [
            pid for (pid,) in db.query(CodePattern.id).filter(CodePattern.project_id == project.id)
        ]
        detach_patterns(db, user_id, previous)
        db.query(CodePattern).filter(
            CodePattern.project_id == project.id
        ).delete(synchronize_session="fetch")

        created = [
            CodePattern(
                user_id=user_id,
                project_id=project.id,
                file_path=item.file_path,
                pattern_hash=pattern_hash(item.code_snippet, item.pattern_type.value),
                code_snippet=item.code_snippet,
                pattern_type=item.pattern_type.value,
                line_start=item.line_start,
                line_end=item.line_end,
            )
            for item in parsed
        ]
        db.add_all(created)
        db.commit()
    except Exception:
        db.rollback()
        raise

    for pattern in created:
        db.refresh(pattern)

    logger.info(
        f"Recorded {len(created)} patterns for project {project_id} "
        f"(replaced {len(previous)}).",
        extra={"user_id": user_id}
    )
    return created


def list_patterns(db: Session, user_id: str, project_id: int) -> list[CodePattern]:
    get_project(db, user_id, project_id)
    return (
        db.query(CodePattern)
        .filter(CodePattern.project_id == project_id)
        .filter(CodePattern.user_id == user_id)
        .order_by(CodePattern.file_path, CodePattern.line_start, CodePattern.id)
        .all()
    )


def search_patterns(
    db: Session,
    user_id: str,
    query: str,
    language: Optional[str] = None,
    pattern_type: Optional[Union[PatternType, str]] = None,
    limit: int = 50,
    offset: int = 0
) -> list[CodePattern]:
    """
    Case-insensitive substring search over the user's code snippets.

    Args:
        query: Text to look for inside snippets.
        language: File extension filter without the dot ('py', 'tsx').
        pattern_type: Restrict to one pattern type.

    Returns:
        Matching patterns, newest first.
    """
    check_page(limit, offset, SEARCH_PAGE_MAX)
    if not query or not query.strip():
        raise ValidationError("Search query must not be empty")

    q = db.query(CodePattern).filter(CodePattern.user_id == user_id)
    q = q.filter(CodePattern.code_snippet.ilike(f"%{_escape_like(query.strip())}%", escape="\\"))

    if language:
        extension = "." + language.lstrip(".")
        q = q.filter(CodePattern.file_path.ilike(f"%{_escape_like(extension)}", escape="\\"))

    if pattern_type:
        try:
            kind = PatternType(pattern_type)
        except ValueError:
            raise ValidationError(f"Unknown pattern type '{pattern_type}'")
        q = q.filter(CodePattern.pattern_type == kind.value)

    return (
        q.order_by(CodePattern.created_at.desc(), CodePattern.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
