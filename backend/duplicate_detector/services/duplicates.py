from collections import Counter
from typing import Any, Iterable, Optional, Union

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session, selectinload

from duplicate_detector.core.exceptions import NotFoundError, ValidationError
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.duplicates import DuplicateGroup, PatternGroup
from duplicate_detector.models.patterns import CodePattern, PatternType
from duplicate_detector.schemas.duplicate_schema import DuplicateGroupIn
from duplicate_detector.services.hashing import group_hash
from duplicate_detector.services.users import lock_owner
from duplicate_detector.utils.validation import parse_items

logger = get_logger(__name__)

MIN_GROUP_MEMBERS = 2

# Member count thresholds for the dashboard badge
STATUS_THRESHOLDS = (
    (10, "critical"),
    (5, "high"),
    (3, "medium"),
    (MIN_GROUP_MEMBERS, "low"),
)


def duplicate_status(member_count: int) -> str:
    """
    Display-only severity derived from the number of copies in a group.
    Never stored; recomputed from the group's membership.
    """
    for threshold, label in STATUS_THRESHOLDS:
        if member_count >= threshold:
            return label
    return "none"


def record_duplicate_groups(
    db: Session,
    user_id: str,
    groups: Iterable[Union[DuplicateGroupIn, dict[str, Any]]]
) -> list[DuplicateGroup]:
    """
    Replaces the user's whole clustering with `groups` in one transaction.

    Every group is validated before anything is written: at least two
    distinct member ids, a score within 0-100, and every member owned by
    `user_id`. A single bad group rejects the whole call. The user row is
    locked for the duration, so concurrent clusterings for the same user
    replace each other instead of merging.

    Args:
        db: Active SQLAlchemy session.
        user_id: Owner of the groups and of every referenced pattern.
        groups: Clusters produced by the similarity engine.

    Returns:
        The created groups, in input order.

    Raises:
        ValidationError: If any group is malformed or references a pattern
                         the user does not own.
        NotFoundError: If the user does not exist.
    """
    parsed = parse_items(DuplicateGroupIn, groups)
    wanted = {pid for group in parsed for pid in group.pattern_ids}

    try:
        lock_owner(db, user_id)
        # Checked under the lock: a concurrent re-extraction may have
        # removed patterns since the caller computed the clusters
        owned = _owned_patterns(db, user_id, wanted)

        _clear_groups(db, user_id)

        created = []
        for group in parsed:
            member_ids = list(dict.fromkeys(group.pattern_ids))
            members = [owned[pid] for pid in member_ids]

            record = DuplicateGroup(
                user_id=user_id,
                group_hash=group_hash(m.pattern_hash for m in members),
                similarity_score=group.similarity_score,
                pattern_type=_group_type(group, members),
                description=group.description,
            )
            record.links = [PatternGroup(code_pattern_id=pid) for pid in member_ids]
            db.add(record)
            created.append(record)

        db.commit()
    except Exception:
        db.rollback()
        raise

    for record in created:
        db.refresh(record)

    logger.info(
        f"Recorded {len(created)} duplicate groups.",
        extra={"user_id": user_id}
    )
    return created


def get_duplicate_group(db: Session, user_id: str, group_id: int) -> DuplicateGroup:
    """
    Returns the group with its member patterns loaded.

    Raises:
        NotFoundError: If the group does not exist or belongs to another user.
    """
    group = (
        db.query(DuplicateGroup)
        .options(selectinload(DuplicateGroup.members))
        .filter(DuplicateGroup.id == group_id)
        .filter(DuplicateGroup.user_id == user_id)
        .first()
    )
    if group is None:
        raise NotFoundError("DuplicateGroup", group_id)
    return group


def list_duplicate_groups(
    db: Session,
    user_id: str,
    min_similarity: int = 0,
    limit: Optional[int] = None,
    offset: int = 0
) -> list[DuplicateGroup]:
    """
    Groups scoring at least `min_similarity`, highest score first, newest
    first among equal scores.
    """
    if min_similarity is None or not 0 <= min_similarity <= 100:
        raise ValidationError(f"min_similarity must be between 0 and 100, got {min_similarity}")

    query = (
        db.query(DuplicateGroup)
        .options(selectinload(DuplicateGroup.members))
        .filter(DuplicateGroup.user_id == user_id)
        .filter(DuplicateGroup.similarity_score >= min_similarity)
        .order_by(
            DuplicateGroup.similarity_score.desc(),
            DuplicateGroup.created_at.desc(),
            DuplicateGroup.id.desc()
        )
    )
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def detach_patterns(db: Session, user_id: str, pattern_ids: list[int]) -> int:
    """
    Removes the group links of patterns about to be deleted, then drops the
    groups left with fewer than two members. Runs inside the caller's
    transaction and does not commit.

    Returns:
        Number of duplicate groups dropped.
    """
    if not pattern_ids:
        return 0

    affected = {
        gid for (gid,) in (
            db.query(PatternGroup.duplicate_group_id)
            .filter(PatternGroup.code_pattern_id.in_(pattern_ids))
            .distinct()
        )
    }
    db.query(PatternGroup).filter(
        PatternGroup.code_pattern_id.in_(pattern_ids)
    ).delete(synchronize_session="fetch")

    if not affected:
        return 0

    remaining = dict(
        db.query(PatternGroup.duplicate_group_id, func.count(distinct(PatternGroup.code_pattern_id)))
        .filter(PatternGroup.duplicate_group_id.in_(affected))
        .group_by(PatternGroup.duplicate_group_id)
        .all()
    )
    undersized = [gid for gid in affected if remaining.get(gid, 0) < MIN_GROUP_MEMBERS]
    if undersized:
        db.query(PatternGroup).filter(
            PatternGroup.duplicate_group_id.in_(undersized)
        ).delete(synchronize_session="fetch")
        db.query(DuplicateGroup).filter(
            DuplicateGroup.id.in_(undersized),
            DuplicateGroup.user_id == user_id
        ).delete(synchronize_session="fetch")
        logger.info(
            f"Dropped {len(undersized)} duplicate groups left with a single member.",
            extra={"user_id": user_id}
        )
    return len(undersized)


def _owned_patterns(db: Session, user_id: str, wanted: set[int]) -> dict[int, CodePattern]:
    owned: dict[int, CodePattern] = {}
    if wanted:
        owned = {
            pattern.id: pattern
            for pattern in (
                db.query(CodePattern)
                .filter(CodePattern.id.in_(wanted))
                .filter(CodePattern.user_id == user_id)
                .all()
            )
        }

    foreign = sorted(wanted - owned.keys())
    if foreign:
        raise ValidationError(
            f"Patterns {foreign} do not exist or belong to another user",
            errors=[{"loc": ["pattern_ids"], "msg": f"unknown pattern {pid}"} for pid in foreign]
        )
    return owned


def _clear_groups(db: Session, user_id: str) -> None:
    group_ids = db.query(DuplicateGroup.id).filter(DuplicateGroup.user_id == user_id)
    db.query(PatternGroup).filter(
        PatternGroup.duplicate_group_id.in_(group_ids.scalar_subquery())
    ).delete(synchronize_session="fetch")
    db.query(DuplicateGroup).filter(
        DuplicateGroup.user_id == user_id
    ).delete(synchronize_session="fetch")


def _group_type(group: DuplicateGroupIn, members: list[CodePattern]) -> str:
    if group.pattern_type is not None:
        return group.pattern_type.value
    kinds = Counter(m.pattern_type for m in members)
    if len(kinds) == 1:
        return next(iter(kinds))
    return PatternType.OTHER.value
