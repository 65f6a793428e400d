from datetime import datetime, timezone
from typing import Any, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from duplicate_detector.core.exceptions import ConflictError, NotFoundError
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.users import User
from duplicate_detector.schemas.user_schema import UserProfile
from duplicate_detector.utils.validation import parse_model

logger = get_logger(__name__)

MUTABLE_PROFILE_FIELDS = ("email", "first_name", "last_name", "profile_image_url")


def upsert_user(db: Session, profile: Union[UserProfile, dict[str, Any]]) -> User:
    """
    Inserts the user on first login, otherwise refreshes the mutable profile
    fields. Calling it twice with the same profile leaves a single row.

    Args:
        db: Active SQLAlchemy session.
        profile: External identity profile (id, email, names, image url).

    Returns:
        The persisted User.

    Raises:
        ValidationError: If the profile is malformed.
        ConflictError: If the email is already bound to another user id.
    """
    profile = parse_model(UserProfile, profile)
    email = str(profile.email) if profile.email else None

    if email:
        owner = (
            db.query(User)
            .filter(User.email == email)
            .filter(User.id != profile.id)
            .first()
        )
        if owner:
            raise ConflictError(f"Email '{email}' is already bound to another account")

    values = {
        "email": email,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "profile_image_url": profile.profile_image_url,
    }

    user = db.get(User, profile.id)
    try:
        if user is None:
            user = User(id=profile.id, **values)
            db.add(user)
            logger.info(f"Created user {profile.id}")
        else:
            for field in MUTABLE_PROFILE_FIELDS:
                setattr(user, field, values[field])
            user.updated_at = datetime.now(timezone.utc)
            logger.info(f"Updated user {profile.id}")
        db.commit()
    except IntegrityError:
        # Concurrent login bound the email first
        db.rollback()
        raise ConflictError(f"Email '{email}' is already bound to another account")

    db.refresh(user)
    return user


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def lock_owner(db: Session, user_id: str) -> User:
    """
    Takes a row lock on the user (SELECT ... FOR UPDATE).

    Every write that replaces or prunes a user's duplicate groups takes this
    lock first, before any project lock, so those writes apply one after
    the other per user.

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = (
        db.query(User)
        .filter(User.id == user_id)
        .with_for_update()
        .first()
    )
    if user is None:
        raise NotFoundError("User", user_id)
    return user
