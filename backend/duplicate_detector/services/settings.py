import copy
from datetime import datetime, timezone
from typing import Any, Union

from sqlalchemy.orm import Session

from duplicate_detector.core.logging import get_logger
from duplicate_detector.schemas.settings_schema import SettingsUpdate
from duplicate_detector.services.users import get_user
from duplicate_detector.utils.validation import parse_model

logger = get_logger(__name__)

DEFAULT_PREFERENCES = {
    "notifications": {
        "email_notifications": True,
        "analysis_complete": True,
        "duplicates_found": True,
    },
    "analysis": {
        "auto_analyze": False,
        "duplicate_threshold": 80,
        "exclude_patterns": [],
        "include_languages": ["javascript", "python", "typescript", "java", "cpp"],
        "max_file_size": 1024 * 1024,  # 1 MB
    },
    "privacy": {
        "profile_visibility": "private",
        "share_analytics": False,
        "data_retention": 30,
    },
}


def get_user_settings(db: Session, user_id: str) -> dict:
    """
    Full settings document: profile from the user row, other sections are
    the defaults overlaid with whatever the user stored.

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = get_user(db, user_id)
    stored = user.preferences or {}

    merged = copy.deepcopy(DEFAULT_PREFERENCES)
    for section, values in stored.items():
        if section in merged:
            merged[section].update(values)

    return {
        "profile": {
            "email": user.email,
            "first_name": user.first_name or "",
            "last_name": user.last_name or "",
            "profile_image_url": user.profile_image_url or "",
        },
        **merged,
    }


def update_user_settings(
    db: Session,
    user_id: str,
    changes: Union[SettingsUpdate, dict[str, Any]]
) -> dict:
    """
    Applies a partial settings update and returns the resulting document.

    Profile names are written to the user row; every other section is
    stored sparsely in users.preferences.

    Raises:
        ValidationError: On unknown sections, unknown keys or bad values.
        NotFoundError: If the user does not exist.
    """
    changes = parse_model(SettingsUpdate, changes)
    user = get_user(db, user_id)

    try:
        if changes.profile is not None:
            for field, value in changes.profile.model_dump(exclude_none=True).items():
                setattr(user, field, value)

        preferences = copy.deepcopy(user.preferences or {})
        for section in DEFAULT_PREFERENCES:
            update = getattr(changes, section)
            if update is None:
                continue
            values = update.model_dump(exclude_none=True)
            if values:
                preferences.setdefault(section, {}).update(values)

        # Reassign so the JSON column is flagged dirty
        user.preferences = preferences
        user.updated_at = datetime.now(timezone.utc)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Settings updated.", extra={"user_id": user_id})
    return get_user_settings(db, user_id)
