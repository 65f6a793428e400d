from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from duplicate_detector.api.dependencies import get_current_user
from duplicate_detector.api.responses import success
from duplicate_detector.core.database import get_db
from duplicate_detector.models.users import User
from duplicate_detector.schemas.settings_schema import SettingsUpdate
from duplicate_detector.services.settings import get_user_settings, update_user_settings

router = APIRouter()


@router.get("/me/settings", status_code=status.HTTP_200_OK)
def read_settings(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Settings document of the authenticated user: profile, notifications,
    analysis and privacy sections, defaults filled in.
    """
    return success(get_user_settings(db, current_user.id))


@router.put("/me/settings", status_code=status.HTTP_200_OK)
def update_settings(
    settings_in: SettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """
    Partially updates the settings. Omitted fields keep their value.
    """
    return success(update_user_settings(db, current_user.id, settings_in))
