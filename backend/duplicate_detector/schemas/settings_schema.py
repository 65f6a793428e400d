from pydantic import BaseModel, Field
from typing import Optional


class SettingsSection(BaseModel):

    class Config:
        extra = "forbid"


class ProfileSettings(SettingsSection):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)


class NotificationSettings(SettingsSection):
    email_notifications: Optional[bool] = None
    analysis_complete: Optional[bool] = None
    duplicates_found: Optional[bool] = None


class AnalysisSettings(SettingsSection):
    auto_analyze: Optional[bool] = None
    duplicate_threshold: Optional[int] = Field(None, ge=0, le=100)
    exclude_patterns: Optional[list[str]] = None
    include_languages: Optional[list[str]] = None
    max_file_size: Optional[int] = Field(None, ge=1)


class PrivacySettings(SettingsSection):
    profile_visibility: Optional[str] = Field(None, pattern=r"^(private|public)$")
    share_analytics: Optional[bool] = None
    data_retention: Optional[int] = Field(None, ge=1, le=365, description="Days")


class SettingsUpdate(BaseModel):
    """
    Partial settings update. Unset fields keep their current value;
    unknown sections or keys are rejected.
    """
    profile: Optional[ProfileSettings] = None
    notifications: Optional[NotificationSettings] = None
    analysis: Optional[AnalysisSettings] = None
    privacy: Optional[PrivacySettings] = None

    class Config:
        extra = "forbid"
