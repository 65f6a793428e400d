from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ProjectFields(BaseModel):
    """
    Mutable fields of a cached project, as reported by the hosting provider.
    """
    title: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=2048)
    language: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=5000)
    file_count: int = Field(default=0, ge=0)
    last_updated: Optional[datetime] = Field(
        default=None,
        description="Last modification time on the provider. Defaults to now."
    )


class RemoteProject(ProjectFields):
    """One entry of a full project list sync."""
    external_id: str = Field(..., min_length=1, max_length=255)


class ProjectSyncRequest(BaseModel):
    projects: list[RemoteProject] = Field(default_factory=list)
    prune: bool = Field(
        default=True,
        description="Delete cached projects that are no longer listed by the provider."
    )


class ProjectResponse(BaseModel):
    id: int
    user_id: str
    external_id: str
    title: str
    url: str
    language: Optional[str] = None
    description: Optional[str] = None
    file_count: int
    last_updated: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectPage(BaseModel):
    items: list[ProjectResponse]
    limit: int
    offset: int
    has_more: bool


class ProjectStats(BaseModel):
    total_projects: int = 0
    duplicates_found: int = 0
    similar_patterns: int = 0
    languages: dict[str, int] = Field(default_factory=dict)
