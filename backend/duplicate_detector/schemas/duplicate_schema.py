from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime

from duplicate_detector.models.patterns import PatternType
from duplicate_detector.schemas.pattern_schema import PatternResponse


class DuplicateGroupIn(BaseModel):
    """
    One cluster produced by the external similarity engine.
    """
    pattern_ids: list[int] = Field(..., description="Ids of the member code patterns")
    similarity_score: int = Field(..., ge=0, le=100, description="Normalized similarity, 0-100")
    pattern_type: Optional[PatternType] = Field(
        default=None,
        description="Defaults to the members' common type, or 'other'."
    )
    description: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_members(self):
        if len(set(self.pattern_ids)) < 2:
            raise ValueError("a duplicate group needs at least 2 distinct patterns")
        return self


class DuplicateGroupBatch(BaseModel):
    groups: list[DuplicateGroupIn] = Field(default_factory=list)


class DuplicateGroupResponse(BaseModel):
    id: int
    user_id: str
    group_hash: str
    similarity_score: int
    pattern_type: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    member_count: int = 0
    duplicate_status: str = "none"

    class Config:
        from_attributes = True


class DuplicateGroupDetail(DuplicateGroupResponse):
    members: list[PatternResponse] = Field(default_factory=list)
