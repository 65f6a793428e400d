from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime

from duplicate_detector.models.patterns import PatternType

MAX_SNIPPET_LENGTH = 5000


class PatternIn(BaseModel):
    """
    One fragment reported by the external extraction pass.
    The content hash is always computed server side.
    """
    file_path: str = Field(..., min_length=1, max_length=1024)
    code_snippet: str = Field(..., max_length=MAX_SNIPPET_LENGTH)
    pattern_type: PatternType = PatternType.OTHER
    line_start: int = Field(..., ge=1)
    line_end: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_fragment(self):
        if not self.code_snippet.strip():
            raise ValueError("code_snippet must not be empty")
        if self.line_start > self.line_end:
            raise ValueError(
                f"line_start ({self.line_start}) must not exceed line_end ({self.line_end})"
            )
        return self


class PatternBatch(BaseModel):
    patterns: list[PatternIn] = Field(default_factory=list)


class PatternResponse(BaseModel):
    id: int
    user_id: str
    project_id: int
    file_path: str
    pattern_hash: str
    code_snippet: str
    pattern_type: str
    line_start: int
    line_end: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PatternSearch(BaseModel):
    """Search body, mirrors the dashboard's advanced search form."""
    query: str = Field(..., min_length=1, max_length=200)
    language: Optional[str] = Field(None, max_length=20, description="File extension, e.g. 'py' or 'tsx'")
    pattern_type: Optional[PatternType] = None
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
