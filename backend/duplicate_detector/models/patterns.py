import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.sql import func

from duplicate_detector.core.database import Base


class PatternType(str, enum.Enum):
    FUNCTION = "function"
    COMPONENT = "component"
    STYLE = "style"
    IMPORT = "import"
    OTHER = "other"


class CodePattern(Base):
    """
    A code fragment extracted from one file of a project.

    Rows are immutable facts: re-analysis replaces the whole set for the
    project instead of editing rows in place.
    """

    __tablename__ = "code_patterns"
    __table_args__ = (
        CheckConstraint("line_start <= line_end", name="ck_code_patterns_line_range"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    project_id = Column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    file_path = Column(String, nullable=False)

    # SHA-256 of (pattern_type, normalized snippet), see services/hashing.py
    pattern_hash = Column(String(64), nullable=False, index=True)

    code_snippet = Column(Text, nullable=False)
    pattern_type = Column(String(20), nullable=False)
    line_start = Column(Integer, nullable=False)
    line_end = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return (
            f"<CodePattern("
            f"id={self.id}, "
            f"file_path={self.file_path}, "
            f"lines={self.line_start}-{self.line_end})>"
        )
