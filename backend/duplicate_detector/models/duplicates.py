from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from duplicate_detector.core.database import Base
from duplicate_detector.models.patterns import CodePattern


class DuplicateGroup(Base):
    """
    A cluster of two or more code patterns judged similar by the external
    similarity engine. The whole set of groups for a user is replaced on
    every clustering pass.
    """

    __tablename__ = "duplicate_groups"
    __table_args__ = (
        CheckConstraint(
            "similarity_score >= 0 AND similarity_score <= 100",
            name="ck_duplicate_groups_score_range"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Derived from the sorted member pattern hashes
    group_hash = Column(String(64), nullable=False, index=True)

    # Normalized 0-100
    similarity_score = Column(Integer, nullable=False, index=True)

    pattern_type = Column(String(20), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    links = relationship(
        "PatternGroup",
        back_populates="duplicate_group",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    members = relationship(
        CodePattern,
        secondary="pattern_groups",
        order_by=CodePattern.id,
        viewonly=True
    )

    def __repr__(self) -> str:
        return (
            f"<DuplicateGroup("
            f"id={self.id}, "
            f"user_id={self.user_id}, "
            f"similarity_score={self.similarity_score})>"
        )


class PatternGroup(Base):
    """Join row linking one code pattern to one duplicate group."""

    __tablename__ = "pattern_groups"
    __table_args__ = (
        UniqueConstraint("duplicate_group_id", "code_pattern_id", name="uq_pattern_groups_member"),
    )

    id = Column(Integer, primary_key=True, index=True)

    duplicate_group_id = Column(
        Integer,
        ForeignKey("duplicate_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    code_pattern_id = Column(
        Integer,
        ForeignKey("code_patterns.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    duplicate_group = relationship("DuplicateGroup", back_populates="links")
