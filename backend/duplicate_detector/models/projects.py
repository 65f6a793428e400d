from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from duplicate_detector.core.database import Base


class Project(Base):
    """
    Cached reference to a project hosted by the external provider.
    Refreshed whenever the owner's project list is synced.
    """

    __tablename__ = "projects"
    __table_args__ = (
        # The same remote project is cached at most once per user.
        UniqueConstraint("user_id", "external_id", name="uq_projects_user_external"),
    )

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Identifier of the project on the hosting provider
    external_id = Column(String, nullable=False)

    title = Column(String, nullable=False)
    url = Column(String, nullable=False)
    language = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    file_count = Column(Integer, nullable=False, default=0, server_default="0")

    last_updated = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return (
            f"<Project("
            f"id={self.id}, "
            f"user_id={self.user_id}, "
            f"external_id={self.external_id})>"
        )
