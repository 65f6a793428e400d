from sqlalchemy import Column, String, DateTime
from sqlalchemy.dialects.postgresql import JSONB

from duplicate_detector.core.database import Base


class UserSession(Base):
    """
    Server-side session record keyed by an opaque sid.

    `sess` holds the serialized session payload (the authenticated user id
    plus provider data). Rows are valid while `expire` is in the future;
    the index on `expire` keeps the periodic sweep cheap.
    """

    __tablename__ = "sessions"

    sid = Column(String, primary_key=True)

    sess = Column(JSONB, nullable=False)

    expire = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<UserSession(sid={self.sid[:8]}..., expire={self.expire})>"
