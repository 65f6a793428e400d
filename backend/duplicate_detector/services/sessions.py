import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

from duplicate_detector.core.exceptions import SessionExpiredOrMissing, ValidationError
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.sessions import UserSession

logger = get_logger(__name__)

# Bytes of randomness behind each sid (~43 url-safe characters)
SID_BYTES = 32

# Reserved key holding the owner id inside the stored payload
OWNER_KEY = "_user_id"

TTL = Union[int, float, timedelta]


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _ttl(ttl: TTL) -> timedelta:
    delta = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
    if delta.total_seconds() <= 0:
        raise ValidationError(f"Session ttl must be positive, got {ttl}")
    return delta


def _valid_row(db: Session, sid: str, now: datetime) -> UserSession:
    row = (
        db.query(UserSession)
        .filter(UserSession.sid == sid)
        .filter(UserSession.expire > now)
        .first()
    )
    if row is None:
        raise SessionExpiredOrMissing()
    return row


def create_session(
    db: Session,
    user_id: str,
    payload: Optional[dict[str, Any]],
    ttl: TTL,
    now: Optional[datetime] = None
) -> str:
    """
    Stores a new session for `user_id` and returns its opaque sid.

    The payload is stored as given. The owner id is kept next to it under
    a reserved key, so read_session hands back exactly what was stored.
    """
    delta = _ttl(ttl)
    sid = secrets.token_urlsafe(SID_BYTES)

    sess = dict(payload or {})
    sess[OWNER_KEY] = user_id

    db.add(UserSession(sid=sid, sess=sess, expire=_now(now) + delta))
    db.commit()

    logger.info("Session created.", extra={"user_id": user_id})
    return sid


def read_session(db: Session, sid: str, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Returns the payload of a live session.

    Raises:
        SessionExpiredOrMissing: If no row exists or it has expired.
    """
    if not sid:
        raise SessionExpiredOrMissing()
    payload = dict(_valid_row(db, sid, _now(now)).sess)
    payload.pop(OWNER_KEY, None)
    return payload


def session_user_id(db: Session, sid: str, now: Optional[datetime] = None) -> str:
    """
    Id of the user a live session belongs to.

    Raises:
        SessionExpiredOrMissing: If the session is unknown, expired or has no owner.
    """
    if not sid:
        raise SessionExpiredOrMissing()
    user_id = _valid_row(db, sid, _now(now)).sess.get(OWNER_KEY)
    if not user_id:
        raise SessionExpiredOrMissing()
    return user_id


def touch_session(db: Session, sid: str, ttl: TTL, now: Optional[datetime] = None) -> None:
    """
    Slides the expiry of a live session to now + ttl.

    Raises:
        SessionExpiredOrMissing: If the session is unknown or already expired.
    """
    delta = _ttl(ttl)
    current = _now(now)
    row = _valid_row(db, sid, current)
    row.expire = current + delta
    db.commit()


def destroy_session(db: Session, sid: str) -> None:
    """Deletes the session. Deleting an absent sid is not an error."""
    deleted = db.query(UserSession).filter(UserSession.sid == sid).delete(synchronize_session="fetch")
    db.commit()
    if deleted:
        logger.info("Session destroyed.")


def sweep_expired(db: Session, now: Optional[datetime] = None) -> int:
    """
    Deletes every session whose expiry is at or before `now`.

    Returns:
        Number of rows removed.
    """
    removed = (
        db.query(UserSession)
        .filter(UserSession.expire <= _now(now))
        .delete(synchronize_session="fetch")
    )
    db.commit()
    logger.info(f"Swept {removed} expired sessions.")
    return removed
