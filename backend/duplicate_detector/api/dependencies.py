from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from duplicate_detector.core.config import settings
from duplicate_detector.core.database import get_db
from duplicate_detector.core.exceptions import NotFoundError, SessionExpiredOrMissing
from duplicate_detector.core.security import decode_session_token
from duplicate_detector.models.users import User
from duplicate_detector.services.sessions import session_user_id, touch_session
from duplicate_detector.services.users import get_user

# auto_error=False: browsers authenticate with the session cookie instead,
# so a missing header is not an error by itself.
bearer_scheme = HTTPBearer(auto_error=False)


def get_session_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Extracts the session id from the Bearer header or, failing that, the
    session cookie.

    Raises:
        SessionExpiredOrMissing: If neither carries a valid session token.
    """
    token = credentials.credentials if credentials else request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise SessionExpiredOrMissing("Not authenticated")
    return decode_session_token(token)


def get_current_user(
    sid: str = Depends(get_session_id),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolves the authenticated user from the server-side session and slides
    the session's expiry.

    Returns:
        User: The SQLAlchemy User bound to the session.

    Raises:
        SessionExpiredOrMissing: If the session is unknown, expired, or its
                                 user no longer exists.
    """
    user_id = session_user_id(db, sid)
    touch_session(db, sid, settings.SESSION_TTL_SECONDS)

    try:
        return get_user(db, user_id)
    except NotFoundError:
        raise SessionExpiredOrMissing("Session user no longer exists")
