from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from duplicate_detector.api.dependencies import get_current_user, get_session_id
from duplicate_detector.api.responses import success
from duplicate_detector.core.config import settings
from duplicate_detector.core.database import get_db
from duplicate_detector.core import security
from duplicate_detector.core.logging import get_logger
from duplicate_detector.models.users import User
from duplicate_detector.schemas.user_schema import IdentityCallback, UserResponse
from duplicate_detector.services.sessions import create_session, destroy_session
from duplicate_detector.services.users import upsert_user


router = APIRouter()
logger = get_logger(__name__)


@router.post("/callback", status_code=status.HTTP_200_OK)
def oauth_callback(
    body: IdentityCallback,
    response: Response,
    db: Session = Depends(get_db)
) -> dict:
    """
    Completes the OAuth login once the provider redirected back.

    Verifies the provider's id token, creates or refreshes the User, opens a
    server-side session and returns the session token. The token is also
    set as an HttpOnly cookie for browser clients.
    """
    profile = security.verify_identity_token(body.id_token)
    user = upsert_user(db, profile)

    sid = create_session(
        db, user.id, {"provider": "oauth"}, settings.SESSION_TTL_SECONDS
    )
    token = security.create_session_token(sid)

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
    )

    logger.info("User logged in.", extra={"user_id": user.id})

    return success({
        "access_token": token,
        "token_type": "bearer",
        "user": UserResponse.model_validate(user),
    })


@router.post("/logout", status_code=status.HTTP_200_OK)
def logout(
    response: Response,
    sid: str = Depends(get_session_id),
    db: Session = Depends(get_db)
) -> dict:
    """Destroys the session. Logging out twice is harmless."""
    destroy_session(db, sid)
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return success({"message": "Logged out"})


@router.get("/user", status_code=status.HTTP_200_OK)
def read_current_user(
    current_user: User = Depends(get_current_user),
) -> dict:
    """Profile of the currently authenticated user."""
    return success(UserResponse.model_validate(current_user))
