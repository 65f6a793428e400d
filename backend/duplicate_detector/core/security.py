from typing import Any
from jose import jwt, JWTError
from duplicate_detector.core.config import settings
from duplicate_detector.core.exceptions import SessionExpiredOrMissing, ValidationError

# HS256 requires a single secret key for both signing and verification.
ALGORITHM = "HS256"


def create_session_token(sid: str) -> str:
    """
    Wraps an opaque session id into a signed JWT.

    The token carries no expiry of its own: validity is decided by the
    server-side session row, so logout and the expiry sweep take effect
    immediately.

    Args:
        sid (str): The session id returned by the session store.

    Returns:
        str: The encoded JWT string.
    """
    return jwt.encode({"sid": sid}, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_session_token(token: str) -> str:
    """
    Extracts the session id from a token produced by create_session_token.

    Raises:
        SessionExpiredOrMissing: If the signature is invalid or the claim is absent.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise SessionExpiredOrMissing("Invalid session token")

    sid = payload.get("sid")
    if not sid:
        raise SessionExpiredOrMissing("Invalid session token")
    return sid


def verify_identity_token(id_token: str) -> dict[str, Any]:
    """
    Verifies the id token issued by the OAuth provider on callback and
    returns the profile claims needed by upsert_user.

    Args:
        id_token (str): JWT signed by the provider with OAUTH_CLIENT_SECRET.

    Returns:
        dict: id, email, first_name, last_name, profile_image_url.

    Raises:
        SessionExpiredOrMissing: If the token signature or expiry is invalid.
        ValidationError: If the subject claim is missing.
    """
    try:
        claims = jwt.decode(
            id_token, settings.OAUTH_CLIENT_SECRET, algorithms=[ALGORITHM],
            options={"verify_aud": False}
        )
    except JWTError:
        raise SessionExpiredOrMissing("Identity token rejected")

    if not claims.get("sub"):
        raise ValidationError("Identity token has no subject")

    return {
        "id": str(claims["sub"]),
        "email": claims.get("email"),
        "first_name": claims.get("first_name"),
        "last_name": claims.get("last_name"),
        "profile_image_url": claims.get("profile_image_url"),
    }
