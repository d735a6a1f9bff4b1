"""
Session token helpers (HS256 JWT carrying the user's email)
"""
import jwt
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import logging
from app.config import settings

logger = logging.getLogger(__name__)


def create_session_token(email: str, expires_min: Optional[int] = None) -> str:
    """
    Creates a signed session token for the given email.

    Args:
        email: User email (the identity resolved by the authenticator)
        expires_min: Expiration in minutes (default: SESSION_EXPIRES_MIN)

    Returns:
        Signed JWT
    """
    if expires_min is None:
        expires_min = settings.SESSION_EXPIRES_MIN

    if settings.SECRET_KEY == "change_this_later":
        logger.warning("SECRET_KEY not configured (not recommended for production)")

    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=expires_min),
        "type": "session",
    }

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_session_token(token: str) -> Dict[str, Any]:
    """
    Verifies and decodes a session token.

    Raises:
        ValueError: token is invalid, expired, or not a session token
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={
                "verify_signature": True,
                "verify_exp": True,
            }
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Session token expired")
        raise ValueError("Token expired")
    except jwt.InvalidSignatureError:
        logger.warning("Invalid session token signature")
        raise ValueError("Invalid signature")
    except jwt.PyJWTError as e:
        logger.warning(f"Error decoding session token: {e}")
        raise ValueError(f"Invalid token: {str(e)}")

    if payload.get("type") != "session":
        raise ValueError("Token is not a session token")

    if not payload.get("email"):
        raise ValueError("Token missing 'email' claim")

    return payload
