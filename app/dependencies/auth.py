from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session
import logging
from app.database import get_db
from app.models.api_key import ApiKey
from app.models.user import User
from app.config import settings
from app.errors import AuthError, ForbiddenError, NotFoundError
from app.services.api_keys import looks_like_api_key, validate_api_key
from app.utils.jwt_utils import verify_session_token

logger = logging.getLogger(__name__)

DEV_TOKEN = "test"
DEV_EMAIL = "dev@example.com"


@dataclass
class AuthResult:
    success: bool
    email: Optional[str] = None
    error: Optional[str] = None
    status_code: int = 401
    api_key: Optional[ApiKey] = None


def parse_raw_auth_header(request: Request) -> Optional[str]:
    """Returns the token from 'Bearer <token>', 'bearer <token>' or a bare '<token>'."""
    header = request.headers.get("authorization")
    if not header:
        return None
    parts = header.strip().split()
    if len(parts) == 1:
        return parts[0]
    if len(parts) >= 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


async def authenticate_request(request: Request, db: Session) -> AuthResult:
    """
    Resolves the caller's identity.
    - 'Authorization: Bearer pk_live_...' / 'pk_test_...' -> API key
    - 'Authorization: Bearer <jwt>' or the session cookie -> session token
    - DEV_MODE accepts the token 'test' as dev@example.com
    """
    token = parse_raw_auth_header(request)
    if not token:
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)

    if not token:
        return AuthResult(success=False, error="Authentication required")

    if settings.DEV_MODE and token == DEV_TOKEN:
        logger.info("Authenticated user (dev token)")
        return AuthResult(success=True, email=DEV_EMAIL)

    if looks_like_api_key(token):
        api_key = validate_api_key(db, token)
        if not api_key:
            return AuthResult(success=False, error="Invalid API key")
        logger.info(f"Authenticated via API key: {api_key.key_prefix}")
        return AuthResult(success=True, email=api_key.user.email, api_key=api_key)

    try:
        payload = verify_session_token(token)
    except ValueError as e:
        logger.info(f"Session rejected: {e}")
        return AuthResult(success=False, error="Invalid session")

    return AuthResult(success=True, email=payload["email"])


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def resolve_user(db: Session, auth: AuthResult) -> User:
    if not auth.success:
        raise AuthError(auth.error, status_code=auth.status_code)

    user = get_user_by_email(db, auth.email)
    if not user:
        raise NotFoundError("User not found")

    return user


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency for routes that need an authenticated user record.
    """
    auth = await authenticate_request(request, db)
    return resolve_user(db, auth)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
