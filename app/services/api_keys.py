"""
API key generation, storage and validation
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.orm import Session
from app.models.api_key import ApiKey
from app.models.user import User

logger = logging.getLogger(__name__)

KEY_PREFIXES = {"live": "pk_live_", "test": "pk_test_"}


def get_rate_limit_for_credits(credits: int) -> int:
    """Requests per minute allowed for a key, by the owner's credit balance."""
    if credits >= 30000:
        return 1000
    if credits >= 2000:
        return 500
    if credits >= 500:
        return 300
    if credits >= 100:
        return 60
    return 10


def generate_api_key(environment: str = "live") -> str:
    """Format: pk_live_<32 url-safe chars>"""
    prefix = KEY_PREFIXES.get(environment, KEY_PREFIXES["live"])
    return f"{prefix}{secrets.token_urlsafe(24)}"


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def get_key_prefix(key: str) -> str:
    return f"{key[:12]}...{key[-4:]}"


def looks_like_api_key(token: str) -> bool:
    return any(token.startswith(prefix) for prefix in KEY_PREFIXES.values())


def create_api_key(
    db: Session,
    user: User,
    name: str,
    environment: str = "live",
    expires_in_days: Optional[int] = None
) -> Tuple[ApiKey, str]:
    """
    Creates a key for the user. The plain key is returned only here;
    only its hash is stored.
    """
    key = generate_api_key(environment)
    expires_at = None
    if expires_in_days:
        expires_at = datetime.now(timezone.utc) + timedelta(days=expires_in_days)

    api_key = ApiKey(
        user_id=user.id,
        name=name,
        key_hash=hash_api_key(key),
        key_prefix=get_key_prefix(key),
        environment=environment,
        is_active=True,
        rate_limit=get_rate_limit_for_credits(user.credits or 0),
        expires_at=expires_at,
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)

    logger.info(f"API key created: id={api_key.id}, user_id={user.id}, env={environment}")
    return api_key, key


def validate_api_key(db: Session, key: str) -> Optional[ApiKey]:
    """
    Returns the active, unexpired key record matching ``key``, or None.
    Updates usage counters on success.
    """
    if not looks_like_api_key(key):
        return None

    api_key = db.query(ApiKey).filter(
        ApiKey.key_hash == hash_api_key(key),
        ApiKey.is_active.is_(True)
    ).first()

    if not api_key:
        return None

    if api_key.expires_at is not None:
        expires_at = api_key.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= datetime.now(timezone.utc):
            logger.info(f"Expired API key used: {api_key.key_prefix}")
            return None

    api_key.last_used_at = datetime.now(timezone.utc)
    api_key.usage_count = (api_key.usage_count or 0) + 1
    db.commit()

    return api_key


def list_api_keys(db: Session, user_id: UUID) -> List[ApiKey]:
    return db.query(ApiKey).filter(
        ApiKey.user_id == user_id
    ).order_by(ApiKey.created_at.desc()).all()


def revoke_api_key(db: Session, user_id: UUID, key_id: UUID) -> bool:
    api_key = db.query(ApiKey).filter(
        ApiKey.id == key_id,
        ApiKey.user_id == user_id
    ).first()

    if not api_key:
        return False

    api_key.is_active = False
    db.commit()
    logger.info(f"API key revoked: id={key_id}, user_id={user_id}")
    return True
