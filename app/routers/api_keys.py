"""
API key management for the authenticated user
"""
import logging
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.errors import NotFoundError, ValidationError
from app.middleware.rate_limit import get_client_identifier
from app.models.user import User
from app.schemas.api_key import ApiKeyCreate, ApiKeyCreated, ApiKeyResponse
from app.services import api_keys

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_ACTIVE_KEYS = 10


async def _limit(request: Request, user: User) -> None:
    await request.app.state.user_limiter.enforce(get_client_identifier(request, user.id))


@router.post("/v1/keys", response_model=ApiKeyCreated)
async def create_key(
    body: ApiKeyCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Creates an API key. The full key is only returned in this response.
    """
    await _limit(request, user)

    active = [key for key in api_keys.list_api_keys(db, user.id) if key.is_active]
    if len(active) >= MAX_ACTIVE_KEYS:
        raise ValidationError(f"Maximum of {MAX_ACTIVE_KEYS} active API keys reached")

    api_key, plain_key = api_keys.create_api_key(
        db, user, body.name, environment=body.environment, expires_in_days=body.expires_in_days
    )
    data = ApiKeyResponse.model_validate(api_key).model_dump()
    return ApiKeyCreated(**data, key=plain_key)


@router.get("/v1/keys", response_model=List[ApiKeyResponse])
async def list_keys(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _limit(request, user)
    return api_keys.list_api_keys(db, user.id)


@router.delete("/v1/keys/{key_id}")
async def revoke_key(
    key_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await _limit(request, user)
    if not api_keys.revoke_api_key(db, user.id, key_id):
        raise NotFoundError("API key not found")
    return {"success": True}
