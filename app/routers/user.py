"""
Endpoints for the authenticated user's account
"""
import logging
from fastapi import APIRouter, Depends, Request
from app.config import settings
from app.dependencies.auth import get_current_user
from app.middleware.rate_limit import limiter
from app.models.user import User

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/user")
async def get_profile(user: User = Depends(get_current_user)):
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "credits": user.credits or 0,
        "totalUsage": user.total_usage or 0,
        "role": user.role,
        "firstUploadAt": user.first_upload_at.isoformat() if user.first_upload_at else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


@router.get("/user/credits")
@limiter.limit(settings.USER_RATE_LIMIT)
async def get_credits(request: Request, user: User = Depends(get_current_user)):
    """
    Lightweight balance check, polled frequently by clients.
    """
    return {
        "credits": user.credits or 0,
        "totalUsage": user.total_usage or 0,
    }
