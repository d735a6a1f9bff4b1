from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from uuid import UUID
from app.services.video_models import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_DURATION,
    DEFAULT_MODEL,
    DEFAULT_RESOLUTION,
)


class VideoGenerateRequest(BaseModel):
    prompt: Optional[str] = None
    negativePrompt: Optional[str] = None
    model: str = DEFAULT_MODEL
    duration: int = DEFAULT_DURATION
    aspectRatio: str = DEFAULT_ASPECT_RATIO
    resolution: str = DEFAULT_RESOLUTION
    sourceImageUrl: Optional[str] = None


class VideoStatusResponse(BaseModel):
    videoId: UUID
    status: str
    videoUrl: Optional[str] = None
    error: Optional[str] = None
    pollAttempts: int = 0
    createdAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
