"""
AI video generation endpoints
"""
import logging
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.dependencies.services import get_video_service
from app.errors import NotFoundError, PixeliftError
from app.models.user import User
from app.schemas.video import VideoGenerateRequest, VideoStatusResponse
from app.services.video_jobs import VideoJobService, VideoRequest, get_video_for_user
from app.services.video_models import get_active_models
from app.services.webhook_service import EVENT_VIDEO_COMPLETED, dispatch_event

logger = logging.getLogger(__name__)
router = APIRouter()


def _video_event_payload(video) -> dict:
    return {
        "videoId": str(video.id),
        "userId": str(video.user_id),
        "model": video.model,
        "videoUrl": video.video_url,
    }


@router.post("/ai-video/generate")
async def generate_video(
    body: VideoGenerateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: VideoJobService = Depends(get_video_service),
):
    """
    Reserves credits and submits a video job. The job is then followed
    through GET /ai-video/{video_id}/status (or the Celery poller when
    VIDEO_SERVER_POLLING is on).
    """
    req = VideoRequest(
        prompt=body.prompt,
        negative_prompt=body.negativePrompt,
        model=body.model,
        duration=body.duration,
        aspect_ratio=body.aspectRatio,
        resolution=body.resolution,
        source_image_url=body.sourceImageUrl,
    )
    try:
        submitted = await service.submit(db, user, req)
    except PixeliftError as exc:
        return exc.to_response()

    if settings.VIDEO_SERVER_POLLING:
        from app.tasks.video_tasks import poll_video_job_task
        poll_video_job_task.delay(str(submitted.video.id))

    return {
        "success": True,
        "videoId": str(submitted.video.id),
        "jobId": submitted.video.job_id,
        "status": "processing",
        "creditsUsed": submitted.credits_used,
        "remainingCredits": submitted.remaining_credits,
    }


@router.get("/ai-video/models")
async def list_video_models(user: User = Depends(get_current_user)):
    return {"models": [model.to_dict() for model in get_active_models()]}


@router.get(
    "/ai-video/{video_id}/status",
    response_model=VideoStatusResponse,
    response_model_exclude_none=True,
)
async def video_status(
    video_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: VideoJobService = Depends(get_video_service),
):
    video = get_video_for_user(db, user.id, video_id)
    if not video:
        raise NotFoundError("Video not found")

    was_terminal = video.is_terminal
    video = await service.check_status(db, video)

    if video.status == "completed" and not was_terminal:
        background_tasks.add_task(dispatch_event, EVENT_VIDEO_COMPLETED, _video_event_payload(video))

    response = {
        "videoId": str(video.id),
        "status": video.status,
        "pollAttempts": video.poll_attempts,
        "createdAt": video.created_at,
        "completedAt": video.completed_at,
    }
    if video.status == "completed":
        response["videoUrl"] = video.video_url
    elif video.status == "failed":
        response["error"] = video.error_message
    return response
