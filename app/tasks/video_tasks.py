"""
Celery tasks for server-driven polling of video jobs
"""
import asyncio
import logging
from uuid import UUID
from app.celery_app import celery_app
from app.config import settings
from app.database import SessionLocal
from app.models.generated_video import GeneratedVideo
from app.services.inference_client import InferenceClient
from app.services.video_jobs import VideoJobService
from app.services.webhook_service import EVENT_VIDEO_COMPLETED, dispatch_event

logger = logging.getLogger(__name__)


async def poll_video(video_id: UUID, service: VideoJobService) -> str:
    """
    Polls one job to a terminal state and returns that state.
    """
    db = SessionLocal()
    try:
        video = db.query(GeneratedVideo).filter(GeneratedVideo.id == video_id).first()
        if not video:
            logger.warning(f"Video not found for polling: {video_id}")
            return "missing"

        video = await service.wait_for_completion(db, video)

        if video.status == "completed":
            await dispatch_event(EVENT_VIDEO_COMPLETED, {
                "videoId": str(video.id),
                "userId": str(video.user_id),
                "model": video.model,
                "videoUrl": video.video_url,
            })
        return video.status
    finally:
        db.close()


async def _run(video_id: UUID) -> str:
    inference = InferenceClient(
        api_key=settings.FAL_API_KEY,
        run_url=settings.FAL_RUN_URL,
        queue_url=settings.FAL_QUEUE_URL,
        timeout=settings.PROVIDER_TIMEOUT,
    )
    service = VideoJobService(
        inference,
        max_poll_attempts=settings.VIDEO_POLL_MAX_ATTEMPTS,
        poll_interval=settings.VIDEO_POLL_INTERVAL,
    )
    try:
        return await poll_video(video_id, service)
    finally:
        await inference.aclose()


@celery_app.task(name="poll_video_job_task", bind=True, max_retries=3)
def poll_video_job_task(self, video_id: str):
    """
    Args:
        video_id: GeneratedVideo UUID (as string)
    """
    try:
        logger.info(f"Polling video job: video_id={video_id}")
        status = asyncio.run(_run(UUID(video_id)))
        logger.info(f"Video job finished polling: video_id={video_id}, status={status}")
        return {"status": status, "video_id": video_id}
    except Exception as e:
        logger.error(f"Error polling video job: {e}", exc_info=True)
        raise self.retry(exc=e, countdown=2 ** self.request.retries)
