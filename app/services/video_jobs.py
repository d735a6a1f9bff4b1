"""
Asynchronous video generation jobs.

Credits are reserved when a job is submitted and refunded if the job fails,
times out or cannot be submitted. Completion settles the reservation into a
usage record.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID
from sqlalchemy import update
from sqlalchemy.orm import Session
from app.errors import InsufficientCreditsError, ProcessingError, ValidationError
from app.models.generated_video import GeneratedVideo
from app.models.user import User
from app.services import credit_ledger
from app.services.inference_client import (
    InferenceClient,
    InferenceError,
    InferenceJobCancelled,
    InferenceJobTimeout,
    extract_output_url,
)
from app.services.job_poller import poll_job
from app.services.video_models import (
    DEFAULT_ASPECT_RATIO,
    DEFAULT_DURATION,
    DEFAULT_MODEL,
    DEFAULT_RESOLUTION,
    VideoModel,
    get_model,
)

logger = logging.getLogger(__name__)

MIN_PROMPT_LENGTH = 3
TIMEOUT_MESSAGE = "Video generation timed out"


@dataclass
class VideoRequest:
    prompt: str
    negative_prompt: Optional[str] = None
    model: str = DEFAULT_MODEL
    duration: int = DEFAULT_DURATION
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    resolution: str = DEFAULT_RESOLUTION
    source_image_url: Optional[str] = None


@dataclass
class SubmittedVideo:
    video: GeneratedVideo
    credits_used: int
    remaining_credits: int


def validate_video_request(req: VideoRequest) -> VideoModel:
    """
    Raises:
        ValidationError: prompt too short, unknown/inactive model, or a
            duration/aspect ratio the model does not support
    """
    if not req.prompt or not isinstance(req.prompt, str) or len(req.prompt.strip()) < MIN_PROMPT_LENGTH:
        raise ValidationError("Prompt is required and must be at least 3 characters")

    model = get_model(req.model)
    if not model or not model.is_active:
        raise ValidationError("Invalid or inactive model selected")

    if req.duration not in model.durations:
        raise ValidationError(f"Duration {req.duration}s is not supported for {req.model}")

    if req.aspect_ratio not in model.aspect_ratios:
        raise ValidationError(f"Aspect ratio {req.aspect_ratio} is not supported for {req.model}")

    if req.resolution not in model.resolutions:
        raise ValidationError(f"Resolution {req.resolution} is not supported for {req.model}")

    return model


def build_payload(req: VideoRequest) -> Dict[str, Any]:
    payload = {
        "prompt": req.prompt.strip(),
        "duration": str(req.duration),
        "aspect_ratio": req.aspect_ratio,
        "resolution": req.resolution,
    }
    if req.negative_prompt:
        payload["negative_prompt"] = req.negative_prompt
    if req.source_image_url:
        payload["image_url"] = req.source_image_url
    return payload


class VideoJobService:

    def __init__(self, inference: InferenceClient, max_poll_attempts: int = 120, poll_interval: float = 5.0):
        self.inference = inference
        self.max_poll_attempts = max_poll_attempts
        self.poll_interval = poll_interval

    @staticmethod
    def _endpoint(video: GeneratedVideo) -> str:
        return get_model(video.model).endpoint_for(video.source_image_url)

    async def submit(self, db: Session, user: User, req: VideoRequest) -> SubmittedVideo:
        model = validate_video_request(req)
        cost = model.cost(req.duration)
        credit_ledger.ensure_affordable(user, cost)

        video = GeneratedVideo(
            user_id=user.id,
            prompt=req.prompt.strip(),
            negative_prompt=req.negative_prompt,
            model=model.id,
            duration=req.duration,
            aspect_ratio=req.aspect_ratio,
            resolution=req.resolution,
            source_image_url=req.source_image_url,
            status="pending",
            credits_reserved=cost,
        )
        db.add(video)
        db.commit()
        db.refresh(video)

        try:
            reservation = credit_ledger.reserve(db, user.id, cost)
        except InsufficientCreditsError:
            self._finish(db, video, status="failed", error_message="Insufficient credits", refund=False)
            raise

        try:
            job_id = await self.inference.submit(model.endpoint_for(req.source_image_url), build_payload(req))
        except InferenceError as e:
            logger.error(f"Video submission failed: video_id={video.id}, error={e}")
            self._finish(db, video, status="failed", error_message=str(e))
            raise ProcessingError("Video generation failed", details=str(e))

        video.job_id = job_id
        video.status = "processing"
        db.commit()
        db.refresh(video)

        logger.info(f"Video job started: video_id={video.id}, job_id={job_id}, model={model.id}, cost={cost}")
        return SubmittedVideo(video=video, credits_used=cost, remaining_credits=reservation.remaining)

    def _finish(
        self,
        db: Session,
        video: GeneratedVideo,
        status: str,
        error_message: Optional[str] = None,
        video_url: Optional[str] = None,
        refund: bool = True,
    ) -> bool:
        """
        Moves a non-terminal job to ``status`` exactly once. Failed jobs get
        their reservation refunded, completed jobs settle it.
        """
        reserved = video.credits_reserved or 0
        values = {
            "status": status,
            "error_message": error_message,
            "completed_at": datetime.now(timezone.utc),
        }
        if video_url:
            values["video_url"] = video_url
        if status == "failed":
            values["credits_reserved"] = 0

        result = db.execute(
            update(GeneratedVideo)
            .where(
                GeneratedVideo.id == video.id,
                GeneratedVideo.status.in_(("pending", "processing")),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            db.refresh(video)
            return False

        if status == "failed" and refund:
            credit_ledger.refund(db, video.user_id, reserved)
        elif status == "completed":
            model = get_model(video.model)
            credit_ledger.settle_reservation(
                db, video.user_id, reserved, model.usage_type(video.duration), model=model.id
            )

        db.refresh(video)
        logger.info(f"Video job {status}: video_id={video.id}, job_id={video.job_id}")
        return True

    def _complete_from_result(self, db: Session, video: GeneratedVideo, result: Dict[str, Any]) -> None:
        url = extract_output_url(result)
        if not url:
            self._finish(db, video, status="failed", error_message="No video URL in provider result")
            return
        self._finish(db, video, status="completed", video_url=url)

    async def check_status(self, db: Session, video: GeneratedVideo) -> GeneratedVideo:
        """One client-driven poll step."""
        if video.is_terminal:
            return video

        video.poll_attempts = (video.poll_attempts or 0) + 1
        db.commit()

        if video.poll_attempts > self.max_poll_attempts:
            logger.warning(f"Video job exceeded {self.max_poll_attempts} checks: video_id={video.id}")
            self._finish(db, video, status="failed", error_message=TIMEOUT_MESSAGE)
            return video

        if not video.job_id:
            return video

        endpoint = self._endpoint(video)
        try:
            job = await self.inference.status(endpoint, video.job_id)
            if job.is_completed:
                result = await self.inference.result(endpoint, video.job_id)
                self._complete_from_result(db, video, result)
            elif job.is_failed:
                self._finish(db, video, status="failed", error_message=job.error or "Video generation failed")
        except InferenceError as e:
            # counted as an attempt; the next check retries
            logger.warning(f"Video status check failed: video_id={video.id}, error={e}")

        return video

    async def wait_for_completion(
        self,
        db: Session,
        video: GeneratedVideo,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GeneratedVideo:
        """Server-driven polling until the job reaches a terminal state."""
        if video.is_terminal or not video.job_id:
            return video

        remaining = max(1, self.max_poll_attempts - (video.poll_attempts or 0))
        try:
            result = await poll_job(
                self.inference,
                self._endpoint(video),
                video.job_id,
                max_attempts=remaining,
                interval=self.poll_interval,
                cancel_event=cancel_event,
            )
        except InferenceJobCancelled:
            logger.info(f"Polling cancelled, job left for client polling: video_id={video.id}")
            return video
        except InferenceJobTimeout:
            self._finish(db, video, status="failed", error_message=TIMEOUT_MESSAGE)
            return video
        except InferenceError as e:
            self._finish(db, video, status="failed", error_message=str(e))
            return video

        self._complete_from_result(db, video, result)
        return video


def get_video_for_user(db: Session, user_id: UUID, video_id: UUID) -> Optional[GeneratedVideo]:
    return db.query(GeneratedVideo).filter(
        GeneratedVideo.id == video_id,
        GeneratedVideo.user_id == user_id,
    ).first()
