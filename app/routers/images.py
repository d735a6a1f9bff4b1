"""
Image tool endpoints: upscale and background removal
"""
import logging
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Request, Response, UploadFile
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies.auth import authenticate_request, resolve_user
from app.dependencies.services import get_api_key_limiter, get_image_limiter, get_pipeline
from app.errors import PixeliftError
from app.middleware.rate_limit import RateLimiter, get_client_identifier, rate_limit_headers
from app.models.user import User
from app.services.pipeline import ImagePipeline, PipelineResult
from app.services.strategies import REMOVE_BACKGROUND_STRATEGY, ProcessingStrategy, select_upscale_strategy
from app.utils.validation import normalize_image_type, normalize_scale, validate_upload

logger = logging.getLogger(__name__)
router = APIRouter()


async def _read_upload(image: Optional[UploadFile]) -> Optional[bytes]:
    if image is None:
        return None
    return await image.read()


async def _authorize(
    request: Request,
    response: Response,
    db: Session,
    limiter: RateLimiter,
    key_limiter: RateLimiter,
) -> User:
    """
    Rate limit by client address, then resolve the caller. Calls made with an
    API key are also held to that key's own per-minute quota.
    """
    await limiter.enforce(get_client_identifier(request))
    auth = await authenticate_request(request, db)
    user = resolve_user(db, auth)

    if auth.api_key is not None:
        result = await key_limiter.enforce(f"key:{auth.api_key.id}", limit=auth.api_key.rate_limit)
        response.headers.update(rate_limit_headers(result))

    return user


async def _process(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    db: Session,
    limiter: RateLimiter,
    key_limiter: RateLimiter,
    pipeline: ImagePipeline,
    image: Optional[UploadFile],
    operation: str,
    strategy: ProcessingStrategy,
    scale: int,
) -> PipelineResult:
    user = await _authorize(request, response, db, limiter, key_limiter)
    content = await _read_upload(image)
    validate_upload(image, content)
    return await pipeline.run(
        db, user, image, content, operation, strategy, scale, background_tasks
    )


@router.post("/upscale")
@router.post("/v1/upscale")
async def upscale(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    image: Optional[UploadFile] = File(None),
    scale: Optional[str] = Form(None),
    imageType: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_image_limiter),
    key_limiter: RateLimiter = Depends(get_api_key_limiter),
    pipeline: ImagePipeline = Depends(get_pipeline),
):
    """
    Upscales an image. ``scale`` is 2, 4 or 8 and ``imageType`` one of
    general, product, portrait, faithful; anything else falls back to
    2 / general.
    """
    scale_value = normalize_scale(scale)
    image_type = normalize_image_type(imageType)

    try:
        result = await _process(
            request, response, background_tasks, db, limiter, key_limiter, pipeline, image,
            operation="upscale",
            strategy=select_upscale_strategy(image_type),
            scale=scale_value,
        )
    except PixeliftError as exc:
        # returned, not raised, so scheduled notifications still run
        return exc.to_response()

    return {
        "success": True,
        "imageId": str(result.image.id),
        "imageUrl": result.image_url,
        "originalUrl": result.original_url,
        "scale": scale_value,
        "imageType": image_type,
        "model": result.model_name,
        "creditsUsed": result.credits_used,
        "creditsRemaining": result.credits_remaining,
    }


@router.post("/remove-background")
async def remove_background(
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    limiter: RateLimiter = Depends(get_image_limiter),
    key_limiter: RateLimiter = Depends(get_api_key_limiter),
    pipeline: ImagePipeline = Depends(get_pipeline),
):
    try:
        result = await _process(
            request, response, background_tasks, db, limiter, key_limiter, pipeline, image,
            operation="remove_background",
            strategy=REMOVE_BACKGROUND_STRATEGY,
            scale=1,
        )
    except PixeliftError as exc:
        return exc.to_response()

    return {
        "success": True,
        "imageId": str(result.image.id),
        "imageUrl": result.image_url,
        "originalUrl": result.original_url,
        "model": result.model_name,
        "creditsUsed": result.credits_used,
        "creditsRemaining": result.credits_remaining,
    }
