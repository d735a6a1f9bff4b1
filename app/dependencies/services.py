"""
Accessors for the service objects built at startup (see app.main).
Tests replace them through app.dependency_overrides.
"""
from fastapi import Request
from app.middleware.rate_limit import RateLimiter
from app.services.pipeline import ImagePipeline
from app.services.storage import LocalStorage
from app.services.video_jobs import VideoJobService


def get_image_limiter(request: Request) -> RateLimiter:
    return request.app.state.image_limiter


def get_api_key_limiter(request: Request) -> RateLimiter:
    return request.app.state.api_key_limiter


def get_storage(request: Request) -> LocalStorage:
    return request.app.state.storage


def get_pipeline(request: Request) -> ImagePipeline:
    return request.app.state.pipeline


def get_video_service(request: Request) -> VideoJobService:
    return request.app.state.video_service
