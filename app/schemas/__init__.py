from app.schemas.api_key import ApiKeyCreate, ApiKeyCreated, ApiKeyResponse
from app.schemas.processed_image import ProcessedImageResponse
from app.schemas.video import VideoGenerateRequest, VideoStatusResponse
from app.schemas.webhook import WebhookCreate, WebhookLogResponse, WebhookResponse, WebhookUpdate

__all__ = [
    "ApiKeyCreate",
    "ApiKeyCreated",
    "ApiKeyResponse",
    "ProcessedImageResponse",
    "VideoGenerateRequest",
    "VideoStatusResponse",
    "WebhookCreate",
    "WebhookLogResponse",
    "WebhookResponse",
    "WebhookUpdate",
]
