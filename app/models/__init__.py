from app.database import Base
from app.models.user import User
from app.models.api_key import ApiKey
from app.models.usage import Usage
from app.models.processed_image import ProcessedImage
from app.models.generated_video import GeneratedVideo
from app.models.webhook import Webhook, WebhookLog

__all__ = [
    "Base",
    "User",
    "ApiKey",
    "Usage",
    "ProcessedImage",
    "GeneratedVideo",
    "Webhook",
    "WebhookLog",
]
