"""
Upload and parameter validation for processing routes
"""
from typing import Optional
from fastapi import UploadFile
from app.config import settings
from app.errors import ValidationError

ACCEPTED_IMAGE_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]

VALID_SCALES = (2, 4, 8)
DEFAULT_SCALE = 2

IMAGE_TYPES = ("general", "product", "portrait", "faithful")
DEFAULT_IMAGE_TYPE = "general"


def validate_file_size(size: int, max_size: Optional[int] = None) -> bool:
    return size <= (max_size or settings.MAX_FILE_SIZE)


def validate_file_type(content_type: Optional[str]) -> bool:
    return (content_type or "").lower() in ACCEPTED_IMAGE_TYPES


def validate_upload(upload: Optional[UploadFile], content: Optional[bytes]) -> None:
    """
    Checks presence, size and MIME type of an uploaded image.

    Raises:
        ValidationError: with the message returned to the client
    """
    if upload is None or content is None or not upload.filename:
        raise ValidationError("No image provided")

    if not validate_file_size(len(content)):
        limit_mb = settings.MAX_FILE_SIZE // (1024 * 1024)
        raise ValidationError(f"File too large: maximum size is {limit_mb}MB")

    if not validate_file_type(upload.content_type):
        raise ValidationError(
            f"Invalid file type: {upload.content_type}. Accepted: {', '.join(ACCEPTED_IMAGE_TYPES)}"
        )


def normalize_scale(raw) -> int:
    """Unknown or malformed values fall back to the default scale."""
    try:
        scale = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_SCALE
    return scale if scale in VALID_SCALES else DEFAULT_SCALE


def normalize_image_type(raw) -> str:
    """Unknown values fall back to 'general'."""
    value = (raw or "").strip().lower() if isinstance(raw, str) else ""
    return value if value in IMAGE_TYPES else DEFAULT_IMAGE_TYPE
