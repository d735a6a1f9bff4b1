"""
Access to the caller's processed images
"""
import logging
import mimetypes
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies.auth import get_current_user
from app.dependencies.services import get_storage
from app.errors import NotFoundError, ValidationError
from app.models.processed_image import ProcessedImage
from app.models.user import User
from app.schemas.processed_image import ProcessedImageResponse
from app.services import processed_images
from app.services.storage import LocalStorage

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_image(db: Session, user: User, image_id: UUID) -> ProcessedImage:
    record = processed_images.get_for_user(db, user.id, image_id)
    if not record:
        raise NotFoundError("Image not found")
    return record


def _read_variant(storage: LocalStorage, record: ProcessedImage, variant: str):
    if variant not in ("original", "processed"):
        raise ValidationError("type must be 'original' or 'processed'")

    path = record.original_path if variant == "original" else record.processed_path
    if not path:
        raise NotFoundError("Image not available")

    try:
        content = storage.read(path)
    except (FileNotFoundError, ValueError):
        logger.warning(f"Stored file missing for image {record.id}: {path}")
        raise NotFoundError("Image file not found")

    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return content, media_type, path


@router.get("/processed-images", response_model=List[ProcessedImageResponse])
async def list_images(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return processed_images.list_for_user(db, user.id, limit=limit, offset=offset)


@router.get("/processed-images/{image_id}/view")
async def view_image(
    image_id: UUID,
    type: str = Query("processed"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: LocalStorage = Depends(get_storage),
):
    record = _get_image(db, user, image_id)
    content, media_type, _ = _read_variant(storage, record, type)
    return Response(content=content, media_type=media_type, headers={"Cache-Control": "private, max-age=3600"})


@router.get("/processed-images/{image_id}/download")
async def download_image(
    image_id: UUID,
    type: str = Query("processed"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: LocalStorage = Depends(get_storage),
):
    record = _get_image(db, user, image_id)
    content, media_type, path = _read_variant(storage, record, type)
    filename = path.rsplit("/", 1)[-1].split("_", 1)[-1]
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/processed-images/{image_id}")
async def delete_image(
    image_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: LocalStorage = Depends(get_storage),
):
    record = _get_image(db, user, image_id)
    storage.delete(record.original_path)
    storage.delete(record.processed_path)
    processed_images.delete_record(db, record)
    return {"success": True}
