"""
Processed image records
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session
from app.config import settings
from app.models.processed_image import ProcessedImage

logger = logging.getLogger(__name__)


def public_url(image_id: UUID, image_type: str = "processed") -> str:
    return f"{settings.API_PREFIX}/processed-images/{image_id}/view?type={image_type}"


def create_record(
    db: Session,
    user_id: UUID,
    operation: str,
    original_path: str,
    original_filename: Optional[str],
    file_size: int,
    width: Optional[int],
    height: Optional[int],
    image_type: Optional[str] = None,
    model: Optional[str] = None,
) -> ProcessedImage:
    record = ProcessedImage(
        user_id=user_id,
        operation=operation,
        image_type=image_type,
        model=model,
        status="processing",
        original_path=original_path,
        original_filename=original_filename,
        file_size=file_size,
        width=width,
        height=height,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def mark_completed(
    db: Session,
    record: ProcessedImage,
    processed_path: str,
    credits_used: int,
    output_width: Optional[int] = None,
    output_height: Optional[int] = None,
    processing_time_ms: Optional[int] = None,
) -> ProcessedImage:
    if record.is_terminal:
        logger.warning(f"Ignoring update of terminal image record {record.id} ({record.status})")
        return record

    record.status = "completed"
    record.processed_path = processed_path
    record.credits_used = credits_used
    record.output_width = output_width
    record.output_height = output_height
    record.processing_time_ms = processing_time_ms
    record.processed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(record)
    return record


def mark_failed(db: Session, record: ProcessedImage, error_message: str) -> ProcessedImage:
    if record.is_terminal:
        logger.warning(f"Ignoring update of terminal image record {record.id} ({record.status})")
        return record

    record.status = "failed"
    record.error_message = error_message[:2000]
    record.processed_at = datetime.now(timezone.utc)
    db.commit()
    return record


def get_for_user(db: Session, user_id: UUID, image_id: UUID) -> Optional[ProcessedImage]:
    return db.query(ProcessedImage).filter(
        ProcessedImage.id == image_id,
        ProcessedImage.user_id == user_id,
    ).first()


def list_for_user(
    db: Session,
    user_id: UUID,
    limit: int = 50,
    offset: int = 0,
) -> List[ProcessedImage]:
    return db.query(ProcessedImage).filter(
        ProcessedImage.user_id == user_id
    ).order_by(ProcessedImage.created_at.desc()).offset(offset).limit(limit).all()


def delete_record(db: Session, record: ProcessedImage) -> None:
    db.delete(record)
    db.commit()
    logger.info(f"Image record deleted: {record.id}")
