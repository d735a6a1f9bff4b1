"""
Shared processing pipeline for image tools.

credit check -> dimensions -> save original -> record -> strategy ->
save result -> debit -> mark completed -> first upload -> notifications
"""
import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional
from fastapi import BackgroundTasks, UploadFile
from sqlalchemy.orm import Session
from app.errors import InsufficientCreditsError, ProcessingError
from app.models.processed_image import ProcessedImage
from app.models.user import User
from app.services import credit_ledger, processed_images
from app.services.image_processor import get_dimensions
from app.services.inference_client import InferenceClient, InferenceTimeout
from app.services.notifications import NotificationDispatcher
from app.services.storage import LocalStorage
from app.services.strategies import ProcessingStrategy, execute_strategy
from app.services.webhook_service import EVENT_IMAGE_PROCESSED, dispatch_event

logger = logging.getLogger(__name__)

FAILURE_MESSAGE = "Failed to process image"


@dataclass
class PipelineResult:
    image: ProcessedImage
    model_name: str
    credits_used: int
    credits_remaining: int

    @property
    def image_url(self) -> str:
        return processed_images.public_url(self.image.id, "processed")

    @property
    def original_url(self) -> str:
        return processed_images.public_url(self.image.id, "original")


def output_filename(filename: Optional[str], operation: str) -> str:
    stem = os.path.splitext(os.path.basename(filename or "image"))[0] or "image"
    suffix = "upscaled" if operation == "upscale" else "nobg"
    return f"{stem}_{suffix}.png"


class ImagePipeline:

    def __init__(
        self,
        inference: InferenceClient,
        storage: LocalStorage,
        notifications: NotificationDispatcher,
        processing_timeout: float = 120,
    ):
        self.inference = inference
        self.storage = storage
        self.notifications = notifications
        self.processing_timeout = processing_timeout

    async def _execute(self, strategy: ProcessingStrategy, content: bytes, content_type: str, scale: int) -> bytes:
        try:
            return await asyncio.wait_for(
                execute_strategy(strategy, self.inference, content, content_type, scale),
                timeout=self.processing_timeout,
            )
        except asyncio.TimeoutError:
            raise InferenceTimeout(f"Processing timed out after {self.processing_timeout}s")

    def _mark_failed(self, db: Session, record: Optional[ProcessedImage], error: Exception) -> None:
        if record is None:
            return
        try:
            db.rollback()
            processed_images.mark_failed(db, record, str(error))
        except Exception as e:
            logger.error(f"Could not mark image {record.id} as failed: {e}", exc_info=True)

    def _discard(self, db: Session, record: ProcessedImage, processed_path: str, error: Exception) -> None:
        self._mark_failed(db, record, error)
        self.storage.delete(processed_path)

    async def run(
        self,
        db: Session,
        user: User,
        upload: UploadFile,
        content: bytes,
        operation: str,
        strategy: ProcessingStrategy,
        scale: int,
        background_tasks: BackgroundTasks,
    ) -> PipelineResult:
        """
        Raises:
            InsufficientCreditsError: balance below the strategy cost (402),
                either up front or at the debit; a late rejection marks the
                record failed and deletes its output
            ProcessingError: anything failed after the credit check; the
                record is marked failed and nothing is charged (500)
        """
        cost = strategy.cost(scale)
        try:
            credit_ledger.ensure_affordable(user, cost)
        except InsufficientCreditsError as e:
            if e.depleted:
                self.notifications.credits_depleted(background_tasks, user)
            raise

        record = None
        started = time.monotonic()
        try:
            dimensions = await asyncio.to_thread(get_dimensions, content)
            original_path = await asyncio.to_thread(self.storage.save, content, upload.filename, "original")
            record = processed_images.create_record(
                db,
                user_id=user.id,
                operation=operation,
                original_path=original_path,
                original_filename=upload.filename,
                file_size=len(content),
                width=dimensions.width,
                height=dimensions.height,
                image_type=strategy.name if operation == "upscale" else None,
                model=strategy.model_name,
            )

            logger.info(
                f"Processing started: image_id={record.id}, operation={operation}, model={strategy.model_name}, scale={scale}",
                extra={"user_id": str(user.id), "image_id": str(record.id), "operation": operation},
            )

            processed = await self._execute(strategy, content, upload.content_type, scale)
            output = await asyncio.to_thread(get_dimensions, processed)
            processed_path = await asyncio.to_thread(
                self.storage.save, processed, output_filename(upload.filename, operation), "processed"
            )
        except Exception as e:
            logger.error(f"Image processing failed: {e}", exc_info=True)
            self._mark_failed(db, record, e)
            raise ProcessingError(FAILURE_MESSAGE, details=str(e) or e.__class__.__name__)

        try:
            debit = credit_ledger.debit(
                db,
                user.id,
                cost,
                strategy.usage_type,
                model=strategy.model_name,
                image_size=f"{len(content)} bytes",
            )
        except InsufficientCreditsError as e:
            # balance drained by a concurrent request; the result is withheld
            self._discard(db, record, processed_path, e)
            if e.depleted:
                self.notifications.credits_depleted(background_tasks, user)
            raise
        except Exception as e:
            logger.error(f"Debit failed for image {record.id}: {e}", exc_info=True)
            self._discard(db, record, processed_path, e)
            raise ProcessingError(FAILURE_MESSAGE, details=str(e))

        try:
            processed_images.mark_completed(
                db,
                record,
                processed_path=processed_path,
                credits_used=cost,
                output_width=output.width,
                output_height=output.height,
                processing_time_ms=int((time.monotonic() - started) * 1000),
            )
        except Exception as e:
            logger.error(f"Could not complete image {record.id}, refunding {cost}: {e}", exc_info=True)
            db.rollback()
            credit_ledger.refund(db, user.id, cost)
            self._discard(db, record, processed_path, e)
            raise ProcessingError(FAILURE_MESSAGE, details=str(e))

        first_upload = credit_ledger.mark_first_upload(db, user.id)
        db.refresh(user)

        self.notifications.after_debit(background_tasks, user, debit, first_upload)
        background_tasks.add_task(dispatch_event, EVENT_IMAGE_PROCESSED, {
            "imageId": str(record.id),
            "userId": str(user.id),
            "operation": operation,
            "model": strategy.model_name,
            "creditsUsed": cost,
        })

        logger.info(
            f"Processing completed: image_id={record.id}, credits_used={cost}, remaining={debit.remaining}",
            extra={"user_id": str(user.id), "image_id": str(record.id), "operation": operation},
        )
        return PipelineResult(
            image=record,
            model_name=strategy.model_name,
            credits_used=cost,
            credits_remaining=debit.remaining,
        )
