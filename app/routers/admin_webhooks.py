"""
Admin management of outbound webhooks
"""
import logging
from datetime import datetime, timezone
from typing import List
from uuid import UUID
import httpx
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.config import settings
from app.database import get_db
from app.dependencies.auth import require_admin
from app.errors import NotFoundError, ValidationError
from app.models.user import User
from app.schemas.webhook import WebhookCreate, WebhookLogResponse, WebhookResponse, WebhookUpdate
from app.services import webhook_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/admin/webhooks", response_model=List[WebhookResponse])
async def list_webhooks(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return webhook_service.list_webhooks(db)


@router.post("/admin/webhooks")
async def create_or_test_webhook(
    body: WebhookCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Creates a webhook, or with ``action: "test"`` and ``webhookId`` sends a
    test delivery to an existing one.
    """
    if body.action == "test" and body.webhookId:
        webhook = webhook_service.get_webhook(db, body.webhookId)
        if not webhook:
            raise NotFoundError("Webhook not found")

        payload = body.payload or {"test": True, "timestamp": datetime.now(timezone.utc).isoformat()}
        async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT) as client:
            delivered = await webhook_service.trigger_webhook(
                db, webhook, body.event or "test.event", payload, client
            )
        return {"success": True, "delivered": delivered, "message": "Test webhook triggered"}

    if not body.name or not body.url or not body.events:
        raise ValidationError("Missing required fields")

    webhook = webhook_service.create_webhook(
        db,
        name=body.name,
        url=body.url,
        events=body.events,
        enabled=body.enabled,
        secret=body.secret,
        headers=body.headers,
        retry_attempts=body.retryAttempts,
    )
    return {"success": True, "webhook": WebhookResponse.model_validate(webhook).model_dump(mode="json")}


@router.patch("/admin/webhooks")
async def update_webhook(
    body: WebhookUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    updates = dict(body.updates)
    if "retryAttempts" in updates:
        updates["retry_attempts"] = updates.pop("retryAttempts")

    webhook = webhook_service.update_webhook(db, body.id, updates)
    if not webhook:
        raise NotFoundError("Webhook not found")
    return {"success": True, "webhook": WebhookResponse.model_validate(webhook).model_dump(mode="json")}


@router.delete("/admin/webhooks")
async def delete_webhook(
    id: UUID = Query(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return {"success": webhook_service.delete_webhook(db, id)}


@router.get("/admin/webhooks/{webhook_id}/logs", response_model=List[WebhookLogResponse])
async def webhook_logs(
    webhook_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if not webhook_service.get_webhook(db, webhook_id):
        raise NotFoundError("Webhook not found")
    return webhook_service.list_logs(db, webhook_id, limit=limit)
