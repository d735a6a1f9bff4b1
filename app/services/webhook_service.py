"""
Outbound webhooks: CRUD, signed delivery with retries, delivery logs
"""
import asyncio
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID
import httpx
from sqlalchemy.orm import Session
from app.config import settings
from app.database import SessionLocal
from app.models.webhook import Webhook, WebhookLog

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Pixelift-Signature"

EVENT_IMAGE_PROCESSED = "image.processed"
EVENT_VIDEO_COMPLETED = "video.completed"

UPDATABLE_FIELDS = ("name", "url", "events", "enabled", "secret", "headers", "retry_attempts")


def normalize_events(events) -> List[str]:
    """Accepts a list or a comma-separated string."""
    if isinstance(events, str):
        events = events.split(",")
    return [e.strip() for e in events or [] if e and e.strip()]


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def list_webhooks(db: Session) -> List[Webhook]:
    return db.query(Webhook).order_by(Webhook.created_at.desc()).all()


def get_webhook(db: Session, webhook_id: UUID) -> Optional[Webhook]:
    return db.query(Webhook).filter(Webhook.id == webhook_id).first()


def create_webhook(
    db: Session,
    name: str,
    url: str,
    events,
    enabled: bool = True,
    secret: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    retry_attempts: int = 3,
) -> Webhook:
    webhook = Webhook(
        name=name,
        url=url,
        events=normalize_events(events),
        enabled=enabled,
        secret=secret,
        headers=headers or {},
        retry_attempts=retry_attempts,
    )
    db.add(webhook)
    db.commit()
    db.refresh(webhook)
    logger.info(f"Webhook created: id={webhook.id}, url={url}, events={webhook.events}")
    return webhook


def update_webhook(db: Session, webhook_id: UUID, updates: Dict[str, Any]) -> Optional[Webhook]:
    webhook = get_webhook(db, webhook_id)
    if not webhook:
        return None

    for field, value in updates.items():
        if field not in UPDATABLE_FIELDS:
            continue
        if field == "events":
            value = normalize_events(value)
        setattr(webhook, field, value)

    db.commit()
    db.refresh(webhook)
    return webhook


def delete_webhook(db: Session, webhook_id: UUID) -> bool:
    webhook = get_webhook(db, webhook_id)
    if not webhook:
        return False
    db.delete(webhook)
    db.commit()
    logger.info(f"Webhook deleted: id={webhook_id}")
    return True


def list_logs(db: Session, webhook_id: UUID, limit: int = 100) -> List[WebhookLog]:
    return db.query(WebhookLog).filter(
        WebhookLog.webhook_id == webhook_id
    ).order_by(WebhookLog.created_at.desc()).limit(limit).all()


async def trigger_webhook(
    db: Session,
    webhook: Webhook,
    event: str,
    payload: Dict[str, Any],
    client: httpx.AsyncClient,
    retry_delay: float = 1.0,
) -> bool:
    """
    Delivers one event with up to ``retry_attempts`` tries. Every attempt is
    logged. Returns True on a 2xx response.
    """
    body = json.dumps({
        "event": event,
        "payload": payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }, default=str).encode("utf-8")

    headers = {"Content-Type": "application/json", **(webhook.headers or {})}
    if webhook.secret:
        headers[SIGNATURE_HEADER] = sign_payload(webhook.secret, body)

    attempts = max(1, webhook.retry_attempts or 1)
    for attempt in range(1, attempts + 1):
        response_code = None
        error = None
        try:
            response = await client.post(webhook.url, content=body, headers=headers)
            response_code = response.status_code
            if response.is_success:
                db.add(WebhookLog(
                    webhook_id=webhook.id, event=event, payload=payload,
                    status="success", response_code=response_code, attempt=attempt,
                ))
                db.commit()
                logger.info(f"Webhook delivered: id={webhook.id}, event={event}, attempt={attempt}")
                return True
            error = f"HTTP {response_code}"
        except httpx.HTTPError as e:
            error = str(e) or e.__class__.__name__

        db.add(WebhookLog(
            webhook_id=webhook.id, event=event, payload=payload,
            status="failed", response_code=response_code, error=error, attempt=attempt,
        ))
        db.commit()
        logger.warning(f"Webhook delivery failed: id={webhook.id}, event={event}, attempt={attempt}, error={error}")

        if attempt < attempts and retry_delay > 0:
            await asyncio.sleep(retry_delay * (2 ** (attempt - 1)))

    return False


async def dispatch_event(
    event: str,
    payload: Dict[str, Any],
    db: Optional[Session] = None,
    client: Optional[httpx.AsyncClient] = None,
    retry_delay: float = 1.0,
) -> int:
    """
    Sends ``event`` to every enabled webhook subscribed to it and returns the
    number of successful deliveries. Never raises.
    """
    own_db = db is None
    own_client = client is None
    db = db or SessionLocal()
    client = client or httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT)
    delivered = 0
    try:
        webhooks = db.query(Webhook).filter(Webhook.enabled.is_(True)).all()
        for webhook in webhooks:
            if event not in (webhook.events or []):
                continue
            if await trigger_webhook(db, webhook, event, payload, client, retry_delay=retry_delay):
                delivered += 1
    except Exception as e:
        logger.error(f"Webhook dispatch failed for {event}: {e}", exc_info=True)
    finally:
        if own_client:
            await client.aclose()
        if own_db:
            db.close()
    return delivered
