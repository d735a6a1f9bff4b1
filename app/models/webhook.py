from sqlalchemy import Column, String, Integer, DateTime, Boolean, ForeignKey, Text, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from app.database import Base


class Webhook(Base):
    __tablename__ = "webhooks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(100), nullable=False)
    url = Column(String(1000), nullable=False)
    events = Column(JSON, nullable=False, default=list)  # ['image.processed', 'video.completed']
    enabled = Column(Boolean, nullable=False, default=True)
    secret = Column(String(255), nullable=True)
    headers = Column(JSON, nullable=False, default=dict)
    retry_attempts = Column(Integer, nullable=False, default=3)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    logs = relationship("WebhookLog", back_populates="webhook", cascade="all, delete-orphan")


class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    webhook_id = Column(Uuid, ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False, index=True)
    event = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False)  # success | failed
    response_code = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    attempt = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    webhook = relationship("Webhook", back_populates="logs")
