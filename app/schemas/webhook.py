from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID


class WebhookCreate(BaseModel):
    action: Optional[str] = None
    webhookId: Optional[UUID] = None
    event: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    name: Optional[str] = None
    url: Optional[str] = None
    events: Optional[Union[List[str], str]] = None
    enabled: bool = True
    secret: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    retryAttempts: int = Field(3, ge=1, le=10)


class WebhookUpdate(BaseModel):
    id: UUID
    updates: Dict[str, Any]


class WebhookResponse(BaseModel):
    id: UUID
    name: str
    url: str
    events: List[str]
    enabled: bool
    headers: Dict[str, str]
    retry_attempts: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WebhookLogResponse(BaseModel):
    id: UUID
    event: str
    payload: Optional[Dict[str, Any]] = None
    status: str
    response_code: Optional[int] = None
    error: Optional[str] = None
    attempt: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
