from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Literal, Optional
from uuid import UUID


class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    environment: Literal["live", "test"] = "live"
    expires_in_days: Optional[int] = Field(None, gt=0, le=3650)


class ApiKeyResponse(BaseModel):
    id: UUID
    name: str
    key_prefix: str
    environment: str
    is_active: bool
    rate_limit: int
    usage_count: int
    last_used_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreated(ApiKeyResponse):
    # Only returned once, at creation
    key: str
