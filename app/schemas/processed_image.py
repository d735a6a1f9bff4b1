from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional
from uuid import UUID


class ProcessedImageResponse(BaseModel):
    id: UUID
    operation: str
    image_type: Optional[str] = None
    model: Optional[str] = None
    status: str
    original_filename: Optional[str] = None
    file_size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    output_width: Optional[int] = None
    output_height: Optional[int] = None
    credits_used: int
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
