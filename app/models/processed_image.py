from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.sql import func
import uuid
from app.database import Base


class ProcessedImage(Base):
    __tablename__ = "processed_images"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    operation = Column(String(50), nullable=False, index=True)  # 'upscale', 'remove_background'
    image_type = Column(String(20), nullable=True)
    model = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="processing", index=True)
    original_path = Column(String(500), nullable=False)
    processed_path = Column(String(500), nullable=True)
    original_filename = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    output_width = Column(Integer, nullable=True)
    output_height = Column(Integer, nullable=True)
    credits_used = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    processing_time_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")
