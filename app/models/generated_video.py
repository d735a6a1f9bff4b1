from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.sql import func
import uuid
from app.database import Base


class GeneratedVideo(Base):
    __tablename__ = "generated_videos"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    prompt = Column(Text, nullable=False)
    negative_prompt = Column(Text, nullable=True)
    model = Column(String(50), nullable=False)
    duration = Column(Integer, nullable=False)
    aspect_ratio = Column(String(10), nullable=False)
    resolution = Column(String(10), nullable=False)
    source_image_url = Column(String(1000), nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending | processing | completed | failed
    job_id = Column(String(255), nullable=True, index=True)
    video_url = Column(String(1000), nullable=True)
    error_message = Column(Text, nullable=True)
    credits_reserved = Column(Integer, nullable=False, default=0)
    poll_attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")
