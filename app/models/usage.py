from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
import uuid
from app.database import Base


class Usage(Base):
    __tablename__ = "usage"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False, index=True)  # 'upscale_general', 'remove_background', 'video_pixverse_5s', ...
    credits_used = Column(Integer, nullable=False)
    model = Column(String(100), nullable=True)
    image_size = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
