from sqlalchemy import Column, String, Integer, DateTime, func, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from app.db.base import Base

class Document(Base):
    __tablename__ = "documents"
    id = Column(UUID(as_uuid=True), primary_key=True)
    chatbot_id = Column(UUID(as_uuid=True), ForeignKey("chatbots.id", ondelete="CASCADE"), nullable=False, index=True)

    filename = Column(String, nullable=False)           # sanitized name used in storage
    original_filename = Column(String, nullable=False)
    file_type = Column(String, nullable=False)          # declared MIME type
    file_size = Column(Integer, default=0)
    storage_path = Column(String)

    status = Column(String, default="processing")       # 'processing' | 'ready' | 'error'
    chunk_count = Column(Integer, default=0)
    error_message = Column(String)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
