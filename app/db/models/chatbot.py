from sqlalchemy import Column, String, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from app.db.base import Base

class Chatbot(Base):
    __tablename__ = "chatbots"
    id = Column(UUID(as_uuid=True), primary_key=True)
    name = Column(String, nullable=False)
    plan = Column(String, default="basic")                       # 'basic' | 'pro' | 'enterprise'
    knowledge_base_type = Column(String, default="documents")    # 'documents' | 'website'
    created_at = Column(DateTime(timezone=True), server_default=func.now())
