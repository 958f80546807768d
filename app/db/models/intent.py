from sqlalchemy import Column, String, DateTime, func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.db.base import Base

class ChatbotIntent(Base):
    __tablename__ = "chatbot_intents"
    id = Column(UUID(as_uuid=True), primary_key=True)
    chatbot_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(String, default="")
    examples = Column(JSONB, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
